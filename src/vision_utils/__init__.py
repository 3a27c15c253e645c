"""
vision_utils - Image Preprocessing for On-Device Inference

Turns decoded images into model-ready tensors and post-processes
detection outputs:

- processing: pixel pipeline, letterbox, crops, augmentation, analysis
- postprocess: bounding boxes, IoU and non-max suppression
- tensor_ops: channel/patch extraction, batching, permutation
- batch: bounded-concurrency batch processing with an injectable cache
"""

from vision_utils.batch import BatchItemError, BatchProcessor, BatchResult
from vision_utils.cache import LRUTensorCache, TensorCache
from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.logger import setup_logging
from vision_utils.processing import (
    ColorFormat,
    DataLayout,
    ImageBuffer,
    ImageSource,
    LetterboxInfo,
    Normalization,
    NormalizationPreset,
    PixelOptions,
    PixelProcessor,
    ResizeOptions,
    ResizeStrategy,
    TensorResult,
    letterbox,
    load_image,
    process,
    reverse_letterbox,
)
from vision_utils.postprocess import (
    BoxFormat,
    Detection,
    calculate_iou,
    clip_boxes,
    convert_box_format,
    non_max_suppression,
    scale_boxes,
)

__all__ = [
    "BatchItemError",
    "BatchProcessor",
    "BatchResult",
    "LRUTensorCache",
    "TensorCache",
    "setup_logging",
    "ErrorCode",
    "VisionUtilsError",
    "ColorFormat",
    "DataLayout",
    "ImageBuffer",
    "ImageSource",
    "LetterboxInfo",
    "Normalization",
    "NormalizationPreset",
    "PixelOptions",
    "PixelProcessor",
    "ResizeOptions",
    "ResizeStrategy",
    "TensorResult",
    "letterbox",
    "load_image",
    "process",
    "reverse_letterbox",
    "BoxFormat",
    "Detection",
    "calculate_iou",
    "clip_boxes",
    "convert_box_format",
    "non_max_suppression",
    "scale_boxes",
]

__version__ = "0.1.0"
