"""
Processing Module - Pixel-to-Tensor Pipeline and Image Operations

This module provides:
- The pixel pipeline (ROI, resize, color conversion, normalization,
  layout, quantization) behind PixelProcessor
- Letterboxing with reversible box mapping
- Multi-crop, augmentation and analysis helpers built on ImageBuffer
"""

from vision_utils.processing.image import (
    ImageBuffer,
    ImageSource,
    ImageSourceType,
    load_image,
    load_image_from_bytes,
)
from vision_utils.processing.colorspace import ColorFormat, convert_color
from vision_utils.processing.transforms import Roi, apply_roi
from vision_utils.processing.letterbox import (
    LetterboxInfo,
    letterbox,
    letterbox_boxes,
    reverse_letterbox,
)
from vision_utils.processing.geometry import ResizeOptions, ResizeResult, ResizeStrategy, resize
from vision_utils.processing.normalize import Normalization, NormalizationPreset, normalize
from vision_utils.processing.layout import DataLayout, calculate_shape, to_hwc, to_layout
from vision_utils.processing.quantization import (
    CalibrationResult,
    QuantDType,
    QuantizationMode,
    QuantizationParams,
    calculate_quantization_params,
    dequantize,
    quantize,
)
from vision_utils.processing.options import PixelOptions, QuantizationOptions
from vision_utils.processing.pipeline import PixelProcessor, TensorResult, process
from vision_utils.processing.crops import extract_grid, five_crop, random_crop, ten_crop
from vision_utils.processing.augment import (
    Augmentations,
    ColorJitterOptions,
    CutoutOptions,
    apply_augmentations,
    color_jitter,
    cutout,
)
from vision_utils.processing.analysis import (
    ValidationCriteria,
    detect_blur,
    get_metadata,
    get_statistics,
    validate_image,
)
from vision_utils.processing.converter import encode_image, encode_image_base64, tensor_to_image

__all__ = [
    # Images and loading
    "ImageBuffer",
    "ImageSource",
    "ImageSourceType",
    "load_image",
    "load_image_from_bytes",
    # Pipeline stages
    "ColorFormat",
    "convert_color",
    "Roi",
    "apply_roi",
    "ResizeOptions",
    "ResizeResult",
    "ResizeStrategy",
    "resize",
    "LetterboxInfo",
    "letterbox",
    "letterbox_boxes",
    "reverse_letterbox",
    "Normalization",
    "NormalizationPreset",
    "normalize",
    "DataLayout",
    "calculate_shape",
    "to_hwc",
    "to_layout",
    "CalibrationResult",
    "QuantDType",
    "QuantizationMode",
    "QuantizationParams",
    "calculate_quantization_params",
    "dequantize",
    "quantize",
    # Pipeline
    "PixelOptions",
    "QuantizationOptions",
    "PixelProcessor",
    "TensorResult",
    "process",
    # Crops, augmentation, analysis
    "extract_grid",
    "five_crop",
    "random_crop",
    "ten_crop",
    "Augmentations",
    "ColorJitterOptions",
    "CutoutOptions",
    "apply_augmentations",
    "color_jitter",
    "cutout",
    "ValidationCriteria",
    "detect_blur",
    "get_metadata",
    "get_statistics",
    "validate_image",
    "encode_image",
    "encode_image_base64",
    "tensor_to_image",
]
