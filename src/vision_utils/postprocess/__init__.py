"""
Postprocess Module - Bounding Box Geometry and Suppression

- boxes: format conversion, scaling, clipping and IoU
- nms: deterministic NMS and YOLO head parsing
"""

from vision_utils.postprocess.boxes import (
    BoxFormat,
    ClipBoxesResult,
    box_iou,
    calculate_iou,
    clip_boxes,
    convert_box_format,
    scale_boxes,
)
from vision_utils.postprocess.nms import Detection, NMSResult, non_max_suppression, parse_yolo_output

__all__ = [
    "BoxFormat",
    "ClipBoxesResult",
    "box_iou",
    "calculate_iou",
    "clip_boxes",
    "convert_box_format",
    "scale_boxes",
    "Detection",
    "NMSResult",
    "non_max_suppression",
    "parse_yolo_output",
]
