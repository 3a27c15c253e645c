"""
Bounding Box Geometry

Format conversion, scaling, clipping and IoU for axis-aligned boxes.
Boxes are 4-tuples whose meaning is carried by a separate BoxFormat tag:

    XYXY:   [x1, y1, x2, y2]
    XYWH:   [x, y, width, height]
    CXCYWH: [center_x, center_y, width, height]

Every operation pivots through XYXY. Inputs may be an [N, 4] numpy array
(returned as an array) or a sequence of 4-element sequences (returned as
a list of lists). A box with a length other than 4 raises INVALID_OPTIONS
in strict mode (the default, see Settings.STRICT_BOX_FORMAT); in lenient
mode it passes through untouched.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Union

import numpy as np

from vision_utils.config import get_settings
from vision_utils.errors import ErrorCode, VisionUtilsError

Boxes = Union[np.ndarray, Sequence[Sequence[float]]]


# =============================================================================
# Box Formats
# =============================================================================

class BoxFormat(str, Enum):
    """Coordinate convention of a box."""

    XYXY = "xyxy"
    XYWH = "xywh"
    CXCYWH = "cxcywh"

    @classmethod
    def parse(cls, value: "str | BoxFormat") -> "BoxFormat":
        """Parse a format name; unknown names are an error."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, f"Unknown box format: {value}")


@dataclass(frozen=True)
class ClipBoxesResult:
    """
    Result of clip_boxes.

    Attributes:
        boxes: Clipped boxes in the requested format
        format: Format of the returned boxes
        removed_count: Boxes dropped because they became empty
    """

    boxes: Boxes
    format: BoxFormat
    removed_count: int


# =============================================================================
# Vectorized conversions ([N, 4] float64)
# =============================================================================

def to_xyxy(boxes: np.ndarray, box_format: BoxFormat) -> np.ndarray:
    """Convert an [N, 4] array from box_format to XYXY."""
    boxes = np.asarray(boxes, dtype=np.float64)
    if box_format is BoxFormat.XYXY:
        return boxes.copy()

    out = np.empty_like(boxes)
    if box_format is BoxFormat.XYWH:
        out[:, 0] = boxes[:, 0]
        out[:, 1] = boxes[:, 1]
        out[:, 2] = boxes[:, 0] + boxes[:, 2]
        out[:, 3] = boxes[:, 1] + boxes[:, 3]
    else:
        half_w = boxes[:, 2] / 2.0
        half_h = boxes[:, 3] / 2.0
        out[:, 0] = boxes[:, 0] - half_w
        out[:, 1] = boxes[:, 1] - half_h
        out[:, 2] = boxes[:, 0] + half_w
        out[:, 3] = boxes[:, 1] + half_h
    return out


def from_xyxy(boxes: np.ndarray, box_format: BoxFormat) -> np.ndarray:
    """Convert an [N, 4] XYXY array to box_format."""
    boxes = np.asarray(boxes, dtype=np.float64)
    if box_format is BoxFormat.XYXY:
        return boxes.copy()

    out = np.empty_like(boxes)
    width = boxes[:, 2] - boxes[:, 0]
    height = boxes[:, 3] - boxes[:, 1]
    if box_format is BoxFormat.XYWH:
        out[:, 0] = boxes[:, 0]
        out[:, 1] = boxes[:, 1]
    else:
        out[:, 0] = boxes[:, 0] + width / 2.0
        out[:, 1] = boxes[:, 1] + height / 2.0
    out[:, 2] = width
    out[:, 3] = height
    return out


def _clip_xyxy(boxes: np.ndarray, width: float, height: float) -> np.ndarray:
    out = boxes.copy()
    out[:, [0, 2]] = np.clip(out[:, [0, 2]], 0.0, width)
    out[:, [1, 3]] = np.clip(out[:, [1, 3]], 0.0, height)
    return out


# =============================================================================
# Malformed-box handling
# =============================================================================

def _resolve_strict(strict: Optional[bool]) -> bool:
    return get_settings().STRICT_BOX_FORMAT if strict is None else strict


def _malformed(index: int, length: int) -> VisionUtilsError:
    return VisionUtilsError(
        ErrorCode.INVALID_OPTIONS,
        f"Box at index {index} has {length} values, expected 4",
    )


def _map_boxes(
    boxes: Boxes,
    fn: Callable[[np.ndarray], np.ndarray],
    strict: Optional[bool],
) -> Boxes:
    """Apply an [N, 4] -> [N, 4] transform, honoring strict/lenient mode."""
    strict = _resolve_strict(strict)

    if isinstance(boxes, np.ndarray):
        if boxes.size == 0:
            return np.zeros((0, 4), dtype=np.float64)
        if boxes.ndim == 2 and boxes.shape[1] == 4:
            return fn(boxes.astype(np.float64))
        if strict:
            raise VisionUtilsError(
                ErrorCode.INVALID_OPTIONS,
                f"Box array must have shape [N, 4], got {tuple(boxes.shape)}",
            )
        return boxes.copy()

    rows = [list(box) for box in boxes]
    valid = []
    for i, row in enumerate(rows):
        if len(row) == 4:
            valid.append(i)
        elif strict:
            raise _malformed(i, len(row))

    if valid:
        converted = fn(np.asarray([rows[i] for i in valid], dtype=np.float64))
        for i, row in zip(valid, converted):
            rows[i] = row.tolist()

    return rows


# =============================================================================
# Public API
# =============================================================================

def convert_box_format(
    boxes: Boxes,
    source_format: "BoxFormat | str",
    target_format: "BoxFormat | str",
    strict: Optional[bool] = None,
) -> Boxes:
    """
    Convert boxes between XYXY, XYWH and CXCYWH.

    Args:
        boxes: [N, 4] array or sequence of 4-element boxes
        source_format: Format of the input boxes
        target_format: Desired output format
        strict: Reject malformed boxes (default: Settings.STRICT_BOX_FORMAT)

    Returns:
        Converted boxes (array in, array out; sequence in, list out)

    Raises:
        VisionUtilsError: INVALID_OPTIONS for unknown formats or, in strict
            mode, boxes without exactly 4 values

    Example:
        >>> convert_box_format([[10, 20, 30, 40]], "xywh", "xyxy")
        [[10.0, 20.0, 40.0, 60.0]]
    """
    source = BoxFormat.parse(source_format)
    target = BoxFormat.parse(target_format)

    return _map_boxes(boxes, lambda arr: from_xyxy(to_xyxy(arr, source), target), strict)


def scale_boxes(
    boxes: Boxes,
    source_width: float,
    source_height: float,
    target_width: float,
    target_height: float,
    box_format: "BoxFormat | str" = BoxFormat.XYXY,
    clip: bool = True,
    strict: Optional[bool] = None,
) -> Boxes:
    """
    Rescale boxes from one image size to another.

    Each axis is scaled independently by target/source; with clip=True the
    result is clamped to [0, target_width] x [0, target_height].

    Raises:
        VisionUtilsError: INVALID_DIMENSIONS for non-positive source sizes

    Example:
        >>> scale_boxes([[10, 10, 20, 20]], 100, 100, 200, 50)
        [[20.0, 5.0, 40.0, 10.0]]
    """
    if source_width <= 0 or source_height <= 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_DIMENSIONS,
            f"Source size must be positive, got {source_width}x{source_height}",
        )

    fmt = BoxFormat.parse(box_format)
    factors = np.array(
        [
            target_width / source_width,
            target_height / source_height,
            target_width / source_width,
            target_height / source_height,
        ]
    )

    def _scale(arr: np.ndarray) -> np.ndarray:
        xyxy = to_xyxy(arr, fmt) * factors
        if clip:
            xyxy = _clip_xyxy(xyxy, target_width, target_height)
        return from_xyxy(xyxy, fmt)

    return _map_boxes(boxes, _scale, strict)


def clip_boxes(
    boxes: Boxes,
    width: float,
    height: float,
    box_format: "BoxFormat | str" = BoxFormat.XYXY,
    remove_invalid: bool = False,
    strict: Optional[bool] = None,
) -> ClipBoxesResult:
    """
    Clamp boxes into [0, width] x [0, height].

    Args:
        boxes: Boxes to clip
        width: Image width
        height: Image height
        box_format: Format of the boxes
        remove_invalid: Drop boxes whose clipped width or height is <= 0
        strict: Reject malformed boxes (default: Settings.STRICT_BOX_FORMAT)

    Returns:
        ClipBoxesResult with the clipped boxes and the number removed.
        In lenient mode malformed boxes count as invalid when
        remove_invalid is set.
    """
    fmt = BoxFormat.parse(box_format)
    clipped = _map_boxes(boxes, lambda arr: from_xyxy(_clip_xyxy(to_xyxy(arr, fmt), width, height), fmt), strict)

    if not remove_invalid:
        return ClipBoxesResult(boxes=clipped, format=fmt, removed_count=0)

    if isinstance(clipped, np.ndarray):
        if clipped.ndim != 2 or clipped.shape[1] != 4:
            return ClipBoxesResult(boxes=np.zeros((0, 4)), format=fmt, removed_count=len(clipped))
        xyxy = to_xyxy(clipped, fmt)
        keep = ((xyxy[:, 2] - xyxy[:, 0]) > 0) & ((xyxy[:, 3] - xyxy[:, 1]) > 0)
        return ClipBoxesResult(
            boxes=clipped[keep],
            format=fmt,
            removed_count=int((~keep).sum()),
        )

    kept = []
    for box in clipped:
        if len(box) != 4:
            continue
        x1, y1, x2, y2 = to_xyxy(np.asarray([box]), fmt)[0]
        if x2 - x1 > 0 and y2 - y1 > 0:
            kept.append(box)

    return ClipBoxesResult(boxes=kept, format=fmt, removed_count=len(clipped) - len(kept))


def box_iou(box: np.ndarray, others: np.ndarray) -> np.ndarray:
    """
    IoU between one XYXY box and an [N, 4] XYXY array.

    Pairs whose union is not positive get IoU 0.
    """
    box = np.asarray(box, dtype=np.float64)
    others = np.asarray(others, dtype=np.float64).reshape(-1, 4)

    xx1 = np.maximum(box[0], others[:, 0])
    yy1 = np.maximum(box[1], others[:, 1])
    xx2 = np.minimum(box[2], others[:, 2])
    yy2 = np.minimum(box[3], others[:, 3])

    intersection = np.maximum(0.0, xx2 - xx1) * np.maximum(0.0, yy2 - yy1)
    area_box = (box[2] - box[0]) * (box[3] - box[1])
    area_others = (others[:, 2] - others[:, 0]) * (others[:, 3] - others[:, 1])
    union = area_box + area_others - intersection

    iou = np.zeros(len(others), dtype=np.float64)
    positive = union > 0
    iou[positive] = intersection[positive] / union[positive]
    return iou


def calculate_iou(
    box_a: Sequence[float],
    box_b: Sequence[float],
    box_format: "BoxFormat | str" = BoxFormat.XYXY,
) -> float:
    """
    Intersection over Union of two boxes.

    Raises:
        VisionUtilsError: INVALID_OPTIONS if either box lacks 4 values

    Example:
        >>> calculate_iou([0, 0, 10, 10], [5, 0, 15, 10])
        0.3333333333333333
    """
    if len(box_a) != 4 or len(box_b) != 4:
        raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, "Boxes must have 4 elements")

    fmt = BoxFormat.parse(box_format)
    pair = to_xyxy(np.asarray([box_a, box_b], dtype=np.float64), fmt)
    return float(box_iou(pair[0], pair[1:])[0])
