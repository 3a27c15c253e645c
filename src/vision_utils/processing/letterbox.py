"""
Letterbox Transform

Aspect-preserving resize onto a fixed canvas (YOLO style), together with
the coordinate mappers that move boxes between the original image and
the letterboxed canvas. reverse_letterbox is the exact algebraic inverse
of letterbox_boxes for the same LetterboxInfo.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from vision_utils.config import get_default
from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.postprocess.boxes import BoxFormat, Boxes, _map_boxes, from_xyxy, to_xyxy
from vision_utils.processing.image import ImageBuffer
from vision_utils.processing.transforms import place_on_canvas, resize_pixels, round_half_up


# =============================================================================
# Letterbox Info
# =============================================================================

@dataclass(frozen=True)
class LetterboxInfo:
    """
    Parameters of one letterbox call, needed to map coordinates back.

    Attributes:
        scale: Uniform scale applied to the original image
        padding: (left, top, right, bottom) padding in pixels
        offset: (left, top) position of the scaled image on the canvas
        original_size: (width, height) before letterboxing
        letterboxed_size: (width, height) of the canvas
    """

    scale: float
    padding: Tuple[int, int, int, int]
    offset: Tuple[int, int]
    original_size: Tuple[int, int]
    letterboxed_size: Tuple[int, int]

    def reverse_boxes(
        self,
        boxes: Boxes,
        box_format: "BoxFormat | str" = BoxFormat.XYXY,
        clip: bool = True,
        strict: Optional[bool] = None,
    ) -> Boxes:
        """Map boxes from the letterboxed canvas back to the original image."""
        return reverse_letterbox(
            boxes,
            self.scale,
            self.padding,
            self.original_size[0],
            self.original_size[1],
            box_format=box_format,
            clip=clip,
            strict=strict,
        )

    def to_dict(self) -> dict:
        return {
            "scale": self.scale,
            "padding": list(self.padding),
            "offset": list(self.offset),
            "original_size": list(self.original_size),
            "letterboxed_size": list(self.letterboxed_size),
        }


def compute_letterbox(
    width: int,
    height: int,
    target_width: int,
    target_height: int,
    scale_up: bool = True,
    auto_stride: bool = False,
    stride: int = 32,
    center: bool = True,
) -> Tuple[LetterboxInfo, Tuple[int, int]]:
    """
    Compute letterbox geometry without touching pixels.

    Returns:
        Tuple of:
            - info: LetterboxInfo for the transform
            - scaled_size: (width, height) of the resized image on the canvas

    Raises:
        VisionUtilsError: INVALID_DIMENSIONS for non-positive targets or a
            scaled size that collapses to zero
    """
    if target_width <= 0 or target_height <= 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_DIMENSIONS,
            f"Letterbox target must be positive, got {target_width}x{target_height}",
        )

    scale = min(target_width / width, target_height / height)
    if not scale_up:
        scale = min(scale, 1.0)

    new_width = round_half_up(width * scale)
    new_height = round_half_up(height * scale)

    if auto_stride and stride > 0:
        new_width = min(target_width, ((new_width + stride - 1) // stride) * stride)
        new_height = min(target_height, ((new_height + stride - 1) // stride) * stride)

    if new_width <= 0 or new_height <= 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_DIMENSIONS,
            f"Letterboxed image would be empty ({new_width}x{new_height})",
        )

    pad_w = target_width - new_width
    pad_h = target_height - new_height
    if center:
        pad_left, pad_top = pad_w // 2, pad_h // 2
    else:
        pad_left, pad_top = 0, 0

    info = LetterboxInfo(
        scale=scale,
        padding=(pad_left, pad_top, pad_w - pad_left, pad_h - pad_top),
        offset=(pad_left, pad_top),
        original_size=(width, height),
        letterboxed_size=(target_width, target_height),
    )
    return info, (new_width, new_height)


# =============================================================================
# Forward Transform
# =============================================================================

def letterbox(
    image: ImageBuffer,
    target_width: int,
    target_height: int,
    color: Optional[Sequence[int]] = None,
    scale_up: bool = True,
    auto_stride: bool = False,
    stride: int = 32,
    center: bool = True,
) -> Tuple[ImageBuffer, LetterboxInfo]:
    """
    Resize image with letterboxing to maintain aspect ratio.

    Letterboxing scales the image to fit within the target size while
    preserving aspect ratio, then pads the remaining space with a solid
    color. Odd padding puts the extra pixel on the right/bottom.

    Args:
        image: Source image
        target_width: Canvas width
        target_height: Canvas height
        color: RGB(A) padding color (default: gray 114 from config)
        scale_up: Allow enlarging small images; False caps scale at 1.0
        auto_stride: Round the scaled size up to a multiple of stride
        stride: Stride used with auto_stride
        center: Center the image; False puts all padding right/bottom

    Returns:
        Tuple of:
            - letterboxed: ImageBuffer of size target_width x target_height
            - info: LetterboxInfo for reverse_letterbox

    Example:
        >>> image = ImageBuffer.from_array(np.zeros((1080, 1920, 3), dtype=np.uint8))
        >>> boxed, info = letterbox(image, 640, 640)
        >>> info.padding
        (0, 140, 0, 140)
    """
    if color is None:
        color = get_default("resize", "letterbox_color")

    info, (new_width, new_height) = compute_letterbox(
        image.width,
        image.height,
        target_width,
        target_height,
        scale_up=scale_up,
        auto_stride=auto_stride,
        stride=stride,
        center=center,
    )

    resized = resize_pixels(image.pixels, new_width, new_height)
    canvas = place_on_canvas(resized, target_width, target_height, info.offset[0], info.offset[1], color)

    return ImageBuffer(canvas, image.has_alpha), info


# =============================================================================
# Coordinate Mapping
# =============================================================================

def letterbox_boxes(
    boxes: Boxes,
    info: LetterboxInfo,
    box_format: "BoxFormat | str" = BoxFormat.XYXY,
    strict: Optional[bool] = None,
) -> Boxes:
    """Map boxes from original image coordinates onto the letterboxed canvas."""
    fmt = BoxFormat.parse(box_format)
    pad_left, pad_top = info.padding[0], info.padding[1]
    shift = np.array([pad_left, pad_top, pad_left, pad_top], dtype=np.float64)

    return _map_boxes(
        boxes,
        lambda arr: from_xyxy(to_xyxy(arr, fmt) * info.scale + shift, fmt),
        strict,
    )


def reverse_letterbox(
    boxes: Boxes,
    scale: float,
    padding: Sequence[int],
    original_width: float,
    original_height: float,
    box_format: "BoxFormat | str" = BoxFormat.XYXY,
    clip: bool = True,
    strict: Optional[bool] = None,
) -> Boxes:
    """
    Convert bounding boxes from letterboxed coordinates to original image coordinates.

    Detectors output coordinates in the letterboxed space (e.g. 640x640).
    This reverses the letterbox transformation: subtract the left/top
    padding, divide by scale, and optionally clip to the original bounds.

    Args:
        boxes: Boxes in letterboxed coordinates
        scale: Scale factor from LetterboxInfo
        padding: (left, top, ...) padding from LetterboxInfo
        original_width: Width of the original image
        original_height: Height of the original image
        box_format: Format of the boxes (output uses the same format)
        clip: Clamp results to [0, original_width] x [0, original_height]
        strict: Reject malformed boxes (default: Settings.STRICT_BOX_FORMAT)

    Returns:
        Boxes in original image coordinates

    Raises:
        VisionUtilsError: INVALID_OPTIONS for a non-positive scale

    Example:
        >>> reverse_letterbox([[100, 170, 200, 270]], 0.5, (0, 140), 1920, 1080)
        [[200.0, 60.0, 400.0, 260.0]]
    """
    if scale <= 0:
        raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, f"Scale must be positive, got {scale}")

    fmt = BoxFormat.parse(box_format)
    pad_left = float(padding[0]) if len(padding) > 0 else 0.0
    pad_top = float(padding[1]) if len(padding) > 1 else 0.0
    shift = np.array([pad_left, pad_top, pad_left, pad_top], dtype=np.float64)

    def _reverse(arr: np.ndarray) -> np.ndarray:
        xyxy = (to_xyxy(arr, fmt) - shift) / scale
        if clip:
            xyxy[:, [0, 2]] = np.clip(xyxy[:, [0, 2]], 0.0, original_width)
            xyxy[:, [1, 3]] = np.clip(xyxy[:, [1, 3]], 0.0, original_height)
        return from_xyxy(xyxy, fmt)

    return _map_boxes(boxes, _reverse, strict)
