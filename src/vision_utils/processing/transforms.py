"""
Low-Level Image Transforms

Atomic operations shared by the resize, crop and augmentation modules.

Functions:
    round_half_up: Round x.5 away from zero for non-negative sizes
    resize_pixels: Bilinear resize of an RGBA array
    place_on_canvas: Paste an RGBA array onto a solid canvas
    apply_roi: Crop an ImageBuffer to a region of interest
    flip_horizontal: Mirror an ImageBuffer left-right

Classes:
    Roi: Region of interest (x, y, width, height)
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import cv2
import numpy as np

from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.image import ImageBuffer


# =============================================================================
# Helpers
# =============================================================================

def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with .5 rounding up.

    Python's round() uses banker's rounding, which would give different
    scaled sizes than the mobile implementations (e.g. 12.5 -> 12).

    Example:
        >>> round_half_up(12.5)
        13
    """
    return int(math.floor(value + 0.5))


def to_rgba_color(color: Sequence[int]) -> Tuple[int, int, int, int]:
    """Expand an RGB or RGBA color to RGBA (alpha 255 when omitted)."""
    components = [int(c) for c in color]
    if len(components) == 3:
        components.append(255)
    if len(components) != 4:
        raise VisionUtilsError(
            ErrorCode.INVALID_OPTIONS, f"Color must have 3 or 4 components, got {len(components)}"
        )
    return tuple(components)  # type: ignore[return-value]


def resize_pixels(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Resize an RGBA array with bilinear interpolation.

    Args:
        pixels: uint8 array [H, W, 4]
        width: Target width (> 0)
        height: Target height (> 0)

    Returns:
        New uint8 array [height, width, 4]
    """
    if width <= 0 or height <= 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_DIMENSIONS, f"Resize target must be positive, got {width}x{height}"
        )
    if pixels.shape[1] == width and pixels.shape[0] == height:
        return pixels.copy()

    return cv2.resize(
        np.ascontiguousarray(pixels),
        (width, height),
        interpolation=cv2.INTER_LINEAR,
    )


def place_on_canvas(
    pixels: np.ndarray,
    canvas_width: int,
    canvas_height: int,
    left: int,
    top: int,
    color: Sequence[int],
) -> np.ndarray:
    """
    Paste pixels onto a solid canvas at (left, top).

    Parts of pixels falling outside the canvas are cut off, so negative
    offsets produce a crop.

    Returns:
        New uint8 array [canvas_height, canvas_width, 4]
    """
    canvas = np.empty((canvas_height, canvas_width, 4), dtype=np.uint8)
    canvas[:] = to_rgba_color(color)

    src_h, src_w = pixels.shape[:2]
    x0, y0 = max(0, left), max(0, top)
    x1, y1 = min(canvas_width, left + src_w), min(canvas_height, top + src_h)
    if x1 > x0 and y1 > y0:
        canvas[y0:y1, x0:x1] = pixels[y0 - top : y1 - top, x0 - left : x1 - left]

    return canvas


# =============================================================================
# Region of Interest
# =============================================================================

@dataclass(frozen=True)
class Roi:
    """Region of interest in pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_dict(cls, data: dict) -> "Roi":
        return cls(
            x=int(data.get("x", 0)),
            y=int(data.get("y", 0)),
            width=int(data.get("width", 0)),
            height=int(data.get("height", 0)),
        )


def apply_roi(image: ImageBuffer, roi: Roi) -> ImageBuffer:
    """
    Crop an image to a region of interest.

    Args:
        image: Source image
        roi: Region to keep; must lie within the image

    Returns:
        New ImageBuffer of size roi.width x roi.height

    Raises:
        VisionUtilsError: INVALID_ROI if the region has negative origin,
            non-positive size, or extends past the image edge

    Example:
        >>> image = ImageBuffer.from_array(np.zeros((100, 200, 3), dtype=np.uint8))
        >>> apply_roi(image, Roi(10, 20, 50, 40)).width
        50
    """
    if roi.x < 0 or roi.y < 0:
        raise VisionUtilsError(ErrorCode.INVALID_ROI, f"ROI origin must be non-negative, got ({roi.x}, {roi.y})")
    if roi.width <= 0 or roi.height <= 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_ROI, f"ROI size must be positive, got {roi.width}x{roi.height}"
        )
    if roi.x + roi.width > image.width or roi.y + roi.height > image.height:
        raise VisionUtilsError(
            ErrorCode.INVALID_ROI,
            f"ROI ({roi.x}, {roi.y}, {roi.width}x{roi.height}) exceeds image bounds "
            f"{image.width}x{image.height}",
        )

    region = image.pixels[roi.y : roi.y + roi.height, roi.x : roi.x + roi.width]
    return ImageBuffer(region.copy(), image.has_alpha)


def crop_pixels(image: ImageBuffer, x: int, y: int, width: int, height: int) -> ImageBuffer:
    """Crop without ROI validation; the caller guarantees the bounds."""
    region = image.pixels[y : y + height, x : x + width]
    return ImageBuffer(region.copy(), image.has_alpha)


def flip_horizontal(image: ImageBuffer) -> ImageBuffer:
    """Mirror an image left-right."""
    return ImageBuffer(image.pixels[:, ::-1].copy(), image.has_alpha)


def flip_vertical(image: ImageBuffer) -> ImageBuffer:
    """Mirror an image top-bottom."""
    return ImageBuffer(image.pixels[::-1].copy(), image.has_alpha)
