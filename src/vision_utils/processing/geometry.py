"""
Resize Strategies

Resizes an ImageBuffer to a target size under one of four strategies and
reports the scale/offset metadata needed to map coordinates between the
source and resized images:

    STRETCH:   independent X/Y scale, aspect ratio may change
    COVER:     uniform max scale, centered crop of the overflow
    CONTAIN:   uniform min scale, centered on a pad-color canvas
    LETTERBOX: CONTAIN math with the letterbox color, plus LetterboxInfo
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from vision_utils.config import get_default
from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.image import ImageBuffer
from vision_utils.processing.letterbox import LetterboxInfo, letterbox
from vision_utils.processing.transforms import place_on_canvas, resize_pixels, round_half_up

logger = logging.getLogger(__name__)


class ResizeStrategy(str, Enum):
    """How to reconcile source and target aspect ratios."""

    STRETCH = "stretch"
    COVER = "cover"
    CONTAIN = "contain"
    LETTERBOX = "letterbox"

    @classmethod
    def parse(cls, value: "str | ResizeStrategy | None") -> "ResizeStrategy":
        """Parse a strategy name case-insensitively; unknown names become COVER."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.COVER


@dataclass(frozen=True)
class ResizeOptions:
    """
    Target size and strategy for resize().

    Attributes:
        width: Target width
        height: Target height
        strategy: ResizeStrategy
        pad_color: RGBA fill for CONTAIN (default from config)
        letterbox_color: RGB fill for LETTERBOX (default from config)
    """

    width: int
    height: int
    strategy: ResizeStrategy = ResizeStrategy.COVER
    pad_color: Optional[Tuple[int, ...]] = None
    letterbox_color: Optional[Tuple[int, ...]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResizeOptions":
        """Build from a mapping; unknown strategies fall back to COVER."""
        if "width" not in data or "height" not in data:
            raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, "Resize requires width and height")

        pad_color = data.get("pad_color")
        letterbox_color = data.get("letterbox_color")
        return cls(
            width=int(data["width"]),
            height=int(data["height"]),
            strategy=ResizeStrategy.parse(data.get("strategy", get_default("resize", "strategy"))),
            pad_color=None if pad_color is None else tuple(int(c) for c in pad_color),
            letterbox_color=None if letterbox_color is None else tuple(int(c) for c in letterbox_color),
        )


@dataclass(frozen=True)
class ResizeResult:
    """
    Resized image plus coordinate metadata.

    A source point (x, y) lands at (x * scale_x + offset[0], y * scale_y + offset[1])
    in the resized image. COVER has negative offsets (the crop), CONTAIN and
    LETTERBOX have positive offsets (the padding).

    Attributes:
        image: Resized ImageBuffer
        scale_x: Horizontal scale factor
        scale_y: Vertical scale factor
        offset: (x, y) placement of the scaled source
        letterbox: LetterboxInfo when the LETTERBOX strategy ran
    """

    image: ImageBuffer
    scale_x: float
    scale_y: float
    offset: Tuple[int, int]
    letterbox: Optional[LetterboxInfo] = None


def _scaled_size(width: int, height: int, scale: float) -> Tuple[int, int]:
    new_width = round_half_up(width * scale)
    new_height = round_half_up(height * scale)
    if new_width <= 0 or new_height <= 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_DIMENSIONS,
            f"Resized image would be empty ({new_width}x{new_height})",
        )
    return new_width, new_height


def resize(image: ImageBuffer, options: ResizeOptions) -> ResizeResult:
    """
    Resize an image with the configured strategy.

    Args:
        image: Source image
        options: Target size and strategy

    Returns:
        ResizeResult whose image is exactly options.width x options.height

    Raises:
        VisionUtilsError: INVALID_DIMENSIONS for non-positive targets or a
            scaled size that collapses to zero

    Example:
        >>> image = ImageBuffer.from_array(np.zeros((50, 100, 3), dtype=np.uint8))
        >>> result = resize(image, ResizeOptions(50, 50, ResizeStrategy.CONTAIN))
        >>> result.scale_x, result.offset
        (0.5, (0, 12))
    """
    target_width, target_height = options.width, options.height
    if target_width <= 0 or target_height <= 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_DIMENSIONS,
            f"Resize target must be positive, got {target_width}x{target_height}",
        )

    width, height = image.width, image.height
    scale_x = target_width / width
    scale_y = target_height / height
    strategy = options.strategy

    if strategy is ResizeStrategy.STRETCH:
        pixels = resize_pixels(image.pixels, target_width, target_height)
        result = ResizeResult(ImageBuffer(pixels, image.has_alpha), scale_x, scale_y, (0, 0))

    elif strategy is ResizeStrategy.LETTERBOX:
        color = options.letterbox_color or get_default("resize", "letterbox_color")
        boxed, info = letterbox(image, target_width, target_height, color=color)
        result = ResizeResult(boxed, info.scale, info.scale, info.offset, letterbox=info)

    elif strategy is ResizeStrategy.COVER:
        scale = max(scale_x, scale_y)
        new_width, new_height = _scaled_size(width, height, scale)
        crop_x = (new_width - target_width) // 2
        crop_y = (new_height - target_height) // 2
        scaled = resize_pixels(image.pixels, new_width, new_height)
        pixels = place_on_canvas(scaled, target_width, target_height, -crop_x, -crop_y, (0, 0, 0, 0))
        result = ResizeResult(ImageBuffer(pixels, image.has_alpha), scale, scale, (-crop_x, -crop_y))

    else:  # CONTAIN
        scale = min(scale_x, scale_y)
        new_width, new_height = _scaled_size(width, height, scale)
        left = (target_width - new_width) // 2
        top = (target_height - new_height) // 2
        color = options.pad_color or get_default("resize", "pad_color")
        scaled = resize_pixels(image.pixels, new_width, new_height)
        pixels = place_on_canvas(scaled, target_width, target_height, left, top, color)
        result = ResizeResult(ImageBuffer(pixels, image.has_alpha), scale, scale, (left, top))

    logger.debug(
        f"Resized {width}x{height} -> {target_width}x{target_height} "
        f"({strategy.value}, scale {result.scale_x:.4f}x{result.scale_y:.4f})",
        extra={"operation": "resize", "shape": (target_height, target_width)},
    )
    return result
