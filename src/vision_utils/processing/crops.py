"""
Multi-Crop Extraction

Cuts several regions out of one image and runs each through the pixel
pipeline:

    five_crop: Four corners plus center
    ten_crop: five_crop plus horizontal flips, interleaved
    random_crop: Seeded random positions
    extract_grid: Regular rows x columns tiling with optional overlap
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from vision_utils.config import get_default
from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.image import ImageBuffer
from vision_utils.processing.options import PixelOptions
from vision_utils.processing.pipeline import PixelProcessor, TensorResult
from vision_utils.processing.transforms import crop_pixels, flip_horizontal, place_on_canvas

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class RandomCrop:
    """One random crop and where it came from."""

    index: int
    x: int
    y: int
    width: int
    height: int
    result: TensorResult


@dataclass
class RandomCropResult:
    """Output of random_crop; seed reproduces the same positions."""

    crops: List[RandomCrop]
    seed: int
    original_width: int
    original_height: int


@dataclass
class GridPatch:
    """One grid tile; width/height are the covered image area before padding."""

    row: int
    column: int
    x: int
    y: int
    width: int
    height: int
    result: TensorResult


@dataclass
class GridResult:
    """Output of extract_grid."""

    patches: List[GridPatch] = field(default_factory=list)
    rows: int = 0
    columns: int = 0
    patch_width: int = 0
    patch_height: int = 0
    original_width: int = 0
    original_height: int = 0


# =============================================================================
# Five / Ten Crop
# =============================================================================

def _corner_positions(image: ImageBuffer, width: int, height: int) -> List[tuple]:
    if width <= 0 or height <= 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_CROP_SIZE, f"Crop size must be positive, got {width}x{height}"
        )
    if width > image.width or height > image.height:
        raise VisionUtilsError(
            ErrorCode.INVALID_CROP_SIZE,
            f"Crop size ({width} x {height}) exceeds image size ({image.width} x {image.height})",
        )

    right = image.width - width
    bottom = image.height - height
    return [
        (0, 0),
        (right, 0),
        (0, bottom),
        (right, bottom),
        (right // 2, bottom // 2),
    ]


def five_crop(
    image: ImageBuffer,
    width: Optional[int] = None,
    height: Optional[int] = None,
    options: Optional[PixelOptions] = None,
) -> List[TensorResult]:
    """
    Crop the four corners and the center.

    Args:
        image: Source image
        width: Crop width (default from config)
        height: Crop height (default from config)
        options: Pipeline options applied to every crop

    Returns:
        Five TensorResults: top-left, top-right, bottom-left, bottom-right, center

    Raises:
        VisionUtilsError: INVALID_CROP_SIZE if the crop exceeds the image
    """
    width = get_default("crops", "width") if width is None else width
    height = get_default("crops", "height") if height is None else height
    processor = PixelProcessor(options)

    return [
        processor(crop_pixels(image, x, y, width, height))
        for x, y in _corner_positions(image, width, height)
    ]


def ten_crop(
    image: ImageBuffer,
    width: Optional[int] = None,
    height: Optional[int] = None,
    options: Optional[PixelOptions] = None,
) -> List[TensorResult]:
    """
    five_crop plus the horizontal flip of each crop.

    Returns:
        Ten TensorResults, each crop followed by its mirror image

    Raises:
        VisionUtilsError: INVALID_CROP_SIZE if the crop exceeds the image
    """
    width = get_default("crops", "width") if width is None else width
    height = get_default("crops", "height") if height is None else height
    processor = PixelProcessor(options)

    results = []
    for x, y in _corner_positions(image, width, height):
        crop = crop_pixels(image, x, y, width, height)
        results.append(processor(crop))
        results.append(processor(flip_horizontal(crop)))
    return results


# =============================================================================
# Random Crop
# =============================================================================

def random_crop(
    image: ImageBuffer,
    width: Optional[int] = None,
    height: Optional[int] = None,
    count: Optional[int] = None,
    seed: Optional[int] = None,
    options: Optional[PixelOptions] = None,
) -> RandomCropResult:
    """
    Extract crops at random positions.

    Args:
        image: Source image
        width: Crop width (default from config)
        height: Crop height (default from config)
        count: Number of crops (default from config)
        seed: Seed for reproducible positions; drawn at random when None
        options: Pipeline options applied to every crop

    Returns:
        RandomCropResult with positions, tensors and the seed used

    Raises:
        VisionUtilsError: INVALID_DIMENSIONS for non-positive crop size,
            INVALID_COUNT for count <= 0, IMAGE_TOO_SMALL when the image
            is smaller than the crop

    Example:
        >>> image = ImageBuffer.from_array(np.zeros((300, 300, 3), dtype=np.uint8))
        >>> a = random_crop(image, 100, 100, count=3, seed=42)
        >>> b = random_crop(image, 100, 100, count=3, seed=42)
        >>> [(c.x, c.y) for c in a.crops] == [(c.x, c.y) for c in b.crops]
        True
    """
    width = get_default("crops", "width") if width is None else width
    height = get_default("crops", "height") if height is None else height
    count = get_default("crops", "count") if count is None else count

    if width <= 0 or height <= 0:
        raise VisionUtilsError(ErrorCode.INVALID_DIMENSIONS, "Crop dimensions must be positive")
    if count <= 0:
        raise VisionUtilsError(ErrorCode.INVALID_COUNT, "Count must be positive")
    if image.width < width or image.height < height:
        raise VisionUtilsError(
            ErrorCode.IMAGE_TOO_SMALL,
            f"Image ({image.width}x{image.height}) is smaller than requested crop size ({width}x{height})",
        )

    if seed is None:
        seed = int(np.random.default_rng().integers(0, 2**31 - 1))
    rng = np.random.default_rng(seed)
    processor = PixelProcessor(options)

    max_x = image.width - width
    max_y = image.height - height

    crops = []
    for i in range(count):
        x = int(rng.integers(0, max_x + 1))
        y = int(rng.integers(0, max_y + 1))
        crops.append(
            RandomCrop(
                index=i,
                x=x,
                y=y,
                width=width,
                height=height,
                result=processor(crop_pixels(image, x, y, width, height)),
            )
        )

    logger.debug(f"Extracted {count} random crops", extra={"operation": "random_crop", "count": count})

    return RandomCropResult(crops=crops, seed=seed, original_width=image.width, original_height=image.height)


# =============================================================================
# Grid Extraction
# =============================================================================

def extract_grid(
    image: ImageBuffer,
    rows: int,
    columns: int,
    overlap: int = 0,
    overlap_percent: Optional[float] = None,
    include_partial: bool = False,
    options: Optional[PixelOptions] = None,
) -> GridResult:
    """
    Tile an image into a rows x columns grid of equally sized patches.

    Patch size is (image_size + overlap * (n - 1)) // n per axis and the
    stride is patch_size - overlap (at least 1). Patches running past the
    image edge are skipped unless include_partial is set, in which case
    they are padded with black on the right/bottom.

    Args:
        image: Source image
        rows: Number of rows (>= 1)
        columns: Number of columns (>= 1)
        overlap: Overlap between neighbours in pixels
        overlap_percent: Overlap as a fraction of the unoverlapped patch
            size; overrides overlap when given
        include_partial: Keep patches that run past the edge
        options: Pipeline options applied to every patch

    Returns:
        GridResult with patches in row-major order

    Raises:
        VisionUtilsError: INVALID_OPTIONS for rows/columns < 1,
            INVALID_DIMENSIONS when the patch size collapses to zero
    """
    if rows < 1 or columns < 1:
        raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, "rows and columns must be at least 1")

    if overlap_percent is not None:
        base = min(image.width // columns, image.height // rows)
        overlap = int(base * overlap_percent)

    patch_width = (image.width + overlap * (columns - 1)) // columns
    patch_height = (image.height + overlap * (rows - 1)) // rows
    if patch_width <= 0 or patch_height <= 0:
        raise VisionUtilsError(ErrorCode.INVALID_DIMENSIONS, "Calculated patch dimensions are invalid")

    stride_x = max(1, patch_width - overlap)
    stride_y = max(1, patch_height - overlap)
    processor = PixelProcessor(options)

    result = GridResult(
        rows=rows,
        columns=columns,
        patch_width=patch_width,
        patch_height=patch_height,
        original_width=image.width,
        original_height=image.height,
    )

    for row in range(rows):
        for col in range(columns):
            x = col * stride_x
            y = row * stride_y

            partial = x + patch_width > image.width or y + patch_height > image.height
            if partial and not include_partial:
                continue

            actual_width = min(patch_width, image.width - x)
            actual_height = min(patch_height, image.height - y)
            if actual_width <= 0 or actual_height <= 0:
                continue

            patch = crop_pixels(image, x, y, actual_width, actual_height)
            if partial:
                padded = place_on_canvas(patch.pixels, patch_width, patch_height, 0, 0, (0, 0, 0, 255))
                patch = ImageBuffer(padded, image.has_alpha)

            result.patches.append(
                GridPatch(
                    row=row,
                    column=col,
                    x=x,
                    y=y,
                    width=actual_width,
                    height=actual_height,
                    result=processor(patch),
                )
            )

    logger.debug(
        f"Extracted {len(result.patches)} grid patches",
        extra={"operation": "extract_grid", "count": len(result.patches)},
    )
    return result
