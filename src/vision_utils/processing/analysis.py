"""
Image Analysis

Read-only inspection of an ImageBuffer:

    detect_blur: Variance of the Laplacian over the grayscale image
    get_statistics: Per-channel mean/std/min/max and histograms
    get_metadata: Size, channel count and aspect ratio
    validate_image: Check size, aspect ratio and channels against criteria
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import cv2
import numpy as np

from vision_utils.config import get_default
from vision_utils.processing.colorspace import rgb_to_grayscale
from vision_utils.processing.image import ImageBuffer
from vision_utils.processing.transforms import resize_pixels

logger = logging.getLogger(__name__)


# =============================================================================
# Blur Detection
# =============================================================================

@dataclass(frozen=True)
class BlurResult:
    is_blurry: bool
    score: float
    threshold: float


def laplacian_variance(gray: np.ndarray) -> float:
    """
    Variance of the 4-neighbour Laplacian response.

    Border pixels get a zero response but still count towards the
    variance, so tiny images score low.

    Args:
        gray: Grayscale float array [H, W]

    Returns:
        Population variance of the response
    """
    gray = np.asarray(gray, dtype=np.float64)
    response = np.zeros_like(gray)
    if gray.shape[0] >= 3 and gray.shape[1] >= 3:
        # ksize=1 is the [[0, 1, 0], [1, -4, 1], [0, 1, 0]] kernel
        response[1:-1, 1:-1] = cv2.Laplacian(gray, cv2.CV_64F, ksize=1)[1:-1, 1:-1]
    return float(response.var())


def detect_blur(
    image: ImageBuffer,
    threshold: Optional[float] = None,
    downsample_size: Optional[int] = None,
) -> BlurResult:
    """
    Detect if an image is blurry using Laplacian variance.

    Args:
        image: Image to analyze
        threshold: Variance below which the image is blurry (default from config)
        downsample_size: Shrink so the longer side is at most this before analysis

    Returns:
        BlurResult with the score and verdict

    Example:
        >>> flat = ImageBuffer.from_array(np.full((32, 32, 3), 128, dtype=np.uint8))
        >>> detect_blur(flat).is_blurry
        True
    """
    if threshold is None:
        threshold = get_default("blur", "threshold")

    pixels = image.pixels
    if downsample_size is not None and max(image.width, image.height) > downsample_size:
        scale = downsample_size / max(image.width, image.height)
        new_width = max(1, int(image.width * scale))
        new_height = max(1, int(image.height * scale))
        pixels = resize_pixels(pixels, new_width, new_height)

    gray = rgb_to_grayscale(pixels[..., :3])[..., 0]
    score = laplacian_variance(gray)

    logger.debug(f"Blur score {score:.2f} (threshold {threshold})", extra={"operation": "detect_blur"})
    return BlurResult(is_blurry=score < threshold, score=score, threshold=float(threshold))


# =============================================================================
# Statistics and Metadata
# =============================================================================

@dataclass
class ImageStatistics:
    """
    Per-channel RGB statistics; mean/std/min/max are scaled to [0, 1].

    Attributes:
        mean: (r, g, b) means
        std: (r, g, b) population standard deviations
        min: (r, g, b) minimums
        max: (r, g, b) maximums
        histogram: {"r", "g", "b"} -> 256 bin counts
    """

    mean: tuple
    std: tuple
    min: tuple
    max: tuple
    histogram: Dict[str, List[int]] = field(default_factory=dict)


def get_statistics(image: ImageBuffer) -> ImageStatistics:
    """Compute per-channel RGB statistics and 256-bin histograms."""
    rgb = image.pixels[..., :3].reshape(-1, 3)
    values = rgb.astype(np.float64)

    histogram = {
        name: np.bincount(rgb[:, c], minlength=256).tolist()
        for c, name in enumerate(("r", "g", "b"))
    }

    return ImageStatistics(
        mean=tuple((values.mean(axis=0) / 255.0).tolist()),
        std=tuple((values.std(axis=0) / 255.0).tolist()),
        min=tuple((rgb.min(axis=0) / 255.0).tolist()),
        max=tuple((rgb.max(axis=0) / 255.0).tolist()),
        histogram=histogram,
    )


@dataclass(frozen=True)
class ImageMetadata:
    width: int
    height: int
    channels: int
    aspect_ratio: float
    has_alpha: bool


def get_metadata(image: ImageBuffer) -> ImageMetadata:
    """Basic size and channel information."""
    return ImageMetadata(
        width=image.width,
        height=image.height,
        channels=4 if image.has_alpha else 3,
        aspect_ratio=image.width / image.height,
        has_alpha=image.has_alpha,
    )


# =============================================================================
# Validation
# =============================================================================

@dataclass(frozen=True)
class ValidationCriteria:
    """Constraints for validate_image; None disables a check."""

    min_width: Optional[int] = None
    min_height: Optional[int] = None
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    min_aspect_ratio: Optional[float] = None
    max_aspect_ratio: Optional[float] = None
    required_aspect_ratio: Optional[float] = None
    aspect_ratio_tolerance: float = 0.01
    required_channels: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ValidationCriteria":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class ValidationResult:
    is_valid: bool
    issues: List[str]
    width: int
    height: int
    channels: int


def validate_image(image: ImageBuffer, criteria: ValidationCriteria) -> ValidationResult:
    """
    Check an image against size, aspect ratio and channel constraints.

    Returns:
        ValidationResult listing one human-readable issue per failed check

    Example:
        >>> image = ImageBuffer.from_array(np.zeros((100, 50, 3), dtype=np.uint8))
        >>> validate_image(image, ValidationCriteria(min_width=64)).issues
        ['Width 50 is less than minimum 64']
    """
    width, height = image.width, image.height
    aspect = width / height
    channels = 4 if image.has_alpha else 3
    issues = []

    if criteria.min_width is not None and width < criteria.min_width:
        issues.append(f"Width {width} is less than minimum {criteria.min_width}")
    if criteria.min_height is not None and height < criteria.min_height:
        issues.append(f"Height {height} is less than minimum {criteria.min_height}")
    if criteria.max_width is not None and width > criteria.max_width:
        issues.append(f"Width {width} exceeds maximum {criteria.max_width}")
    if criteria.max_height is not None and height > criteria.max_height:
        issues.append(f"Height {height} exceeds maximum {criteria.max_height}")
    if criteria.min_aspect_ratio is not None and aspect < criteria.min_aspect_ratio:
        issues.append(f"Aspect ratio {aspect} is less than minimum {criteria.min_aspect_ratio}")
    if criteria.max_aspect_ratio is not None and aspect > criteria.max_aspect_ratio:
        issues.append(f"Aspect ratio {aspect} exceeds maximum {criteria.max_aspect_ratio}")
    if criteria.required_aspect_ratio is not None:
        if abs(aspect - criteria.required_aspect_ratio) > criteria.aspect_ratio_tolerance:
            issues.append(
                f"Aspect ratio {aspect} does not match required {criteria.required_aspect_ratio} "
                f"(tolerance: {criteria.aspect_ratio_tolerance})"
            )
    if criteria.required_channels is not None and channels != criteria.required_channels:
        issues.append(f"Image has {channels} channels but {criteria.required_channels} required")

    return ValidationResult(
        is_valid=not issues,
        issues=issues,
        width=width,
        height=height,
        channels=channels,
    )
