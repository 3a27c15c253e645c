"""
Image Augmentation

Deterministic and randomized photometric/geometric augmentations that
return new ImageBuffers:

    apply_augmentations: Rotation, flips, brightness, contrast, saturation, blur
    color_jitter: Random brightness/contrast/saturation/hue within ranges
    cutout: Random rectangular occlusions (constant, random or noise fill)

Color adjustments are 4x5 RGBA color matrices applied per pixel, rounded
and clamped to [0, 255]; alpha is left untouched.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple, Union

import cv2
import numpy as np

from vision_utils.config import get_default
from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.image import ImageBuffer
from vision_utils.processing.transforms import flip_horizontal, flip_vertical

logger = logging.getLogger(__name__)

# Luminance weights used by the saturation and hue matrices
_LUM_R, _LUM_G, _LUM_B = 0.213, 0.715, 0.072

MAX_BLUR_RADIUS = 25

RangeSpec = Union[float, Tuple[float, float], None]


# =============================================================================
# Color Matrices
# =============================================================================

def _apply_color_matrix(image: ImageBuffer, matrix: np.ndarray, offset: float = 0.0) -> ImageBuffer:
    """Apply a 3x3 RGB matrix plus a constant offset; alpha is preserved."""
    pixels = image.pixels
    rgb = pixels[..., :3].astype(np.float64)
    transformed = rgb @ matrix.T + offset

    out = np.empty_like(pixels)
    out[..., :3] = np.clip(np.floor(transformed + 0.5), 0, 255).astype(np.uint8)
    out[..., 3] = pixels[..., 3]
    return ImageBuffer(out, image.has_alpha)


def adjust_brightness(image: ImageBuffer, offset: float) -> ImageBuffer:
    """Add offset (in pixel units) to every color channel."""
    return _apply_color_matrix(image, np.eye(3), offset)


def adjust_contrast(image: ImageBuffer, factor: float) -> ImageBuffer:
    """Scale around mid-gray: v' = factor * v + (1 - factor) * 127.5."""
    return _apply_color_matrix(image, np.eye(3) * factor, (1.0 - factor) * 127.5)


def saturation_matrix(factor: float) -> np.ndarray:
    """Luma-preserving saturation matrix; 0 gives grayscale, 1 identity."""
    inv = 1.0 - factor
    r, g, b = _LUM_R * inv, _LUM_G * inv, _LUM_B * inv
    return np.array(
        [
            [r + factor, g, b],
            [r, g + factor, b],
            [r, g, b + factor],
        ]
    )


def adjust_saturation(image: ImageBuffer, factor: float) -> ImageBuffer:
    return _apply_color_matrix(image, saturation_matrix(factor))


def hue_matrix(shift: float) -> np.ndarray:
    """Rotation about the gray axis; shift is a fraction of the color wheel."""
    angle = shift * 2.0 * math.pi
    cos_a, sin_a = math.cos(angle), math.sin(angle)
    return np.array(
        [
            [
                _LUM_R + cos_a * (1 - _LUM_R) + sin_a * (-_LUM_R),
                _LUM_G + cos_a * (-_LUM_G) + sin_a * (-_LUM_G),
                _LUM_B + cos_a * (-_LUM_B) + sin_a * (1 - _LUM_B),
            ],
            [
                _LUM_R + cos_a * (-_LUM_R) + sin_a * 0.143,
                _LUM_G + cos_a * (1 - _LUM_G) + sin_a * 0.140,
                _LUM_B + cos_a * (-_LUM_B) + sin_a * (-0.283),
            ],
            [
                _LUM_R + cos_a * (-_LUM_R) + sin_a * (-(1 - _LUM_R)),
                _LUM_G + cos_a * (-_LUM_G) + sin_a * _LUM_G,
                _LUM_B + cos_a * (1 - _LUM_B) + sin_a * _LUM_B,
            ],
        ]
    )


def adjust_hue(image: ImageBuffer, shift: float) -> ImageBuffer:
    return _apply_color_matrix(image, hue_matrix(shift))


# =============================================================================
# Geometric
# =============================================================================

def rotate(image: ImageBuffer, degrees: float) -> ImageBuffer:
    """
    Rotate clockwise about the center, expanding the canvas to fit.

    Uncovered corners are transparent black.
    """
    radians = math.radians(degrees)
    sin_a, cos_a = abs(math.sin(radians)), abs(math.cos(radians))
    new_width = int(image.width * cos_a + image.height * sin_a)
    new_height = int(image.width * sin_a + image.height * cos_a)
    if new_width <= 0 or new_height <= 0:
        raise VisionUtilsError(ErrorCode.INVALID_DIMENSIONS, "Rotated image would be empty")

    # OpenCV angles are counter-clockwise
    matrix = cv2.getRotationMatrix2D((image.width / 2.0, image.height / 2.0), -degrees, 1.0)
    matrix[0, 2] += (new_width - image.width) / 2.0
    matrix[1, 2] += (new_height - image.height) / 2.0

    rotated = cv2.warpAffine(
        np.ascontiguousarray(image.pixels),
        matrix,
        (new_width, new_height),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )
    return ImageBuffer(rotated, True)


def box_blur(image: ImageBuffer, radius: float) -> ImageBuffer:
    """
    Separable box blur; radius is truncated and clamped to [1, 25].

    Each output pixel is the floored mean of the in-bounds neighbours, so
    edges average over fewer pixels instead of reflecting.
    """
    r = min(max(int(radius), 1), MAX_BLUR_RADIUS)
    height, width = image.height, image.width
    ones = np.ones((height, width), dtype=np.float64)

    def _pass(data: np.ndarray, ksize: Tuple[int, int]) -> np.ndarray:
        # unnormalized sums with zero padding, divided by the in-bounds count
        sums = cv2.boxFilter(data, cv2.CV_64F, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT)
        counts = cv2.boxFilter(ones, cv2.CV_64F, ksize, normalize=False, borderType=cv2.BORDER_CONSTANT)
        return np.rint(sums).astype(np.int64) // np.rint(counts).astype(np.int64)[..., None]

    pixels = image.pixels.astype(np.float64)
    horizontal = _pass(pixels, (2 * r + 1, 1)).astype(np.float64)
    blurred = _pass(horizontal, (1, 2 * r + 1))

    return ImageBuffer(blurred.astype(np.uint8), image.has_alpha)


# =============================================================================
# Augmentations
# =============================================================================

@dataclass(frozen=True)
class Augmentations:
    """
    Augmentations applied in field order.

    Attributes:
        rotation: Degrees clockwise (0 = off)
        flip_horizontal: Mirror left-right
        flip_vertical: Mirror top-bottom
        brightness: Factor, 1.0 = unchanged
        contrast: Factor, 1.0 = unchanged
        saturation: Factor, 1.0 = unchanged
        blur: Box blur radius, 0 = off
    """

    rotation: float = 0.0
    flip_horizontal: bool = False
    flip_vertical: bool = False
    brightness: float = 1.0
    contrast: float = 1.0
    saturation: float = 1.0
    blur: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Augmentations":
        return cls(
            rotation=float(data.get("rotation", 0.0)),
            flip_horizontal=bool(data.get("flip_horizontal", False)),
            flip_vertical=bool(data.get("flip_vertical", False)),
            brightness=float(data.get("brightness", 1.0)),
            contrast=float(data.get("contrast", 1.0)),
            saturation=float(data.get("saturation", 1.0)),
            blur=float(data.get("blur", 0.0)),
        )


def apply_augmentations(image: ImageBuffer, augmentations: Augmentations) -> ImageBuffer:
    """
    Apply a fixed set of augmentations.

    Args:
        image: Source image (not modified)
        augmentations: What to apply

    Returns:
        Augmented ImageBuffer; rotation may change its size

    Example:
        >>> image = ImageBuffer.from_array(np.full((4, 4, 3), 100, dtype=np.uint8))
        >>> apply_augmentations(image, Augmentations(brightness=1.2)).pixels[0, 0, 0]
        151
    """
    result = image
    if augmentations.rotation != 0:
        result = rotate(result, augmentations.rotation)
    if augmentations.flip_horizontal:
        result = flip_horizontal(result)
    if augmentations.flip_vertical:
        result = flip_vertical(result)
    if augmentations.brightness != 1.0:
        result = adjust_brightness(result, (augmentations.brightness - 1.0) * 255.0)
    if augmentations.contrast != 1.0:
        result = adjust_contrast(result, augmentations.contrast)
    if augmentations.saturation != 1.0:
        result = adjust_saturation(result, augmentations.saturation)
    if augmentations.blur > 0:
        result = box_blur(result, augmentations.blur)
    return result


# =============================================================================
# Color Jitter
# =============================================================================

def _parse_range(value: RangeSpec, neutral: float, multiplicative: bool) -> Tuple[float, float]:
    """Scalar v -> symmetric range around neutral; pair -> explicit range."""
    if value is None:
        return neutral, neutral
    if isinstance(value, (tuple, list)):
        if len(value) != 2:
            raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, f"Range must have 2 values, got {len(value)}")
        return float(value[0]), float(value[1])
    v = float(value)
    if multiplicative:
        return max(0.0, 1.0 - v), 1.0 + v
    return -v, v


@dataclass(frozen=True)
class ColorJitterOptions:
    """Jitter ranges; scalars expand to symmetric ranges."""

    brightness: RangeSpec = None
    contrast: RangeSpec = None
    saturation: RangeSpec = None
    hue: RangeSpec = None
    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ColorJitterOptions":
        def _spec(key: str) -> RangeSpec:
            value = data.get(key)
            return tuple(value) if isinstance(value, list) else value

        return cls(
            brightness=_spec("brightness"),
            contrast=_spec("contrast"),
            saturation=_spec("saturation"),
            hue=_spec("hue"),
            seed=data.get("seed"),
        )


@dataclass
class ColorJitterResult:
    """Jittered image and the values actually applied."""

    image: ImageBuffer
    brightness: float
    contrast: float
    saturation: float
    hue: float
    seed: int


def _sample(bounds: Tuple[float, float], rng: np.random.Generator) -> float:
    low, high = bounds
    if low == high:
        return low
    return low + float(rng.random()) * (high - low)


def color_jitter(image: ImageBuffer, options: ColorJitterOptions) -> ColorJitterResult:
    """
    Randomly perturb brightness, contrast, saturation and hue.

    Brightness and hue are additive (brightness in [-1, 1] of the pixel
    range, hue as a fraction of the color wheel); contrast and saturation
    are multiplicative factors.

    Args:
        image: Source image
        options: Ranges and optional seed

    Returns:
        ColorJitterResult with the sampled values and the seed used
    """
    seed = options.seed
    if seed is None:
        seed = int(np.random.default_rng().integers(0, 2**31 - 1))
    rng = np.random.default_rng(seed)

    brightness = _sample(_parse_range(options.brightness, 0.0, False), rng)
    contrast = _sample(_parse_range(options.contrast, 1.0, True), rng)
    saturation = _sample(_parse_range(options.saturation, 1.0, True), rng)
    hue = _sample(_parse_range(options.hue, 0.0, False), rng)

    result = image
    if brightness != 0.0:
        result = adjust_brightness(result, brightness * 255.0)
    if contrast != 1.0:
        result = adjust_contrast(result, contrast)
    if saturation != 1.0:
        result = adjust_saturation(result, saturation)
    if hue != 0.0:
        result = adjust_hue(result, hue)

    return ColorJitterResult(
        image=result,
        brightness=brightness,
        contrast=contrast,
        saturation=saturation,
        hue=hue,
        seed=seed,
    )


# =============================================================================
# Cutout
# =============================================================================

@dataclass(frozen=True)
class CutoutOptions:
    """
    Cutout settings; None fields take the configured defaults.

    Attributes:
        num_cutouts: Number of rectangles
        min_size: Minimum area as a fraction of the image
        max_size: Maximum area as a fraction of the image
        min_aspect: Minimum width/height ratio
        max_aspect: Maximum width/height ratio
        fill_mode: "constant", "random" or "noise"
        fill_value: RGB for constant fill
        probability: Chance that any cutout is applied
        seed: Seed for reproducibility
    """

    num_cutouts: Optional[int] = None
    min_size: Optional[float] = None
    max_size: Optional[float] = None
    min_aspect: Optional[float] = None
    max_aspect: Optional[float] = None
    fill_mode: Optional[str] = None
    fill_value: Optional[Tuple[int, int, int]] = None
    probability: Optional[float] = None
    seed: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CutoutOptions":
        fill_value = data.get("fill_value")
        return cls(
            num_cutouts=data.get("num_cutouts"),
            min_size=data.get("min_size"),
            max_size=data.get("max_size"),
            min_aspect=data.get("min_aspect"),
            max_aspect=data.get("max_aspect"),
            fill_mode=data.get("fill_mode"),
            fill_value=None if fill_value is None else tuple(int(v) for v in fill_value[:3]),
            probability=data.get("probability"),
            seed=data.get("seed"),
        )

    def resolved(self, key: str) -> Any:
        value = getattr(self, key)
        return get_default("cutout", key) if value is None else value


@dataclass(frozen=True)
class CutoutRegion:
    """One occluded rectangle; fill is the RGB used, or "noise"."""

    x: int
    y: int
    width: int
    height: int
    fill: Union[Tuple[int, int, int], str]


@dataclass
class CutoutResult:
    image: ImageBuffer
    applied: bool
    seed: int
    regions: List[CutoutRegion] = field(default_factory=list)


def cutout(image: ImageBuffer, options: Optional[CutoutOptions] = None) -> CutoutResult:
    """
    Occlude random rectangles.

    Each rectangle's area is drawn uniformly from [min_size, max_size] of
    the image area and its aspect ratio from [min_aspect, max_aspect].

    Args:
        image: Source image
        options: Cutout settings (defaults from config)

    Returns:
        CutoutResult with the occluded image and the regions drawn

    Raises:
        VisionUtilsError: INVALID_OPTIONS for an unknown fill mode or a
            negative cutout count
    """
    options = options or CutoutOptions()
    num_cutouts = int(options.resolved("num_cutouts"))
    min_size, max_size = float(options.resolved("min_size")), float(options.resolved("max_size"))
    min_aspect, max_aspect = float(options.resolved("min_aspect")), float(options.resolved("max_aspect"))
    fill_mode = str(options.resolved("fill_mode")).lower()
    fill_value = tuple(int(v) for v in options.resolved("fill_value"))[:3]
    probability = float(options.resolved("probability"))

    if num_cutouts < 0:
        raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, f"num_cutouts must be >= 0, got {num_cutouts}")
    if fill_mode not in ("constant", "random", "noise"):
        raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, f"Unknown fill mode: {fill_mode}")

    seed = options.seed
    if seed is None:
        seed = int(np.random.default_rng().integers(0, 2**31 - 1))
    rng = np.random.default_rng(seed)

    if rng.random() >= probability or num_cutouts == 0:
        return CutoutResult(image=image, applied=False, seed=seed)

    width, height = image.width, image.height
    area = float(width * height)
    pixels = image.pixels.copy()
    regions = []

    for _ in range(num_cutouts):
        target_area = (rng.random() * (max_size - min_size) + min_size) * area
        aspect = rng.random() * (max_aspect - min_aspect) + min_aspect

        cut_w = min(int(math.sqrt(target_area * aspect)), width)
        cut_h = min(int(math.sqrt(target_area / aspect)), height)
        if cut_w <= 0 or cut_h <= 0:
            continue

        x = int(rng.integers(0, width - cut_w)) if width > cut_w else 0
        y = int(rng.integers(0, height - cut_h)) if height > cut_h else 0
        block = pixels[y : y + cut_h, x : x + cut_w]

        if fill_mode == "noise":
            block[..., :3] = rng.integers(0, 256, size=(cut_h, cut_w, 3), dtype=np.uint8)
            fill: Union[Tuple[int, int, int], str] = "noise"
        elif fill_mode == "random":
            fill = tuple(int(v) for v in rng.integers(0, 256, size=3))
            block[..., :3] = fill
        else:
            fill = fill_value
            block[..., :3] = fill
        block[..., 3] = 255

        regions.append(CutoutRegion(x=x, y=y, width=cut_w, height=cut_h, fill=fill))

    logger.debug(f"Applied {len(regions)} cutouts", extra={"operation": "cutout", "count": len(regions)})
    return CutoutResult(image=ImageBuffer(pixels, image.has_alpha), applied=True, seed=seed, regions=regions)
