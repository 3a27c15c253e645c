"""
Color Space Conversion

Converts RGBA pixel grids into float32 channel data for one of ten
output formats. All conversions are per-pixel, vectorized with numpy,
and follow fixed formulas so results match the mobile implementations:

    GRAYSCALE: BT.601 luma 0.299R + 0.587G + 0.114B
    HSV / HSL: hexagonal hue in [0, 360), S/V/L scaled to [0, 255]
    LAB:       sRGB -> linear -> XYZ (D65) -> L*a*b*, a/b shifted by +128
    YUV:       analog YUV with U/V offset by 128
    YCBCR:     BT.601 studio-swing YCbCr
"""

from enum import Enum

import numpy as np

from vision_utils.processing.image import ImageBuffer


# =============================================================================
# Color Formats
# =============================================================================

class ColorFormat(str, Enum):
    """Output color format; determines channel count (1, 3 or 4)."""

    RGB = "rgb"
    RGBA = "rgba"
    BGR = "bgr"
    BGRA = "bgra"
    GRAYSCALE = "grayscale"
    HSV = "hsv"
    HSL = "hsl"
    LAB = "lab"
    YUV = "yuv"
    YCBCR = "ycbcr"

    @classmethod
    def parse(cls, value: str | None) -> "ColorFormat":
        """Parse a format name case-insensitively; unknown names become RGB."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.RGB

    @property
    def channels(self) -> int:
        if self is ColorFormat.GRAYSCALE:
            return 1
        if self in (ColorFormat.RGBA, ColorFormat.BGRA):
            return 4
        return 3


# =============================================================================
# Constants
# =============================================================================

# BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)

# sRGB (linear) -> XYZ, D65 white point
_RGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ],
    dtype=np.float64,
)
_D65_WHITE = np.array([0.95047, 1.00000, 1.08883], dtype=np.float64)

_YUV_MATRIX = np.array(
    [
        [0.299, 0.587, 0.114],
        [-0.14713, -0.28886, 0.436],
        [0.615, -0.51499, -0.10001],
    ],
    dtype=np.float64,
)
_YUV_OFFSET = np.array([0.0, 128.0, 128.0])

_YCBCR_MATRIX = np.array(
    [
        [65.481, 128.553, 24.966],
        [-37.797, -74.203, 112.0],
        [112.0, -93.786, -18.214],
    ],
    dtype=np.float64,
) / 255.0
_YCBCR_OFFSET = np.array([16.0, 128.0, 128.0])


# =============================================================================
# Per-format helpers
# =============================================================================

def _hue(rf: np.ndarray, gf: np.ndarray, bf: np.ndarray, max_val: np.ndarray, delta: np.ndarray) -> np.ndarray:
    """Hexagonal hue in degrees, [0, 360). Zero where delta == 0."""
    safe_delta = np.where(delta == 0, 1.0, delta)
    # fmod keeps the dividend's sign; negatives are wrapped below
    h_r = 60.0 * np.fmod((gf - bf) / safe_delta, 6.0)
    h_g = 60.0 * ((bf - rf) / safe_delta + 2.0)
    h_b = 60.0 * ((rf - gf) / safe_delta + 4.0)

    hue = np.where(max_val == rf, h_r, np.where(max_val == gf, h_g, h_b))
    hue = np.where(hue < 0, hue + 360.0, hue)
    return np.where(delta == 0, 0.0, hue)


def rgb_to_hsv(rgb: np.ndarray) -> np.ndarray:
    """
    Convert RGB [..., 3] (0-255) to HSV with H in degrees and S, V in [0, 255].

    Example:
        >>> rgb_to_hsv(np.array([[255, 0, 0]]))
        array([[  0., 255., 255.]])
    """
    scaled = np.asarray(rgb, dtype=np.float64) / 255.0
    rf, gf, bf = scaled[..., 0], scaled[..., 1], scaled[..., 2]

    max_val = scaled.max(axis=-1)
    min_val = scaled.min(axis=-1)
    delta = max_val - min_val

    s = np.where(max_val == 0, 0.0, delta / np.where(max_val == 0, 1.0, max_val))
    h = _hue(rf, gf, bf, max_val, delta)

    return np.stack([h, s * 255.0, max_val * 255.0], axis=-1)


def rgb_to_hsl(rgb: np.ndarray) -> np.ndarray:
    """Convert RGB [..., 3] (0-255) to HSL with H in degrees and S, L in [0, 255]."""
    scaled = np.asarray(rgb, dtype=np.float64) / 255.0
    rf, gf, bf = scaled[..., 0], scaled[..., 1], scaled[..., 2]

    max_val = scaled.max(axis=-1)
    min_val = scaled.min(axis=-1)
    delta = max_val - min_val
    lightness = (max_val + min_val) / 2.0

    low = max_val + min_val
    high = 2.0 - max_val - min_val
    denominator = np.where(lightness <= 0.5, low, high)
    s = np.where(delta == 0, 0.0, delta / np.where(denominator == 0, 1.0, denominator))
    h = _hue(rf, gf, bf, max_val, delta)

    return np.stack([h, s * 255.0, lightness * 255.0], axis=-1)


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """
    Convert RGB [..., 3] (0-255) to L*a*b* with a and b shifted by +128.

    L is in [0, 100]; shifted a/b land roughly in [0, 255].
    """
    scaled = np.asarray(rgb, dtype=np.float64) / 255.0

    # sRGB gamma expansion
    linear = np.where(
        scaled > 0.04045,
        np.power((scaled + 0.055) / 1.055, 2.4),
        scaled / 12.92,
    )

    xyz = linear @ _RGB_TO_XYZ.T / _D65_WHITE
    f = np.where(xyz > 0.008856, np.cbrt(xyz), 7.787 * xyz + 16.0 / 116.0)
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]

    lightness = 116.0 * fy - 16.0
    a = 500.0 * (fx - fy)
    b = 200.0 * (fy - fz)

    return np.stack([lightness, a + 128.0, b + 128.0], axis=-1)


def rgb_to_yuv(rgb: np.ndarray) -> np.ndarray:
    """Convert RGB [..., 3] (0-255) to YUV with U and V offset by 128."""
    return np.asarray(rgb, dtype=np.float64) @ _YUV_MATRIX.T + _YUV_OFFSET


def rgb_to_ycbcr(rgb: np.ndarray) -> np.ndarray:
    """Convert RGB [..., 3] (0-255) to BT.601 YCbCr."""
    return np.asarray(rgb, dtype=np.float64) @ _YCBCR_MATRIX.T + _YCBCR_OFFSET


def rgb_to_grayscale(rgb: np.ndarray) -> np.ndarray:
    """BT.601 luma of RGB [..., 3], keeping a trailing channel axis."""
    rgb = np.asarray(rgb, dtype=np.float64)
    r, g, b = LUMA_WEIGHTS
    return (r * rgb[..., 0] + g * rgb[..., 1] + b * rgb[..., 2])[..., None]


# =============================================================================
# Public API
# =============================================================================

def convert_color(image: ImageBuffer | np.ndarray, color_format: ColorFormat) -> np.ndarray:
    """
    Convert an image into float32 channel data in HWC order.

    Args:
        image: ImageBuffer, or RGBA uint8 array [H, W, 4]
        color_format: Target ColorFormat

    Returns:
        float32 array with shape [H, W, color_format.channels]

    Example:
        >>> rgba = np.full((2, 2, 4), 255, dtype=np.uint8)
        >>> convert_color(rgba, ColorFormat.GRAYSCALE).shape
        (2, 2, 1)
    """
    rgba = image.pixels if isinstance(image, ImageBuffer) else np.asarray(image)
    rgb = rgba[..., :3]

    if color_format is ColorFormat.RGB:
        converted = rgb
    elif color_format is ColorFormat.RGBA:
        converted = rgba
    elif color_format is ColorFormat.BGR:
        converted = rgb[..., ::-1]
    elif color_format is ColorFormat.BGRA:
        converted = rgba[..., [2, 1, 0, 3]]
    elif color_format is ColorFormat.GRAYSCALE:
        converted = rgb_to_grayscale(rgb)
    elif color_format is ColorFormat.HSV:
        converted = rgb_to_hsv(rgb)
    elif color_format is ColorFormat.HSL:
        converted = rgb_to_hsl(rgb)
    elif color_format is ColorFormat.LAB:
        converted = rgb_to_lab(rgb)
    elif color_format is ColorFormat.YUV:
        converted = rgb_to_yuv(rgb)
    else:
        converted = rgb_to_ycbcr(rgb)

    return np.ascontiguousarray(converted, dtype=np.float32)
