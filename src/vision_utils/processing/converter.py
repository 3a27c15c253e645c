"""
Tensor to Image Conversion

Turns model-space float tensors (values in [0, 1], optionally normalized)
back into viewable images, and encodes images for transport.
"""

import base64
from typing import Sequence

import cv2
import numpy as np

from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.image import ImageBuffer
from vision_utils.processing.layout import DataLayout, to_hwc


def tensor_to_image(
    data: np.ndarray,
    width: int,
    height: int,
    channels: int = 3,
    layout: "DataLayout | str" = DataLayout.HWC,
    denormalize: bool = False,
    mean: Sequence[float] = (0.0, 0.0, 0.0),
    std: Sequence[float] = (1.0, 1.0, 1.0),
) -> ImageBuffer:
    """
    Convert a [0, 1] float tensor back into an ImageBuffer.

    Single-channel data is replicated to gray. With denormalize, color
    channel c becomes v * std[c] + mean[c] (indices clamp to the last
    element) before values are clamped to [0, 1] and scaled to 255.

    Args:
        data: Flat tensor data
        width: Image width
        height: Image height
        channels: 1, 3 or 4
        layout: Layout of data
        denormalize: Undo a (v - mean) / std normalization first
        mean: Per-channel means in [0, 1] units
        std: Per-channel standard deviations in [0, 1] units

    Returns:
        ImageBuffer; has_alpha is set for 4-channel input

    Raises:
        VisionUtilsError: INVALID_CHANNEL for unsupported channel counts,
            DIMENSION_MISMATCH when data does not hold width*height*channels values

    Example:
        >>> image = tensor_to_image(np.full(12, 0.5, dtype=np.float32), 2, 2)
        >>> image.pixels[0, 0].tolist()
        [128, 128, 128, 255]
    """
    if channels not in (1, 3, 4):
        raise VisionUtilsError(ErrorCode.INVALID_CHANNEL, f"Expected 1, 3 or 4 channels, got {channels}")

    layout = DataLayout.parse(layout)
    hwc = to_hwc(np.asarray(data, dtype=np.float64), width, height, channels, layout)
    hwc = hwc.reshape(height, width, channels)

    if channels == 1:
        color = np.repeat(hwc, 3, axis=2)
        alpha = np.ones((height, width), dtype=np.float64)
    else:
        color = hwc[..., :3].copy()
        alpha = hwc[..., 3] if channels == 4 else np.ones((height, width), dtype=np.float64)

    if denormalize:
        if len(mean) == 0 or len(std) == 0:
            raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, "Denormalization requires mean and std")
        std_vec = np.array([std[min(c, len(std) - 1)] for c in range(3)])
        mean_vec = np.array([mean[min(c, len(mean) - 1)] for c in range(3)])
        color = color * std_vec + mean_vec

    rgba = np.empty((height, width, 4), dtype=np.uint8)
    rgba[..., :3] = np.floor(np.clip(color, 0.0, 1.0) * 255.0 + 0.5)
    rgba[..., 3] = np.floor(np.clip(alpha, 0.0, 1.0) * 255.0 + 0.5)

    return ImageBuffer(rgba, has_alpha=channels == 4)


def encode_image(image: ImageBuffer, image_format: str = "png", quality: int = 100) -> bytes:
    """
    Encode an image as PNG, JPEG or WEBP bytes.

    Raises:
        VisionUtilsError: LOAD_ERROR if OpenCV fails to encode
    """
    image_format = (image_format or "png").lower()
    if image_format in ("jpeg", "jpg"):
        ext, params = ".jpg", [cv2.IMWRITE_JPEG_QUALITY, int(quality)]
        pixels = cv2.cvtColor(np.ascontiguousarray(image.pixels), cv2.COLOR_RGBA2BGR)
    elif image_format == "webp":
        ext, params = ".webp", [cv2.IMWRITE_WEBP_QUALITY, int(quality)]
        pixels = cv2.cvtColor(np.ascontiguousarray(image.pixels), cv2.COLOR_RGBA2BGRA)
    else:
        ext, params = ".png", []
        pixels = cv2.cvtColor(np.ascontiguousarray(image.pixels), cv2.COLOR_RGBA2BGRA)

    ok, encoded = cv2.imencode(ext, pixels, params)
    if not ok:
        raise VisionUtilsError(ErrorCode.LOAD_ERROR, f"Failed to encode image as {image_format}")
    return encoded.tobytes()


def encode_image_base64(image: ImageBuffer, image_format: str = "png", quality: int = 100) -> str:
    """encode_image, then base64 (no line wrapping)."""
    return base64.b64encode(encode_image(image, image_format, quality)).decode("ascii")
