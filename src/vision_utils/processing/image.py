"""
Image Buffers and Loading

ImageBuffer is the immutable pixel grid every transform consumes: an
RGBA uint8 array with shape [H, W, 4] plus a has_alpha flag. Transforms
never write into a buffer; each stage allocates a fresh one.

Loading is a thin OpenCV layer standing in for the platform decoders:

    load_image: Decode an ImageSource (file, base64, url)
    load_image_from_bytes: Decode encoded image bytes
"""

import base64
import binascii
import logging
import os
import urllib.error
import urllib.request
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import cv2
import numpy as np

from vision_utils.errors import ErrorCode, VisionUtilsError

logger = logging.getLogger(__name__)

URL_TIMEOUT_SECONDS: float = 30.0


# =============================================================================
# Image Buffer
# =============================================================================

@dataclass(frozen=True, eq=False)
class ImageBuffer:
    """
    Immutable RGBA pixel grid.

    Attributes:
        pixels: Read-only uint8 array with shape [H, W, 4] in RGBA order
        has_alpha: Whether the alpha channel carries information
    """

    pixels: np.ndarray
    has_alpha: bool = False

    def __post_init__(self) -> None:
        pixels = self.pixels
        if not isinstance(pixels, np.ndarray):
            raise VisionUtilsError(
                ErrorCode.INVALID_DIMENSIONS,
                f"Expected numpy array, got {type(pixels)}",
            )
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise VisionUtilsError(
                ErrorCode.INVALID_DIMENSIONS,
                f"Expected RGBA array [H, W, 4], got shape {pixels.shape}",
            )
        if pixels.dtype != np.uint8:
            raise VisionUtilsError(
                ErrorCode.INVALID_DIMENSIONS,
                f"Expected uint8 dtype, got {pixels.dtype}",
            )
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise VisionUtilsError(
                ErrorCode.INVALID_DIMENSIONS,
                f"Image must be at least 1x1, got {pixels.shape[1]}x{pixels.shape[0]}",
            )
        if pixels.flags.writeable:
            view = pixels.view()
            view.flags.writeable = False
            object.__setattr__(self, "pixels", view)

    @classmethod
    def from_array(cls, array: np.ndarray, has_alpha: Optional[bool] = None) -> "ImageBuffer":
        """
        Build an ImageBuffer from a grayscale, RGB or RGBA uint8 array.

        The input is copied; later writes to it do not affect the buffer.

        Args:
            array: uint8 array with shape [H, W], [H, W, 3] or [H, W, 4]
            has_alpha: Override for the alpha flag (default: True for 4 channels)

        Returns:
            New ImageBuffer

        Raises:
            VisionUtilsError: INVALID_DIMENSIONS for unsupported shapes

        Example:
            >>> rgb = np.zeros((2, 3, 3), dtype=np.uint8)
            >>> ImageBuffer.from_array(rgb).pixels.shape
            (2, 3, 4)
        """
        array = np.asarray(array)
        if array.dtype != np.uint8:
            raise VisionUtilsError(
                ErrorCode.INVALID_DIMENSIONS, f"Expected uint8 dtype, got {array.dtype}"
            )

        if array.ndim == 2:
            rgba = np.empty((*array.shape, 4), dtype=np.uint8)
            rgba[..., :3] = array[..., None]
            rgba[..., 3] = 255
            alpha = False
        elif array.ndim == 3 and array.shape[2] == 3:
            rgba = np.empty((*array.shape[:2], 4), dtype=np.uint8)
            rgba[..., :3] = array
            rgba[..., 3] = 255
            alpha = False
        elif array.ndim == 3 and array.shape[2] == 4:
            rgba = array.copy()
            alpha = True
        else:
            raise VisionUtilsError(
                ErrorCode.INVALID_DIMENSIONS,
                f"Expected [H, W], [H, W, 3] or [H, W, 4] array, got shape {array.shape}",
            )

        return cls(rgba, alpha if has_alpha is None else has_alpha)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        """Read-only RGB view [H, W, 3]."""
        return self.pixels[..., :3]

    def to_rgb(self) -> np.ndarray:
        """Writable RGB copy [H, W, 3]."""
        return self.pixels[..., :3].copy()


# =============================================================================
# Image Sources
# =============================================================================

class ImageSourceType(str, Enum):
    """Where an image comes from."""

    URL = "url"
    FILE = "file"
    BASE64 = "base64"
    ASSET = "asset"
    PHOTO_LIBRARY = "photo_library"

    @classmethod
    def parse(cls, value: str) -> "ImageSourceType":
        """Parse a source type name; unknown names are an error."""
        normalized = str(value).strip().lower()
        if normalized == "photolibrary":
            normalized = "photo_library"
        for member in cls:
            if member.value == normalized:
                return member
        raise VisionUtilsError(ErrorCode.INVALID_SOURCE, f"Unknown image source type: {value}")


@dataclass(frozen=True)
class ImageSource:
    """Source descriptor, hashable so it can key a result cache."""

    type: ImageSourceType
    value: str

    @classmethod
    def from_dict(cls, data: dict) -> "ImageSource":
        """Build from a {"type": ..., "value": ...} mapping."""
        if "type" not in data:
            raise VisionUtilsError(ErrorCode.INVALID_SOURCE, "Missing source type")
        if not data.get("value"):
            raise VisionUtilsError(ErrorCode.INVALID_SOURCE, "Missing source value")
        return cls(ImageSourceType.parse(data["type"]), str(data["value"]))


# =============================================================================
# Decoding
# =============================================================================

def _decoded_to_buffer(decoded: np.ndarray) -> ImageBuffer:
    """Convert an OpenCV decode result (gray/BGR/BGRA) to an ImageBuffer."""
    if decoded.dtype != np.uint8:
        # 16-bit PNGs and friends
        decoded = (decoded / 257).astype(np.uint8)

    if decoded.ndim == 2:
        return ImageBuffer.from_array(decoded)
    if decoded.shape[2] == 4:
        return ImageBuffer.from_array(cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA), has_alpha=True)
    return ImageBuffer.from_array(cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB))


def load_image_from_bytes(image_bytes: bytes) -> ImageBuffer:
    """
    Decode encoded image bytes (JPEG, PNG, ...) into an ImageBuffer.

    Args:
        image_bytes: Raw encoded bytes

    Returns:
        Decoded ImageBuffer

    Raises:
        VisionUtilsError: LOAD_ERROR if the bytes are empty or undecodable
    """
    if not image_bytes:
        raise VisionUtilsError(ErrorCode.LOAD_ERROR, "Failed to decode image from bytes: empty input")

    nparr = np.frombuffer(image_bytes, np.uint8)
    decoded = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)

    if decoded is None:
        raise VisionUtilsError(ErrorCode.LOAD_ERROR, "Failed to decode image from bytes")

    return _decoded_to_buffer(decoded)


def _load_file(path: str) -> ImageBuffer:
    if path.startswith("file://"):
        path = path[len("file://"):]

    if not os.path.exists(path):
        raise VisionUtilsError(ErrorCode.FILE_NOT_FOUND, f"File not found: {path}")
    if not os.access(path, os.R_OK):
        raise VisionUtilsError(ErrorCode.PERMISSION_DENIED, f"Cannot read file: {path}")

    decoded = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if decoded is None:
        raise VisionUtilsError(ErrorCode.LOAD_ERROR, f"Failed to load image: {path}")

    return _decoded_to_buffer(decoded)


def _load_base64(value: str) -> ImageBuffer:
    # Tolerate data URIs: "data:image/png;base64,...."
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]

    try:
        raw = base64.b64decode(value, validate=False)
    except (binascii.Error, ValueError) as e:
        raise VisionUtilsError(ErrorCode.INVALID_SOURCE, f"Invalid base64 data: {e}") from e

    return load_image_from_bytes(raw)


def _load_url(url: str) -> ImageBuffer:
    try:
        with urllib.request.urlopen(url, timeout=URL_TIMEOUT_SECONDS) as response:
            raw = response.read()
    except (urllib.error.URLError, OSError) as e:
        raise VisionUtilsError(ErrorCode.LOAD_ERROR, f"Failed to fetch {url}: {e}") from e

    return load_image_from_bytes(raw)


def load_image(source: ImageSource) -> ImageBuffer:
    """
    Load an image from a source descriptor.

    Args:
        source: ImageSource naming a file path, base64 payload or URL

    Returns:
        Decoded ImageBuffer

    Raises:
        VisionUtilsError: FILE_NOT_FOUND, PERMISSION_DENIED, LOAD_ERROR or
            INVALID_SOURCE depending on the failure

    Example:
        >>> image = load_image(ImageSource(ImageSourceType.FILE, "photo.jpg"))
        >>> image.pixels.shape
        (1080, 1920, 4)
    """
    logger.debug(f"Loading image from {source.type.value} source")

    if source.type is ImageSourceType.FILE:
        return _load_file(source.value)
    if source.type is ImageSourceType.BASE64:
        return _load_base64(source.value)
    if source.type is ImageSourceType.URL:
        return _load_url(source.value)

    raise VisionUtilsError(
        ErrorCode.INVALID_SOURCE,
        f"Source type '{source.type.value}' is only available through the mobile bridge",
    )
