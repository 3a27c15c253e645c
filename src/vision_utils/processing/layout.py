"""
Tensor Layouts

Reindexes interleaved HWC pixel data into the layout a model expects.
HWC and NHWC share the same memory order (the batch dimension of 1 only
appears in the shape), as do CHW and NCHW.
"""

from enum import Enum
from typing import Tuple

import numpy as np

from vision_utils.errors import ErrorCode, VisionUtilsError


class DataLayout(str, Enum):
    """Memory order of a tensor."""

    HWC = "hwc"
    CHW = "chw"
    NHWC = "nhwc"
    NCHW = "nchw"

    @classmethod
    def parse(cls, value: "str | DataLayout | None") -> "DataLayout":
        """Parse a layout name case-insensitively; unknown names become HWC."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.HWC

    @property
    def is_planar(self) -> bool:
        return self in (DataLayout.CHW, DataLayout.NCHW)

    @property
    def is_batched(self) -> bool:
        return self in (DataLayout.NHWC, DataLayout.NCHW)


def calculate_shape(width: int, height: int, channels: int, layout: DataLayout) -> Tuple[int, ...]:
    """
    Shape of a single-image tensor in the given layout.

    Example:
        >>> calculate_shape(640, 480, 3, DataLayout.NCHW)
        (1, 3, 480, 640)
    """
    if layout is DataLayout.HWC:
        return (height, width, channels)
    if layout is DataLayout.CHW:
        return (channels, height, width)
    if layout is DataLayout.NHWC:
        return (1, height, width, channels)
    return (1, channels, height, width)


def _check_size(data: np.ndarray, width: int, height: int, channels: int) -> None:
    expected = width * height * channels
    if data.size != expected:
        raise VisionUtilsError(
            ErrorCode.DIMENSION_MISMATCH,
            f"Data has {data.size} elements, expected {width}x{height}x{channels}={expected}",
        )


def to_layout(
    data: np.ndarray,
    width: int,
    height: int,
    channels: int,
    layout: DataLayout,
) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """
    Convert HWC-interleaved data to the target layout.

    Args:
        data: HWC data, flat or [H, W, C]
        width: Image width
        height: Image height
        channels: Channels per pixel
        layout: Target DataLayout

    Returns:
        Tuple of:
            - flat: 1-D array in the target memory order
            - shape: Tensor shape for the layout

    Raises:
        VisionUtilsError: DIMENSION_MISMATCH if data does not hold H*W*C values

    Example:
        >>> hwc = np.arange(12, dtype=np.float32)  # 2x2 pixels, 3 channels
        >>> flat, shape = to_layout(hwc, 2, 2, 3, DataLayout.CHW)
        >>> flat[:4], shape
        (array([0., 3., 6., 9.], dtype=float32), (3, 2, 2))
    """
    data = np.asarray(data)
    _check_size(data, width, height, channels)

    hwc = data.reshape(height, width, channels)
    if layout.is_planar:
        flat = np.ascontiguousarray(hwc.transpose(2, 0, 1)).ravel()
    else:
        flat = hwc.ravel().copy()

    return flat, calculate_shape(width, height, channels, layout)


def to_hwc(
    data: np.ndarray,
    width: int,
    height: int,
    channels: int,
    layout: DataLayout,
) -> np.ndarray:
    """
    Convert data in any layout back to flat HWC order.

    Exact inverse of to_layout for the same dimensions.
    """
    data = np.asarray(data)
    _check_size(data, width, height, channels)

    if layout.is_planar:
        chw = data.reshape(channels, height, width)
        return np.ascontiguousarray(chw.transpose(1, 2, 0)).ravel()
    return data.ravel().copy()
