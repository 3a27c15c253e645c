"""
Tensor Operations

Post-hoc operations on flat tensors produced by the pixel pipeline:

    extract_channel: One channel plane from HWC or CHW data
    extract_patch: Rectangular sub-region, keeping the layout
    concatenate_to_batch: Stack single-image results into [N, C, H, W]
    permute: General N-dimensional transpose
"""

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.layout import DataLayout, calculate_shape
from vision_utils.processing.pipeline import TensorResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatchResult:
    """A patch cut out of a tensor, in the source layout."""

    data: np.ndarray
    width: int
    height: int
    channels: int
    shape: Tuple[int, ...]


@dataclass(frozen=True)
class BatchTensor:
    """Stacked tensor with shape [N, C, H, W]."""

    data: np.ndarray
    shape: Tuple[int, int, int, int]
    batch_size: int

    def as_tensor(self) -> np.ndarray:
        return self.data.reshape(self.shape)


def _as_image_tensor(data: np.ndarray, width: int, height: int, channels: int, layout: DataLayout) -> np.ndarray:
    """View flat data as [H, W, C] (interleaved) or [C, H, W] (planar)."""
    flat = np.asarray(data).ravel()
    if flat.size != width * height * channels:
        raise VisionUtilsError(
            ErrorCode.DIMENSION_MISMATCH,
            f"Data has {flat.size} elements, expected {width}x{height}x{channels}",
        )
    if layout.is_planar:
        return flat.reshape(channels, height, width)
    return flat.reshape(height, width, channels)


def extract_channel(
    data: np.ndarray,
    width: int,
    height: int,
    channels: int,
    channel_index: int,
    layout: "DataLayout | str" = DataLayout.HWC,
) -> np.ndarray:
    """
    Pull one channel plane out of a tensor.

    Args:
        data: Flat tensor data
        width: Image width
        height: Image height
        channels: Channels per pixel
        channel_index: Channel to extract, in [0, channels)
        layout: Layout of data

    Returns:
        Flat array of width * height values

    Raises:
        VisionUtilsError: INVALID_CHANNEL if channel_index is out of range

    Example:
        >>> hwc = np.arange(12, dtype=np.float32)  # 2x2, 3 channels
        >>> extract_channel(hwc, 2, 2, 3, 1)
        array([ 1.,  4.,  7., 10.], dtype=float32)
    """
    if channel_index < 0 or channel_index >= channels:
        raise VisionUtilsError(
            ErrorCode.INVALID_CHANNEL,
            f"Channel index {channel_index} out of range [0, {channels})",
        )

    layout = DataLayout.parse(layout)
    tensor = _as_image_tensor(data, width, height, channels, layout)
    if layout.is_planar:
        return tensor[channel_index].ravel().copy()
    return tensor[:, :, channel_index].ravel()


def extract_patch(
    data: np.ndarray,
    width: int,
    height: int,
    channels: int,
    x: int,
    y: int,
    patch_width: int,
    patch_height: int,
    layout: "DataLayout | str" = DataLayout.HWC,
) -> PatchResult:
    """
    Copy a rectangular region out of a tensor, keeping its layout.

    Raises:
        VisionUtilsError: INVALID_PATCH if the region is empty or exceeds
            the tensor bounds
    """
    if patch_width <= 0 or patch_height <= 0:
        raise VisionUtilsError(
            ErrorCode.INVALID_PATCH, f"Patch size must be positive, got {patch_width}x{patch_height}"
        )
    if x < 0 or y < 0 or x + patch_width > width or y + patch_height > height:
        raise VisionUtilsError(
            ErrorCode.INVALID_PATCH,
            f"Patch ({x}, {y}, {patch_width}, {patch_height}) exceeds image bounds ({width}, {height})",
        )

    layout = DataLayout.parse(layout)
    tensor = _as_image_tensor(data, width, height, channels, layout)
    if layout.is_planar:
        patch = tensor[:, y : y + patch_height, x : x + patch_width]
    else:
        patch = tensor[y : y + patch_height, x : x + patch_width, :]

    return PatchResult(
        data=np.ascontiguousarray(patch).ravel(),
        width=patch_width,
        height=patch_height,
        channels=channels,
        shape=calculate_shape(patch_width, patch_height, channels, layout),
    )


def concatenate_to_batch(results: Sequence[TensorResult]) -> BatchTensor:
    """
    Stack single-image results into one [N, C, H, W] batch.

    Interleaved (HWC/NHWC) results are transposed to planar order so the
    data always matches the reported shape.

    Raises:
        VisionUtilsError: EMPTY_BATCH for no results, DIMENSION_MISMATCH
            when width, height or channels differ from the first result
    """
    if len(results) == 0:
        raise VisionUtilsError(ErrorCode.EMPTY_BATCH, "Cannot create batch from empty array")

    first = results[0]
    planes = []
    for i, result in enumerate(results):
        if (result.width, result.height, result.channels) != (first.width, first.height, first.channels):
            raise VisionUtilsError(
                ErrorCode.DIMENSION_MISMATCH,
                f"Result at index {i} is {result.width}x{result.height}x{result.channels}, "
                f"expected {first.width}x{first.height}x{first.channels}",
            )
        tensor = _as_image_tensor(result.data, result.width, result.height, result.channels, result.data_layout)
        if not result.data_layout.is_planar:
            tensor = tensor.transpose(2, 0, 1)
        planes.append(tensor)

    batch = np.ascontiguousarray(np.stack(planes))
    logger.debug(f"Concatenated {len(results)} tensors", extra={"operation": "concatenate", "shape": batch.shape})

    return BatchTensor(
        data=batch.ravel(),
        shape=(len(results), first.channels, first.height, first.width),
        batch_size=len(results),
    )


def permute(data: np.ndarray, shape: Sequence[int], order: Sequence[int]) -> Tuple[np.ndarray, Tuple[int, ...]]:
    """
    Reorder tensor dimensions.

    Output dimension i is input dimension order[i]; the result is laid out
    row-major in the new shape.

    Args:
        data: Flat tensor data
        shape: Shape of data
        order: Permutation of range(len(shape))

    Returns:
        Tuple of:
            - permuted: Flat permuted data
            - new_shape: tuple(shape[o] for o in order)

    Raises:
        VisionUtilsError: INVALID_OPTIONS if order is not a permutation of
            the shape's axes, DIMENSION_MISMATCH if data does not fill shape

    Example:
        >>> permuted, new_shape = permute(np.arange(6), (2, 3), (1, 0))
        >>> permuted.tolist(), new_shape
        ([0, 3, 1, 4, 2, 5], (3, 2))
    """
    if len(order) != len(shape):
        raise VisionUtilsError(
            ErrorCode.INVALID_OPTIONS,
            f"Order length {len(order)} doesn't match shape dimensions {len(shape)}",
        )
    if sorted(order) != list(range(len(shape))):
        raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, f"Order {list(order)} is not a permutation")

    flat = np.asarray(data).ravel()
    if flat.size != int(np.prod(shape)):
        raise VisionUtilsError(
            ErrorCode.DIMENSION_MISMATCH,
            f"Data has {flat.size} elements, shape {tuple(shape)} needs {int(np.prod(shape))}",
        )

    permuted = np.ascontiguousarray(flat.reshape(tuple(shape)).transpose(tuple(order))).ravel()
    return permuted, tuple(int(shape[o]) for o in order)
