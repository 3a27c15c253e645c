"""
Affine Quantization

Maps float tensors onto a fixed-width integer grid and back:

    quantize:   q = clamp(round(v / scale + zero_point), qmin, qmax)
    dequantize: v = (q - zero_point) * scale

Rounding is half-up, matching the mobile implementations. Per-channel
mode selects each element's channel from the data layout: interleaved for
HWC/NHWC, planar for CHW/NCHW.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Tuple

import numpy as np

from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.layout import DataLayout

logger = logging.getLogger(__name__)


# =============================================================================
# Types
# =============================================================================

class QuantDType(str, Enum):
    """Integer target type with a fixed range."""

    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"

    @classmethod
    def parse(cls, value: "str | QuantDType | None") -> "QuantDType":
        """Parse a dtype name; unknown names use the INT8 range."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.INT8

    @property
    def qmin(self) -> int:
        return int(np.iinfo(self.numpy_dtype).min)

    @property
    def qmax(self) -> int:
        return int(np.iinfo(self.numpy_dtype).max)

    @property
    def numpy_dtype(self) -> type:
        return {"int8": np.int8, "uint8": np.uint8, "int16": np.int16}[self.value]


class QuantizationMode(str, Enum):
    """One scale/zero point for the tensor, or one per channel."""

    PER_TENSOR = "per-tensor"
    PER_CHANNEL = "per-channel"

    @classmethod
    def parse(cls, value: "str | QuantizationMode | None") -> "QuantizationMode":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower().replace("_", "-")
        if normalized == cls.PER_CHANNEL.value:
            return cls.PER_CHANNEL
        return cls.PER_TENSOR


def _as_tuple(value: Any) -> Tuple[float, ...]:
    """Normalize a scalar or sequence to a tuple of floats."""
    return tuple(float(v) for v in np.atleast_1d(np.asarray(value, dtype=np.float64)))


@dataclass(frozen=True)
class QuantizationParams:
    """
    Scale and zero point for quantize/dequantize.

    Scalars are stored as 1-tuples, so the numeric code sees one shape.

    Attributes:
        scale: Scale per tensor (length 1) or per channel
        zero_point: Zero point per tensor (length 1) or per channel
        dtype: Integer target type
        mode: PER_TENSOR or PER_CHANNEL
    """

    scale: Tuple[float, ...]
    zero_point: Tuple[float, ...]
    dtype: QuantDType = QuantDType.INT8
    mode: QuantizationMode = QuantizationMode.PER_TENSOR

    @classmethod
    def create(
        cls,
        scale: Any,
        zero_point: Any = 0.0,
        dtype: "str | QuantDType" = QuantDType.INT8,
        mode: "str | QuantizationMode" = QuantizationMode.PER_TENSOR,
    ) -> "QuantizationParams":
        """Build params from scalars or sequences."""
        return cls(
            scale=_as_tuple(scale),
            zero_point=_as_tuple(zero_point),
            dtype=QuantDType.parse(dtype),
            mode=QuantizationMode.parse(mode),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuantizationParams":
        if "scale" not in data:
            raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, "Scale is required for quantization")
        return cls.create(
            scale=data["scale"],
            zero_point=data.get("zero_point", 0.0),
            dtype=data.get("dtype", QuantDType.INT8),
            mode=data.get("mode", QuantizationMode.PER_TENSOR),
        )

    def to_dict(self) -> dict:
        per_tensor = self.mode is QuantizationMode.PER_TENSOR
        return {
            "scale": self.scale[0] if per_tensor else list(self.scale),
            "zero_point": self.zero_point[0] if per_tensor else list(self.zero_point),
            "dtype": self.dtype.value,
            "mode": self.mode.value,
        }


@dataclass(frozen=True)
class CalibrationResult:
    """Output of calculate_quantization_params."""

    params: QuantizationParams
    min: Tuple[float, ...]
    max: Tuple[float, ...]


# =============================================================================
# Helpers
# =============================================================================

def _channel_view(data: np.ndarray, channels: int, layout: DataLayout) -> np.ndarray:
    """View flat data as [channels, pixels]-compatible 2-D array."""
    if data.size % channels != 0:
        raise VisionUtilsError(
            ErrorCode.DIMENSION_MISMATCH,
            f"Data length {data.size} is not a multiple of {channels} channels",
        )
    if layout.is_planar:
        return data.reshape(channels, -1)
    return data.reshape(-1, channels)


def _broadcast(params: QuantizationParams, channels: int, layout: DataLayout) -> Tuple[np.ndarray, np.ndarray]:
    """Scale and zero point arrays shaped to broadcast against _channel_view."""
    scale = np.asarray(params.scale, dtype=np.float64)
    zero_point = np.asarray(params.zero_point, dtype=np.float64)

    if params.mode is QuantizationMode.PER_TENSOR:
        return scale[:1], zero_point[:1]

    if len(scale) != channels or len(zero_point) != channels:
        raise VisionUtilsError(
            ErrorCode.INVALID_OPTIONS,
            f"Per-channel scale/zero_point must have {channels} elements, "
            f"got {len(scale)}/{len(zero_point)}",
        )
    if layout.is_planar:
        return scale[:, None], zero_point[:, None]
    return scale[None, :], zero_point[None, :]


# =============================================================================
# Public API
# =============================================================================

def quantize(
    data: np.ndarray,
    params: QuantizationParams,
    channels: int = 3,
    layout: DataLayout = DataLayout.HWC,
) -> np.ndarray:
    """
    Quantize float data to integers.

    Args:
        data: Float data (any shape, treated as flat)
        params: Scale/zero point/dtype/mode
        channels: Channel count for per-channel mode
        layout: Memory order for per-channel mode

    Returns:
        Flat array of params.dtype

    Raises:
        VisionUtilsError: INVALID_OPTIONS for a zero scale, non-finite data
            or per-channel arrays whose length differs from channels

    Example:
        >>> quantize(np.array([0.0, 0.5, 10.0]), QuantizationParams.create(0.1, 0))
        array([  0,   5, 100], dtype=int8)
    """
    if any(s == 0 for s in params.scale):
        raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, "Quantization scale must be non-zero")

    flat = np.asarray(data, dtype=np.float64).ravel()
    if not np.isfinite(flat).all():
        raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, "Cannot quantize NaN or infinite values")
    view = _channel_view(flat, channels if params.mode is QuantizationMode.PER_CHANNEL else 1, layout)
    scale, zero_point = _broadcast(params, channels, layout)

    quantized = np.floor(view / scale + zero_point + 0.5)
    quantized = np.clip(quantized, params.dtype.qmin, params.dtype.qmax)
    return quantized.astype(params.dtype.numpy_dtype).ravel()


def dequantize(
    data: np.ndarray,
    params: QuantizationParams,
    channels: int = 3,
    layout: DataLayout = DataLayout.HWC,
) -> np.ndarray:
    """
    Dequantize integers back to float32: v = (q - zero_point) * scale.

    Raises:
        VisionUtilsError: INVALID_OPTIONS for per-channel length mismatch
    """
    flat = np.asarray(data, dtype=np.float64).ravel()
    view = _channel_view(flat, channels if params.mode is QuantizationMode.PER_CHANNEL else 1, layout)
    scale, zero_point = _broadcast(params, channels, layout)

    return ((view - zero_point) * scale).astype(np.float32).ravel()


def calculate_quantization_params(
    data: np.ndarray,
    dtype: "str | QuantDType" = QuantDType.INT8,
    mode: "str | QuantizationMode" = QuantizationMode.PER_TENSOR,
    symmetric: bool = False,
    channels: int = 3,
    layout: DataLayout = DataLayout.HWC,
) -> CalibrationResult:
    """
    Derive scale and zero point from the data range.

    Symmetric: scale = max(|min|, |max|) / max(|qmin|, |qmax|), zero point 0.
    Asymmetric: scale = (max - min) / (qmax - qmin), zero point = qmin - min / scale.
    A degenerate range (min == max, or a scale that is 0, NaN or infinite)
    yields scale 1, zero point 0.

    Args:
        data: Float data to calibrate on
        dtype: Integer target type
        mode: PER_TENSOR or PER_CHANNEL
        symmetric: Use symmetric quantization
        channels: Channel count for per-channel mode
        layout: Memory order for per-channel mode

    Returns:
        CalibrationResult with params and the observed min/max

    Raises:
        VisionUtilsError: EMPTY_BATCH for empty data

    Example:
        >>> result = calculate_quantization_params(np.zeros(10), symmetric=True)
        >>> result.params.scale
        (1.0,)
    """
    dtype = QuantDType.parse(dtype)
    mode = QuantizationMode.parse(mode)

    flat = np.asarray(data, dtype=np.float64).ravel()
    if flat.size == 0:
        raise VisionUtilsError(ErrorCode.EMPTY_BATCH, "Cannot calibrate on empty data")

    if mode is QuantizationMode.PER_CHANNEL:
        view = _channel_view(flat, channels, layout)
        axis = 1 if layout.is_planar else 0
        mins = view.min(axis=axis)
        maxs = view.max(axis=axis)
    else:
        mins = np.array([flat.min()])
        maxs = np.array([flat.max()])

    qmin, qmax = float(dtype.qmin), float(dtype.qmax)

    with np.errstate(divide="ignore", invalid="ignore"):
        if symmetric:
            scales = np.maximum(np.abs(mins), np.abs(maxs)) / max(abs(qmin), abs(qmax))
            zero_points = np.zeros_like(scales)
        else:
            scales = (maxs - mins) / (qmax - qmin)
            zero_points = qmin - mins / scales

    degenerate = (maxs == mins) | (scales == 0) | ~np.isfinite(scales)
    scales = np.where(degenerate, 1.0, scales)
    zero_points = np.where(degenerate, 0.0, zero_points)

    if degenerate.any():
        logger.debug(f"Degenerate range on {int(degenerate.sum())} channel(s), using scale 1")

    params = QuantizationParams(
        scale=tuple(float(s) for s in scales),
        zero_point=tuple(float(z) for z in zero_points),
        dtype=dtype,
        mode=mode,
    )
    return CalibrationResult(
        params=params,
        min=tuple(float(v) for v in mins),
        max=tuple(float(v) for v in maxs),
    )
