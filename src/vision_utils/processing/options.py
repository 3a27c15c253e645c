"""Pixel pipeline configuration.

PixelOptions is the parsed, immutable form of the caller's options map.
All "unrecognized -> default" normalization happens in from_dict, so the
numeric stages only ever see enum members and tuples.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from vision_utils.config import get_default
from vision_utils.processing.colorspace import ColorFormat
from vision_utils.processing.geometry import ResizeOptions
from vision_utils.processing.layout import DataLayout
from vision_utils.processing.normalize import Normalization
from vision_utils.processing.quantization import (
    QuantDType,
    QuantizationMode,
    QuantizationParams,
    _as_tuple,
)
from vision_utils.processing.transforms import Roi


@dataclass(frozen=True)
class QuantizationOptions:
    """Optional final pipeline stage.

    Attributes:
        dtype: Integer target type
        mode: PER_TENSOR or PER_CHANNEL
        scale: Fixed scale(s); None calibrates from the data
        zero_point: Fixed zero point(s); ignored when calibrating
        symmetric: Symmetric calibration
    """

    dtype: QuantDType = QuantDType.INT8
    mode: QuantizationMode = QuantizationMode.PER_TENSOR
    scale: Optional[tuple[float, ...]] = None
    zero_point: tuple[float, ...] = (0.0,)
    symmetric: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuantizationOptions":
        scale = data.get("scale")
        return cls(
            dtype=QuantDType.parse(data.get("dtype", get_default("quantization", "dtype"))),
            mode=QuantizationMode.parse(data.get("mode", get_default("quantization", "mode"))),
            scale=None if scale is None else _as_tuple(scale),
            zero_point=_as_tuple(data.get("zero_point", 0.0)),
            symmetric=bool(data.get("symmetric", False)),
        )

    def fixed_params(self) -> Optional[QuantizationParams]:
        """Params when a scale was given, else None (calibrate)."""
        if self.scale is None:
            return None
        return QuantizationParams(
            scale=self.scale,
            zero_point=self.zero_point,
            dtype=self.dtype,
            mode=self.mode,
        )


def _parse_normalization(value: Any) -> Optional[Normalization]:
    # absent key means SCALE; an explicit None skips the stage
    if value is None or isinstance(value, Normalization):
        return value
    return Normalization.from_dict(value)


@dataclass(frozen=True)
class PixelOptions:
    """Configuration for PixelProcessor.

    Stage order is fixed: roi -> resize -> color_format -> normalization
    -> data_layout -> quantization. A None roi, resize or quantization
    skips that stage; normalization defaults to the SCALE preset and None
    skips it like the RAW preset.

    Attributes:
        color_format: Output color format (sets the channel count)
        resize: Target size and strategy
        roi: Region cropped before resizing
        normalization: Normalization preset or custom mean/std
        data_layout: Output memory layout
        quantization: Optional integer quantization
    """

    color_format: ColorFormat = ColorFormat.RGB
    resize: Optional[ResizeOptions] = None
    roi: Optional[Roi] = None
    normalization: Optional[Normalization] = field(default_factory=Normalization)
    data_layout: DataLayout = DataLayout.HWC
    quantization: Optional[QuantizationOptions] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PixelOptions":
        """
        Parse a caller options map.

        Example:
            >>> opts = PixelOptions.from_dict({"color_format": "BGR", "data_layout": "nchw"})
            >>> opts.color_format, opts.data_layout
            (<ColorFormat.BGR: 'bgr'>, <DataLayout.NCHW: 'nchw'>)
        """
        data = data or {}
        resize = data.get("resize")
        roi = data.get("roi")
        normalization = data.get("normalization", Normalization())
        quantization = data.get("quantization")

        return cls(
            color_format=ColorFormat.parse(data.get("color_format")),
            resize=None if resize is None else ResizeOptions.from_dict(resize),
            roi=None if roi is None else Roi.from_dict(roi),
            normalization=_parse_normalization(normalization),
            data_layout=DataLayout.parse(data.get("data_layout")),
            quantization=None if quantization is None else QuantizationOptions.from_dict(quantization),
        )
