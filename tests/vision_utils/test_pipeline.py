"""
Unit Tests for the Pixel Pipeline

This module tests:
- options.py: PixelOptions and QuantizationOptions parsing
- pipeline.py: PixelProcessor, TensorResult, process

Test Categories:
- Shape validation: Output shape matches the layout and channel count
- Dtype validation: float32 output, integer output when quantized
- Range validation: Normalized values within expected bounds
- Stage order: ROI before resize, layout after normalization
"""

import numpy as np
import pytest

from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.colorspace import ColorFormat
from vision_utils.processing.geometry import ResizeOptions, ResizeStrategy
from vision_utils.processing.image import ImageBuffer
from vision_utils.processing.layout import DataLayout
from vision_utils.processing.normalize import Normalization, NormalizationPreset
from vision_utils.processing.options import PixelOptions, QuantizationOptions
from vision_utils.processing.pipeline import PixelProcessor, TensorResult, process
from vision_utils.processing.quantization import QuantDType, QuantizationMode
from vision_utils.processing.transforms import Roi


class TestPixelOptions:
    """Tests for PixelOptions parsing."""

    def test_defaults(self) -> None:
        """Empty options should give RGB, HWC and SCALE normalization."""
        options = PixelOptions.from_dict({})

        assert options.color_format is ColorFormat.RGB
        assert options.data_layout is DataLayout.HWC
        assert options.normalization == Normalization()
        assert options.resize is None
        assert options.quantization is None

    def test_none_is_default(self) -> None:
        """None should parse like an empty map."""
        assert PixelOptions.from_dict(None) == PixelOptions()

    def test_explicit_none_normalization_skips_stage(self) -> None:
        """An explicit None normalization should disable the stage."""
        options = PixelOptions.from_dict({"normalization": None})

        assert options.normalization is None
        assert PixelOptions.from_dict({}).normalization == Normalization()

    def test_unknown_values_fall_back(self) -> None:
        """Unrecognized enum names should fall back to defaults."""
        options = PixelOptions.from_dict({"color_format": "cmyk", "data_layout": "wch"})

        assert options.color_format is ColorFormat.RGB
        assert options.data_layout is DataLayout.HWC

    def test_nested_options(self) -> None:
        """Nested maps should be parsed into their option types."""
        options = PixelOptions.from_dict(
            {
                "resize": {"width": 8, "height": 8, "strategy": "stretch"},
                "roi": {"x": 1, "y": 1, "width": 4, "height": 4},
                "normalization": {"preset": "imagenet"},
                "quantization": {"dtype": "uint8", "scale": 0.5},
            }
        )

        assert options.resize == ResizeOptions(8, 8, ResizeStrategy.STRETCH)
        assert options.roi == Roi(1, 1, 4, 4)
        assert options.normalization.preset is NormalizationPreset.IMAGENET
        assert options.quantization.dtype is QuantDType.UINT8
        assert options.quantization.scale == (0.5,)

    def test_quantization_defaults(self) -> None:
        """Quantization should default to int8 per-tensor calibration."""
        options = QuantizationOptions.from_dict({})

        assert options.dtype is QuantDType.INT8
        assert options.mode is QuantizationMode.PER_TENSOR
        assert options.fixed_params() is None

    def test_hashable(self) -> None:
        """Parsed options should be usable as cache keys."""
        a = PixelOptions.from_dict({"resize": {"width": 8, "height": 8}})
        b = PixelOptions.from_dict({"resize": {"width": 8, "height": 8}})

        assert hash(a) == hash(b)
        assert a == b


class TestPixelProcessor:
    """Tests for PixelProcessor."""

    @pytest.mark.parametrize(
        "layout,expected_shape",
        [
            (DataLayout.HWC, (48, 64, 3)),
            (DataLayout.CHW, (3, 48, 64)),
            (DataLayout.NHWC, (1, 48, 64, 3)),
            (DataLayout.NCHW, (1, 3, 48, 64)),
        ],
    )
    def test_output_shape(self, sample_image: ImageBuffer, layout: DataLayout, expected_shape: tuple) -> None:
        """Output shape should follow the layout."""
        result = PixelProcessor(PixelOptions(data_layout=layout))(sample_image)

        assert result.shape == expected_shape
        assert result.data.shape == (int(np.prod(expected_shape)),)

    def test_output_dtype(self, sample_image: ImageBuffer) -> None:
        """Unquantized output should be float32."""
        assert process(sample_image).data.dtype == np.float32

    def test_default_scale_range(self, sample_image: ImageBuffer) -> None:
        """Default normalization should map pixels into [0, 1]."""
        result = process(sample_image)

        assert result.data.min() >= 0.0
        assert result.data.max() <= 1.0

    def test_default_matches_manual(self, sample_image: ImageBuffer, sample_rgb: np.ndarray) -> None:
        """RGB/HWC/SCALE should equal pixel / 255."""
        result = process(sample_image)

        assert np.allclose(result.data, sample_rgb.ravel() / 255.0, atol=1e-6)

    def test_yolo_style(self, sample_image: ImageBuffer) -> None:
        """Letterbox + NCHW should produce a YOLO input with LetterboxInfo."""
        options = PixelOptions.from_dict(
            {
                "resize": {"width": 32, "height": 32, "strategy": "letterbox"},
                "data_layout": "nchw",
            }
        )
        result = PixelProcessor(options).process(sample_image)

        assert result.shape == (1, 3, 32, 32)
        assert result.letterbox is not None
        assert result.letterbox.padding == (0, 4, 0, 4)
        assert result.as_tensor()[0, 0, 0, 0] == pytest.approx(114 / 255)

    def test_grayscale_single_channel(self, sample_image: ImageBuffer) -> None:
        """Grayscale should produce one channel."""
        result = process(sample_image, PixelOptions(color_format=ColorFormat.GRAYSCALE))

        assert result.channels == 1
        assert result.shape == (48, 64, 1)

    def test_rgba_four_channels(self, sample_image: ImageBuffer) -> None:
        """RGBA should keep the alpha channel."""
        result = process(sample_image, PixelOptions(color_format=ColorFormat.RGBA))

        assert result.shape == (48, 64, 4)
        assert result.as_tensor()[0, 0, 3] == pytest.approx(1.0)

    def test_roi_then_resize(self, gradient_image: ImageBuffer) -> None:
        """The ROI should be cropped before resizing."""
        options = PixelOptions(
            roi=Roi(4, 0, 4, 4),
            resize=ResizeOptions(4, 4, ResizeStrategy.STRETCH),
            normalization=None,
        )
        result = process(gradient_image, options)

        assert (result.width, result.height) == (4, 4)
        assert result.as_tensor()[0, :, 0].tolist() == [64.0, 80.0, 96.0, 112.0]

    def test_no_normalization(self, sample_image: ImageBuffer, sample_rgb: np.ndarray) -> None:
        """normalization=None should keep the 0-255 range."""
        result = process(sample_image, PixelOptions(normalization=None))

        assert np.array_equal(result.data, sample_rgb.ravel().astype(np.float32))

    def test_fixed_quantization(self, sample_image: ImageBuffer, sample_rgb: np.ndarray) -> None:
        """A fixed scale should quantize with those params."""
        options = PixelOptions(
            normalization=Normalization(NormalizationPreset.RAW),
            quantization=QuantizationOptions(dtype=QuantDType.UINT8, scale=(1.0,)),
        )
        result = process(sample_image, options)

        assert result.data.dtype == np.uint8
        assert np.array_equal(result.data, sample_rgb.ravel())
        assert result.quantization.scale == (1.0,)

    def test_calibrated_quantization(self, sample_image: ImageBuffer) -> None:
        """Without a scale the params should be calibrated from the data."""
        options = PixelOptions(quantization=QuantizationOptions())
        result = process(sample_image, options)

        assert result.data.dtype == np.int8
        assert result.quantization is not None
        assert result.data.min() == -128
        assert result.data.max() == 127

    def test_per_channel_quantization_planar(self, sample_image: ImageBuffer) -> None:
        """Per-channel calibration should produce one scale per channel."""
        options = PixelOptions(
            data_layout=DataLayout.NCHW,
            quantization=QuantizationOptions(mode=QuantizationMode.PER_CHANNEL),
        )
        result = process(sample_image, options)

        assert len(result.quantization.scale) == 3
        assert result.shape == (1, 3, 48, 64)

    def test_does_not_modify_input(self, sample_image: ImageBuffer) -> None:
        """The source image should be untouched."""
        original = sample_image.pixels.copy()
        process(sample_image, PixelOptions(resize=ResizeOptions(10, 10)))

        assert np.array_equal(sample_image.pixels, original)

    def test_invalid_roi_raises(self, sample_image: ImageBuffer) -> None:
        """An out-of-bounds ROI should raise INVALID_ROI."""
        with pytest.raises(VisionUtilsError) as exc_info:
            process(sample_image, PixelOptions(roi=Roi(60, 0, 10, 10)))

        assert exc_info.value.code is ErrorCode.INVALID_ROI

    def test_invalid_input_type(self, sample_rgb: np.ndarray) -> None:
        """Raw arrays should be rejected."""
        with pytest.raises(VisionUtilsError):
            process(sample_rgb)

    def test_to_dict(self, sample_image_square: ImageBuffer) -> None:
        """to_dict should expose layout and shape metadata."""
        options = PixelOptions(resize=ResizeOptions(4, 4, ResizeStrategy.LETTERBOX))
        data = process(sample_image_square, options).to_dict()

        assert data["shape"] == [4, 4, 3]
        assert data["data_layout"] == "hwc"
        assert len(data["data"]) == 48
        assert "letterbox_info" in data


class TestTensorResult:
    """Tests for TensorResult validation."""

    def test_shape_mismatch_raises(self) -> None:
        """Data whose length differs from prod(shape) should be rejected."""
        with pytest.raises(VisionUtilsError) as exc_info:
            TensorResult(np.zeros(10, dtype=np.float32), 2, 2, 3, (2, 2, 3), DataLayout.HWC, ColorFormat.RGB)

        assert exc_info.value.code is ErrorCode.DIMENSION_MISMATCH
