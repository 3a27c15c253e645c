"""
Unit Tests for Tensor Operations

This module tests:
- tensor_ops.py: extract_channel, extract_patch, concatenate_to_batch, permute
"""

import numpy as np
import pytest

from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.image import ImageBuffer
from vision_utils.processing.layout import DataLayout
from vision_utils.processing.options import PixelOptions
from vision_utils.processing.pipeline import process
from vision_utils.tensor_ops import concatenate_to_batch, extract_channel, extract_patch, permute


class TestExtractChannel:
    """Tests for extract_channel."""

    def test_hwc(self) -> None:
        """HWC channels should be strided by the channel count."""
        hwc = np.arange(12, dtype=np.float32)

        assert extract_channel(hwc, 2, 2, 3, 1).tolist() == [1.0, 4.0, 7.0, 10.0]

    def test_chw(self) -> None:
        """CHW channels should be contiguous planes."""
        chw = np.arange(12, dtype=np.float32)

        assert extract_channel(chw, 2, 2, 3, 2, DataLayout.CHW).tolist() == [8.0, 9.0, 10.0, 11.0]

    def test_layouts_agree(self, sample_image: ImageBuffer) -> None:
        """The same channel should come out of HWC and NCHW results."""
        hwc = process(sample_image, PixelOptions(data_layout=DataLayout.HWC))
        nchw = process(sample_image, PixelOptions(data_layout=DataLayout.NCHW))

        assert np.array_equal(
            extract_channel(hwc.data, 64, 48, 3, 0, DataLayout.HWC),
            extract_channel(nchw.data, 64, 48, 3, 0, DataLayout.NCHW),
        )

    @pytest.mark.parametrize("index", [-1, 3])
    def test_invalid_index_raises(self, index: int) -> None:
        """Out-of-range channels should raise INVALID_CHANNEL."""
        with pytest.raises(VisionUtilsError) as exc_info:
            extract_channel(np.zeros(12), 2, 2, 3, index)

        assert exc_info.value.code is ErrorCode.INVALID_CHANNEL


class TestExtractPatch:
    """Tests for extract_patch."""

    def test_hwc_patch(self, sample_rgb: np.ndarray) -> None:
        """An HWC patch should match numpy slicing."""
        patch = extract_patch(sample_rgb.ravel(), 64, 48, 3, 10, 5, 8, 6)

        assert patch.shape == (6, 8, 3)
        assert np.array_equal(patch.data.reshape(patch.shape), sample_rgb[5:11, 10:18])

    def test_chw_patch(self, sample_rgb: np.ndarray) -> None:
        """A CHW patch should stay planar."""
        chw = sample_rgb.transpose(2, 0, 1)
        patch = extract_patch(chw.ravel(), 64, 48, 3, 10, 5, 8, 6, DataLayout.CHW)

        assert patch.shape == (3, 6, 8)
        assert np.array_equal(patch.data.reshape(patch.shape), chw[:, 5:11, 10:18])

    @pytest.mark.parametrize(
        "x,y,w,h",
        [(0, 0, 0, 5), (-1, 0, 5, 5), (60, 0, 5, 5), (0, 44, 5, 5)],
    )
    def test_invalid_patch_raises(self, sample_rgb: np.ndarray, x: int, y: int, w: int, h: int) -> None:
        """Empty or out-of-bounds patches should raise INVALID_PATCH."""
        with pytest.raises(VisionUtilsError) as exc_info:
            extract_patch(sample_rgb.ravel(), 64, 48, 3, x, y, w, h)

        assert exc_info.value.code is ErrorCode.INVALID_PATCH


class TestConcatenateToBatch:
    """Tests for concatenate_to_batch."""

    def test_batch_shape(self, sample_image: ImageBuffer) -> None:
        """Stacking N results should give [N, C, H, W]."""
        results = [process(sample_image) for _ in range(3)]
        batch = concatenate_to_batch(results)

        assert batch.shape == (3, 3, 48, 64)
        assert batch.batch_size == 3
        assert batch.data.size == 3 * 3 * 48 * 64

    def test_hwc_is_transposed(self, sample_image: ImageBuffer) -> None:
        """HWC results should be reordered to match the planar shape."""
        hwc = process(sample_image, PixelOptions(data_layout=DataLayout.HWC))
        nchw = process(sample_image, PixelOptions(data_layout=DataLayout.NCHW))

        assert np.array_equal(concatenate_to_batch([hwc]).data, nchw.data)

    def test_empty_raises(self) -> None:
        """No results should raise EMPTY_BATCH."""
        with pytest.raises(VisionUtilsError) as exc_info:
            concatenate_to_batch([])

        assert exc_info.value.code is ErrorCode.EMPTY_BATCH

    def test_mismatch_raises(self, sample_image: ImageBuffer, sample_image_square: ImageBuffer) -> None:
        """Results of different sizes should raise DIMENSION_MISMATCH."""
        with pytest.raises(VisionUtilsError) as exc_info:
            concatenate_to_batch([process(sample_image), process(sample_image_square)])

        assert exc_info.value.code is ErrorCode.DIMENSION_MISMATCH


class TestPermute:
    """Tests for permute."""

    def test_transpose_2d(self) -> None:
        """Swapping two axes should transpose a matrix."""
        permuted, shape = permute(np.arange(6), (2, 3), (1, 0))

        assert permuted.tolist() == [0, 3, 1, 4, 2, 5]
        assert shape == (3, 2)

    def test_hwc_to_chw(self, sample_rgb: np.ndarray) -> None:
        """(2, 0, 1) should convert HWC to CHW."""
        permuted, shape = permute(sample_rgb.ravel(), (48, 64, 3), (2, 0, 1))

        assert shape == (3, 48, 64)
        assert np.array_equal(permuted.reshape(shape), sample_rgb.transpose(2, 0, 1))

    def test_identity(self) -> None:
        """The identity order should leave data unchanged."""
        data = np.arange(24)
        permuted, shape = permute(data, (2, 3, 4), (0, 1, 2))

        assert np.array_equal(permuted, data)
        assert shape == (2, 3, 4)

    @pytest.mark.parametrize("order", [(0,), (0, 0), (0, 2)])
    def test_invalid_order_raises(self, order: tuple) -> None:
        """Orders that are not permutations should raise INVALID_OPTIONS."""
        with pytest.raises(VisionUtilsError) as exc_info:
            permute(np.arange(6), (2, 3), order)

        assert exc_info.value.code is ErrorCode.INVALID_OPTIONS

    def test_size_mismatch_raises(self) -> None:
        """Data that does not fill the shape should raise DIMENSION_MISMATCH."""
        with pytest.raises(VisionUtilsError) as exc_info:
            permute(np.arange(5), (2, 3), (1, 0))

        assert exc_info.value.code is ErrorCode.DIMENSION_MISMATCH
