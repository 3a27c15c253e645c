"""
Unit Tests for Bounding Box Geometry

This module tests:
- boxes.py: convert_box_format, scale_boxes, clip_boxes, calculate_iou
"""

import numpy as np
import pytest

from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.postprocess.boxes import (
    BoxFormat,
    box_iou,
    calculate_iou,
    clip_boxes,
    convert_box_format,
    scale_boxes,
)


class TestConvertBoxFormat:
    """Tests for convert_box_format."""

    @pytest.mark.parametrize(
        "box,source,target,expected",
        [
            ([10, 20, 30, 40], "xywh", "xyxy", [10.0, 20.0, 40.0, 60.0]),
            ([10, 20, 40, 60], "xyxy", "xywh", [10.0, 20.0, 30.0, 40.0]),
            ([25, 40, 30, 40], "cxcywh", "xyxy", [10.0, 20.0, 40.0, 60.0]),
            ([10, 20, 40, 60], "xyxy", "cxcywh", [25.0, 40.0, 30.0, 40.0]),
            ([10, 20, 30, 40], "xywh", "cxcywh", [25.0, 40.0, 30.0, 40.0]),
        ],
    )
    def test_conversions(self, box: list, source: str, target: str, expected: list) -> None:
        """Known boxes should convert exactly."""
        assert convert_box_format([box], source, target) == [expected]

    def test_array_in_array_out(self) -> None:
        """numpy input should produce a numpy [N, 4] output."""
        boxes = np.array([[10, 20, 30, 40], [0, 0, 1, 1]], dtype=np.float32)
        result = convert_box_format(boxes, BoxFormat.XYWH, BoxFormat.XYXY)

        assert isinstance(result, np.ndarray)
        assert result.shape == (2, 4)
        assert result[0].tolist() == [10.0, 20.0, 40.0, 60.0]

    def test_empty_array(self) -> None:
        """Empty arrays should convert to an empty [0, 4] array."""
        assert convert_box_format(np.zeros((0, 4)), "xyxy", "xywh").shape == (0, 4)

    def test_empty_list(self) -> None:
        """Empty lists should stay empty."""
        assert convert_box_format([], "xyxy", "xywh") == []

    def test_strict_rejects_malformed(self) -> None:
        """Strict mode should reject boxes without 4 values."""
        with pytest.raises(VisionUtilsError) as exc_info:
            convert_box_format([[1, 2, 3]], "xyxy", "xywh", strict=True)

        assert exc_info.value.code is ErrorCode.INVALID_OPTIONS

    def test_lenient_passes_malformed_through(self) -> None:
        """Lenient mode should leave malformed boxes untouched."""
        result = convert_box_format([[1, 2, 3], [0, 0, 10, 10]], "xywh", "xyxy", strict=False)

        assert result == [[1, 2, 3], [0.0, 0.0, 10.0, 10.0]]

    @pytest.mark.parametrize(
        "shape", [(4,), (2, 3), (1, 2, 4)]
    )
    def test_strict_rejects_malformed_array(self, shape: tuple) -> None:
        """Arrays not shaped [N, 4] should be rejected with their shape in the message."""
        with pytest.raises(VisionUtilsError) as exc_info:
            convert_box_format(np.ones(shape), "xyxy", "xywh", strict=True)

        assert exc_info.value.code is ErrorCode.INVALID_OPTIONS
        assert str(shape) in exc_info.value.message

    @pytest.mark.parametrize("box_format", ["xyxy", "xywh", "cxcywh"])
    def test_round_trip_through_xyxy(self, box_format: str) -> None:
        """Converting to xyxy and back should reproduce the input."""
        rng = np.random.default_rng(7)
        boxes = np.hstack([rng.uniform(0, 500, (20, 2)), rng.uniform(1, 200, (20, 2))])

        there = convert_box_format(boxes, box_format, "xyxy")
        back = convert_box_format(there, "xyxy", box_format)

        np.testing.assert_allclose(back, boxes, rtol=0, atol=1e-9)

    def test_unknown_format_raises(self) -> None:
        """Unknown format names should raise INVALID_OPTIONS."""
        with pytest.raises(VisionUtilsError) as exc_info:
            convert_box_format([[0, 0, 1, 1]], "polygon", "xyxy")

        assert exc_info.value.code is ErrorCode.INVALID_OPTIONS

    def test_does_not_modify_input(self) -> None:
        """The input array should be left untouched."""
        boxes = np.array([[10.0, 20.0, 30.0, 40.0]])
        original = boxes.copy()
        convert_box_format(boxes, "xywh", "xyxy")

        assert np.array_equal(boxes, original)


class TestScaleBoxes:
    """Tests for scale_boxes."""

    def test_scale_axes_independently(self) -> None:
        """Each axis should scale by its own factor."""
        assert scale_boxes([[10, 10, 20, 20]], 100, 100, 200, 50) == [[20.0, 5.0, 40.0, 10.0]]

    def test_clips_to_target(self) -> None:
        """Scaled boxes should be clipped to the target size."""
        result = scale_boxes([[-10, 0, 120, 50]], 100, 100, 100, 100)

        assert result == [[0.0, 0.0, 100.0, 50.0]]

    def test_no_clip(self) -> None:
        """clip=False should keep out-of-range coordinates."""
        result = scale_boxes([[-10, 0, 120, 50]], 100, 100, 100, 100, clip=False)

        assert result == [[-10.0, 0.0, 120.0, 50.0]]

    def test_xywh_format(self) -> None:
        """XYWH boxes should scale width and height."""
        result = scale_boxes([[10, 10, 20, 20]], 100, 100, 50, 50, box_format="xywh")

        assert result == [[5.0, 5.0, 10.0, 10.0]]

    def test_invalid_source_raises(self) -> None:
        """A zero source size should raise INVALID_DIMENSIONS."""
        with pytest.raises(VisionUtilsError) as exc_info:
            scale_boxes([[0, 0, 1, 1]], 0, 100, 10, 10)

        assert exc_info.value.code is ErrorCode.INVALID_DIMENSIONS


class TestClipBoxes:
    """Tests for clip_boxes."""

    def test_clip(self) -> None:
        """Boxes should be clamped into the image."""
        result = clip_boxes([[-5, -5, 50, 50]], 20, 30)

        assert result.boxes == [[0.0, 0.0, 20.0, 30.0]]
        assert result.removed_count == 0
        assert result.format is BoxFormat.XYXY

    def test_remove_invalid(self) -> None:
        """Boxes that collapse after clipping should be removed."""
        boxes = [[0, 0, 10, 10], [30, 30, 40, 40], [5, 5, 5, 8]]
        result = clip_boxes(boxes, 20, 20, remove_invalid=True)

        assert result.boxes == [[0.0, 0.0, 10.0, 10.0]]
        assert result.removed_count == 2

    def test_remove_invalid_array(self) -> None:
        """Array input should be filtered the same way."""
        boxes = np.array([[0, 0, 10, 10], [30, 30, 40, 40]], dtype=np.float64)
        result = clip_boxes(boxes, 20, 20, remove_invalid=True)

        assert result.boxes.shape == (1, 4)
        assert result.removed_count == 1

    def test_lenient_counts_malformed_as_removed(self) -> None:
        """Malformed boxes should be dropped when remove_invalid is set."""
        result = clip_boxes([[1, 2], [0, 0, 5, 5]], 10, 10, remove_invalid=True, strict=False)

        assert result.boxes == [[0.0, 0.0, 5.0, 5.0]]
        assert result.removed_count == 1


class TestIoU:
    """Tests for calculate_iou and box_iou."""

    def test_partial_overlap(self) -> None:
        """Half-overlapping boxes should give IoU 1/3."""
        assert calculate_iou([0, 0, 10, 10], [5, 0, 15, 10]) == pytest.approx(1 / 3)

    def test_identical(self) -> None:
        """Identical boxes should give IoU 1."""
        assert calculate_iou([1, 2, 3, 4], [1, 2, 3, 4]) == pytest.approx(1.0)

    def test_disjoint(self) -> None:
        """Disjoint boxes should give IoU 0."""
        assert calculate_iou([0, 0, 1, 1], [2, 2, 3, 3]) == 0.0

    def test_degenerate_boxes(self) -> None:
        """Zero-area boxes should not divide by zero."""
        assert calculate_iou([0, 0, 0, 0], [0, 0, 0, 0]) == 0.0

    def test_symmetric(self) -> None:
        """IoU should not depend on argument order."""
        a, b = [0, 0, 10, 10], [3, 4, 12, 20]

        assert calculate_iou(a, b) == pytest.approx(calculate_iou(b, a))

    def test_xywh_format(self) -> None:
        """Format tags should be honored."""
        assert calculate_iou([0, 0, 10, 10], [5, 0, 10, 10], "xywh") == pytest.approx(1 / 3)

    def test_invalid_length_raises(self) -> None:
        """Boxes without 4 values should raise INVALID_OPTIONS."""
        with pytest.raises(VisionUtilsError) as exc_info:
            calculate_iou([0, 0, 1], [0, 0, 1, 1])

        assert exc_info.value.code is ErrorCode.INVALID_OPTIONS

    def test_box_iou_vectorized(self) -> None:
        """box_iou should compare one box against many."""
        ious = box_iou(np.array([0, 0, 10, 10]), np.array([[0, 0, 10, 10], [5, 0, 15, 10], [20, 20, 30, 30]]))

        assert ious.tolist() == pytest.approx([1.0, 1 / 3, 0.0])
