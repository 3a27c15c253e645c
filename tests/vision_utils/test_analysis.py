"""
Unit Tests for Image Analysis

This module tests:
- analysis.py: detect_blur, get_statistics, get_metadata, validate_image
"""

import numpy as np
import pytest

from vision_utils.processing.analysis import (
    ValidationCriteria,
    detect_blur,
    get_metadata,
    get_statistics,
    laplacian_variance,
    validate_image,
)
from vision_utils.processing.image import ImageBuffer


@pytest.fixture
def checkerboard() -> ImageBuffer:
    """Sharp 32x32 black/white checkerboard."""
    board = ((np.indices((32, 32)).sum(axis=0) % 2) * 255).astype(np.uint8)
    return ImageBuffer.from_array(board)


class TestDetectBlur:
    """Tests for detect_blur."""

    def test_flat_image_is_blurry(self, solid_image) -> None:
        """A flat image has no edges and should be blurry."""
        result = detect_blur(solid_image(32, 32))

        assert result.is_blurry
        assert result.score == pytest.approx(0.0, abs=1e-9)

    def test_checkerboard_is_sharp(self, checkerboard: ImageBuffer) -> None:
        """A checkerboard should score far above the default threshold."""
        result = detect_blur(checkerboard)

        assert not result.is_blurry
        assert result.score > 100.0
        assert result.threshold == 100.0

    def test_custom_threshold(self, checkerboard: ImageBuffer) -> None:
        """An enormous threshold should flag even sharp images."""
        assert detect_blur(checkerboard, threshold=1e12).is_blurry

    def test_downsample(self, sample_image: ImageBuffer) -> None:
        """Downsampling should still produce a score."""
        result = detect_blur(sample_image, downsample_size=16)

        assert result.score >= 0.0

    def test_tiny_image(self) -> None:
        """Images smaller than the kernel should score zero."""
        assert laplacian_variance(np.ones((2, 2))) == 0.0

    def test_single_impulse(self) -> None:
        """A centre impulse should give a -4 response and zero borders."""
        gray = np.zeros((3, 3))
        gray[1, 1] = 1.0

        assert laplacian_variance(gray) == pytest.approx(128.0 / 81.0)


class TestStatistics:
    """Tests for get_statistics and get_metadata."""

    def test_solid_statistics(self, solid_image) -> None:
        """A solid image should have zero spread."""
        stats = get_statistics(solid_image(4, 4, (51, 102, 255)))

        assert stats.mean == pytest.approx((0.2, 0.4, 1.0))
        assert stats.std == pytest.approx((0.0, 0.0, 0.0))
        assert stats.min == stats.max

    def test_histogram(self, solid_image) -> None:
        """Histograms should have 256 bins counting every pixel."""
        stats = get_statistics(solid_image(4, 4, (10, 20, 30)))

        assert len(stats.histogram["r"]) == 256
        assert stats.histogram["r"][10] == 16
        assert sum(stats.histogram["b"]) == 16

    def test_metadata(self, sample_image: ImageBuffer) -> None:
        """Metadata should report size, channels and aspect ratio."""
        metadata = get_metadata(sample_image)

        assert (metadata.width, metadata.height, metadata.channels) == (64, 48, 3)
        assert metadata.aspect_ratio == pytest.approx(64 / 48)
        assert not metadata.has_alpha


class TestValidateImage:
    """Tests for validate_image."""

    def test_valid(self, sample_image: ImageBuffer) -> None:
        """An image meeting every criterion should be valid."""
        criteria = ValidationCriteria(min_width=32, max_width=128, required_channels=3)
        result = validate_image(sample_image, criteria)

        assert result.is_valid
        assert result.issues == []

    def test_size_issues(self, sample_image: ImageBuffer) -> None:
        """Each failed size check should add an issue."""
        criteria = ValidationCriteria(min_width=100, max_height=40)
        result = validate_image(sample_image, criteria)

        assert not result.is_valid
        assert result.issues == [
            "Width 64 is less than minimum 100",
            "Height 48 exceeds maximum 40",
        ]

    def test_required_aspect_ratio(self, sample_image: ImageBuffer) -> None:
        """A mismatching aspect ratio should be reported."""
        result = validate_image(sample_image, ValidationCriteria(required_aspect_ratio=1.0))

        assert len(result.issues) == 1
        assert "does not match required 1.0" in result.issues[0]

    def test_aspect_ratio_tolerance(self, sample_image: ImageBuffer) -> None:
        """Ratios within tolerance should pass."""
        criteria = ValidationCriteria(required_aspect_ratio=1.33, aspect_ratio_tolerance=0.01)

        assert validate_image(sample_image, criteria).is_valid

    def test_channels(self, sample_image: ImageBuffer) -> None:
        """A channel mismatch should be reported."""
        result = validate_image(sample_image, ValidationCriteria(required_channels=4))

        assert result.issues == ["Image has 3 channels but 4 required"]

    def test_from_dict_ignores_unknown(self) -> None:
        """Unknown keys should be ignored."""
        criteria = ValidationCriteria.from_dict({"min_width": 10, "colour": "red"})

        assert criteria == ValidationCriteria(min_width=10)
