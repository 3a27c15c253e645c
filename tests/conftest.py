"""
Pytest Fixtures - Shared Test Fixtures for vision_utils

This module provides reusable fixtures for all test modules.

Fixtures:
    sample_rgb: Random RGB array (48x64) for testing
    sample_image: ImageBuffer built from sample_rgb
    sample_image_square: Square ImageBuffer (32x32)
    gradient_image: Deterministic horizontal gradient ImageBuffer
    solid_image: Factory for single-color ImageBuffers
    sample_detections: Overlapping detections for NMS testing
"""

from typing import Callable, Sequence

import numpy as np
import pytest

from vision_utils.processing.image import ImageBuffer


# =============================================================================
# Image Fixtures
# =============================================================================

@pytest.fixture
def sample_rgb() -> np.ndarray:
    """
    Random RGB array for testing.

    Returns:
        RGB uint8 array with shape [48, 64, 3]
    """
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (48, 64, 3), dtype=np.uint8)


@pytest.fixture
def sample_image(sample_rgb: np.ndarray) -> ImageBuffer:
    """
    Random 64x48 ImageBuffer.

    Returns:
        ImageBuffer with opaque alpha
    """
    return ImageBuffer.from_array(sample_rgb)


@pytest.fixture
def sample_image_square() -> ImageBuffer:
    """
    Random square ImageBuffer (32x32).

    Returns:
        ImageBuffer with opaque alpha
    """
    rng = np.random.default_rng(43)
    return ImageBuffer.from_array(rng.integers(0, 256, (32, 32, 3), dtype=np.uint8))


@pytest.fixture
def gradient_image() -> ImageBuffer:
    """
    Horizontal gradient (x * 16 in every channel), 16x8.

    Returns:
        ImageBuffer whose pixel value encodes its column
    """
    row = (np.arange(16, dtype=np.uint16) * 16).clip(0, 255).astype(np.uint8)
    gray = np.tile(row, (8, 1))
    return ImageBuffer.from_array(np.stack([gray, gray, gray], axis=-1))


@pytest.fixture
def solid_image() -> Callable[..., ImageBuffer]:
    """
    Factory for single-color images.

    Returns:
        Callable (width, height, color) -> ImageBuffer
    """

    def _make(width: int, height: int, color: Sequence[int] = (128, 128, 128)) -> ImageBuffer:
        rgb = np.empty((height, width, 3), dtype=np.uint8)
        rgb[...] = np.array(color[:3], dtype=np.uint8)
        return ImageBuffer.from_array(rgb)

    return _make


# =============================================================================
# Detection Fixtures
# =============================================================================

@pytest.fixture
def sample_detections() -> list[dict]:
    """
    Three detections in XYXY format; the first two overlap heavily.

    Returns:
        List of detection mappings
    """
    return [
        {"box": [0, 0, 10, 10], "score": 0.9},
        {"box": [1, 1, 11, 11], "score": 0.8},
        {"box": [50, 50, 60, 60], "score": 0.7},
    ]
