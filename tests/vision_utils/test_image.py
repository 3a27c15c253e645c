"""
Unit Tests for Image Buffers and Loading

This module tests:
- image.py: ImageBuffer validation, from_array, ImageSource parsing, load_image
"""

import numpy as np
import pytest

from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.converter import encode_image, encode_image_base64
from vision_utils.processing.image import (
    ImageBuffer,
    ImageSource,
    ImageSourceType,
    load_image,
    load_image_from_bytes,
)


class TestImageBuffer:
    """Tests for ImageBuffer construction."""

    def test_from_rgb_adds_opaque_alpha(self, sample_rgb: np.ndarray) -> None:
        """RGB input should gain an alpha channel of 255."""
        image = ImageBuffer.from_array(sample_rgb)

        assert image.pixels.shape == (48, 64, 4)
        assert np.all(image.pixels[..., 3] == 255)
        assert image.has_alpha is False

    def test_from_grayscale_replicates(self) -> None:
        """Grayscale input should be replicated into RGB."""
        gray = np.arange(6, dtype=np.uint8).reshape(2, 3)
        image = ImageBuffer.from_array(gray)

        assert np.array_equal(image.pixels[..., 0], gray)
        assert np.array_equal(image.pixels[..., 2], gray)

    def test_from_rgba_sets_alpha_flag(self) -> None:
        """Four-channel input should set has_alpha."""
        image = ImageBuffer.from_array(np.zeros((2, 2, 4), dtype=np.uint8))

        assert image.has_alpha is True

    def test_pixels_are_read_only(self, sample_image: ImageBuffer) -> None:
        """Buffers should be immutable."""
        with pytest.raises(ValueError):
            sample_image.pixels[0, 0, 0] = 1

    def test_from_array_copies_input(self, sample_rgb: np.ndarray) -> None:
        """Later writes to the source should not leak into the buffer."""
        image = ImageBuffer.from_array(sample_rgb)
        before = image.pixels[0, 0, 0]
        sample_rgb[0, 0, 0] = before ^ 0xFF

        assert image.pixels[0, 0, 0] == before

    def test_dimensions(self, sample_image: ImageBuffer) -> None:
        """width and height should follow the array shape."""
        assert sample_image.width == 64
        assert sample_image.height == 48

    @pytest.mark.parametrize(
        "array",
        [
            np.zeros((4, 4, 2), dtype=np.uint8),
            np.zeros((4, 4, 3), dtype=np.float32),
            np.zeros((4,), dtype=np.uint8),
        ],
    )
    def test_rejects_invalid_arrays(self, array: np.ndarray) -> None:
        """Unsupported shapes or dtypes should raise INVALID_DIMENSIONS."""
        with pytest.raises(VisionUtilsError) as exc_info:
            ImageBuffer.from_array(array)

        assert exc_info.value.code is ErrorCode.INVALID_DIMENSIONS

    def test_rejects_empty_image(self) -> None:
        """Zero-size images should be rejected."""
        with pytest.raises(VisionUtilsError):
            ImageBuffer(np.zeros((0, 4, 4), dtype=np.uint8))


class TestImageSource:
    """Tests for ImageSource parsing."""

    def test_from_dict(self) -> None:
        """Type names should parse case-insensitively."""
        source = ImageSource.from_dict({"type": "FILE", "value": "/tmp/a.png"})

        assert source.type is ImageSourceType.FILE
        assert source.value == "/tmp/a.png"

    def test_photo_library_alias(self) -> None:
        """photoLibrary should map to PHOTO_LIBRARY."""
        assert ImageSourceType.parse("photoLibrary") is ImageSourceType.PHOTO_LIBRARY

    def test_unknown_type_raises(self) -> None:
        """Unknown source types should raise INVALID_SOURCE."""
        with pytest.raises(VisionUtilsError) as exc_info:
            ImageSource.from_dict({"type": "ftp", "value": "x"})

        assert exc_info.value.code is ErrorCode.INVALID_SOURCE

    def test_missing_value_raises(self) -> None:
        """An empty value should raise INVALID_SOURCE."""
        with pytest.raises(VisionUtilsError) as exc_info:
            ImageSource.from_dict({"type": "file", "value": ""})

        assert exc_info.value.code is ErrorCode.INVALID_SOURCE

    def test_hashable(self) -> None:
        """Equal sources should hash equal so they can key a cache."""
        a = ImageSource(ImageSourceType.FILE, "a.png")
        b = ImageSource(ImageSourceType.FILE, "a.png")

        assert hash(a) == hash(b)


class TestLoadImage:
    """Tests for image loading."""

    def test_load_image_nonexistent_file(self) -> None:
        """Missing files should raise FILE_NOT_FOUND."""
        with pytest.raises(VisionUtilsError) as exc_info:
            load_image(ImageSource(ImageSourceType.FILE, "/nonexistent/path/image.jpg"))

        assert exc_info.value.code is ErrorCode.FILE_NOT_FOUND

    def test_load_image_from_bytes_empty(self) -> None:
        """Empty bytes should raise LOAD_ERROR."""
        with pytest.raises(VisionUtilsError) as exc_info:
            load_image_from_bytes(b"")

        assert exc_info.value.code is ErrorCode.LOAD_ERROR

    def test_load_image_from_bytes_invalid(self) -> None:
        """Undecodable bytes should raise LOAD_ERROR."""
        with pytest.raises(VisionUtilsError) as exc_info:
            load_image_from_bytes(b"not an image")

        assert exc_info.value.code is ErrorCode.LOAD_ERROR

    def test_png_bytes_round_trip(self, sample_image: ImageBuffer) -> None:
        """PNG encoding is lossless, so decoded pixels should match."""
        decoded = load_image_from_bytes(encode_image(sample_image, "png"))

        assert np.array_equal(decoded.pixels[..., :3], sample_image.pixels[..., :3])

    def test_load_base64_data_uri(self, sample_image: ImageBuffer) -> None:
        """Base64 sources should accept a data URI prefix."""
        payload = "data:image/png;base64," + encode_image_base64(sample_image)
        decoded = load_image(ImageSource(ImageSourceType.BASE64, payload))

        assert (decoded.width, decoded.height) == (64, 48)

    def test_load_file(self, tmp_path, sample_image: ImageBuffer) -> None:
        """Files written to disk should load back."""
        path = tmp_path / "image.png"
        path.write_bytes(encode_image(sample_image, "png"))

        decoded = load_image(ImageSource(ImageSourceType.FILE, f"file://{path}"))

        assert np.array_equal(decoded.pixels[..., :3], sample_image.pixels[..., :3])

    def test_asset_source_unsupported(self) -> None:
        """Mobile-only sources should raise INVALID_SOURCE."""
        with pytest.raises(VisionUtilsError) as exc_info:
            load_image(ImageSource(ImageSourceType.ASSET, "logo.png"))

        assert exc_info.value.code is ErrorCode.INVALID_SOURCE
