"""Pixel-to-Tensor Pipeline.

This module provides the PixelProcessor class that turns an ImageBuffer
into a model-ready tensor.

Pipeline:
    1. Crop to the region of interest (optional)
    2. Resize with the configured strategy (optional)
    3. Convert to the target color format
    4. Normalize per channel
    5. Reorder to the target data layout
    6. Quantize to integers (optional)

The input image is never modified; each stage allocates a fresh buffer.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from vision_utils.errors import ErrorCode, VisionUtilsError
from vision_utils.processing.colorspace import ColorFormat, convert_color
from vision_utils.processing.geometry import resize
from vision_utils.processing.image import ImageBuffer
from vision_utils.processing.layout import DataLayout, to_layout
from vision_utils.processing.letterbox import LetterboxInfo
from vision_utils.processing.normalize import normalize
from vision_utils.processing.options import PixelOptions
from vision_utils.processing.quantization import (
    QuantizationParams,
    calculate_quantization_params,
    quantize,
)
from vision_utils.processing.transforms import apply_roi

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class TensorResult:
    """Result container for pixel processing.

    Attributes:
        data: Flat tensor data (float32, or the quantized integer dtype)
        width: Width of the processed image
        height: Height of the processed image
        channels: Channels per pixel
        shape: Tensor shape; its product equals len(data)
        data_layout: Memory order of data
        color_format: Color format of data
        processing_time_ms: Wall time spent in the pipeline
        quantization: Params used when the quantization stage ran
        letterbox: LetterboxInfo when the LETTERBOX strategy ran
    """

    data: np.ndarray
    width: int
    height: int
    channels: int
    shape: tuple[int, ...]
    data_layout: DataLayout
    color_format: ColorFormat
    processing_time_ms: float = 0.0
    quantization: Optional[QuantizationParams] = None
    letterbox: Optional[LetterboxInfo] = None

    def __post_init__(self) -> None:
        expected = int(np.prod(self.shape))
        if self.data.ndim != 1 or self.data.size != expected:
            raise VisionUtilsError(
                ErrorCode.DIMENSION_MISMATCH,
                f"Data length {self.data.size} does not match shape {self.shape}",
            )

    def as_tensor(self) -> np.ndarray:
        """Data reshaped to shape (a view, no copy)."""
        return self.data.reshape(self.shape)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the bridge result map."""
        out: dict[str, Any] = {
            "data": self.data.tolist(),
            "width": self.width,
            "height": self.height,
            "channels": self.channels,
            "shape": list(self.shape),
            "data_layout": self.data_layout.value,
            "color_format": self.color_format.value,
            "processing_time_ms": self.processing_time_ms,
        }
        if self.quantization is not None:
            out["quantization"] = self.quantization.to_dict()
        if self.letterbox is not None:
            out["letterbox_info"] = self.letterbox.to_dict()
        return out


# =============================================================================
# Processor Class
# =============================================================================


class PixelProcessor:
    """Pixel-to-tensor pipeline bound to one PixelOptions.

    Stateless apart from its options, so a single instance can be shared
    across threads.

    Attributes:
        options: Pipeline configuration

    Example:
        >>> processor = PixelProcessor(PixelOptions.from_dict({
        ...     "resize": {"width": 224, "height": 224},
        ...     "normalization": {"preset": "imagenet"},
        ...     "data_layout": "nchw",
        ... }))
        >>> image = ImageBuffer.from_array(np.zeros((480, 640, 3), dtype=np.uint8))
        >>> processor(image).shape
        (1, 3, 224, 224)
    """

    def __init__(self, options: Optional[PixelOptions] = None) -> None:
        self.options = options or PixelOptions()

    def __call__(self, image: ImageBuffer) -> TensorResult:
        return self.process(image)

    def process(self, image: ImageBuffer) -> TensorResult:
        """Run the full pipeline.

        Args:
            image: Source image (not modified)

        Returns:
            TensorResult with flat data and shape metadata

        Raises:
            VisionUtilsError: INVALID_ROI, INVALID_DIMENSIONS or
                INVALID_OPTIONS from the individual stages
        """
        self._validate_input(image)
        start_time = time.perf_counter()
        options = self.options

        # Step 1: Region of interest
        if options.roi is not None:
            image = apply_roi(image, options.roi)

        # Step 2: Resize
        letterbox_info = None
        if options.resize is not None:
            resized = resize(image, options.resize)
            image = resized.image
            letterbox_info = resized.letterbox

        # Step 3: Color conversion -> [H, W, C] float32
        channels = options.color_format.channels
        data = convert_color(image, options.color_format)

        # Step 4: Normalization
        if options.normalization is not None:
            data = normalize(data, channels, options.normalization)

        # Step 5: Layout
        flat, shape = to_layout(data, image.width, image.height, channels, options.data_layout)

        # Step 6: Quantization
        params = None
        if options.quantization is not None:
            params = options.quantization.fixed_params()
            if params is None:
                params = calculate_quantization_params(
                    flat,
                    dtype=options.quantization.dtype,
                    mode=options.quantization.mode,
                    symmetric=options.quantization.symmetric,
                    channels=channels,
                    layout=options.data_layout,
                ).params
            flat = quantize(flat, params, channels=channels, layout=options.data_layout)
        else:
            flat = flat.astype(np.float32, copy=False)

        elapsed_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(
            f"Processed {image.width}x{image.height} image into {options.data_layout.value} tensor",
            extra={"operation": "process", "shape": shape, "latency_ms": round(elapsed_ms, 3)},
        )

        return TensorResult(
            data=flat,
            width=image.width,
            height=image.height,
            channels=channels,
            shape=shape,
            data_layout=options.data_layout,
            color_format=options.color_format,
            processing_time_ms=elapsed_ms,
            quantization=params,
            letterbox=letterbox_info,
        )

    def _validate_input(self, image: ImageBuffer) -> None:
        """Validate input image.

        Raises:
            VisionUtilsError: INVALID_DIMENSIONS if image is not an ImageBuffer
        """
        if not isinstance(image, ImageBuffer):
            raise VisionUtilsError(
                ErrorCode.INVALID_DIMENSIONS,
                f"Expected ImageBuffer, got {type(image)}",
            )


def process(image: ImageBuffer, options: Optional[PixelOptions] = None) -> TensorResult:
    """Process one image with the given options (see PixelProcessor)."""
    return PixelProcessor(options).process(image)
