"""Batch orchestration.

Architecture:
    process_batch -> ThreadPoolExecutor(concurrency) -> load_image -> PixelProcessor

Items run concurrently with at most `concurrency` in flight and results
come back in input order. A failing item does not fail the batch: its
slot holds a BatchItemError carrying the error code (UNKNOWN for anything
that is not a VisionUtilsError), message and index.
"""

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Tuple, Union

from vision_utils.cache import TensorCache
from vision_utils.config import get_settings
from vision_utils.errors import ErrorCode, VisionUtilsError, wrap_exception
from vision_utils.logger import batch_id_var
from vision_utils.processing.image import ImageBuffer, ImageSource, load_image
from vision_utils.processing.options import PixelOptions
from vision_utils.processing.pipeline import PixelProcessor, TensorResult

logger = logging.getLogger(__name__)

BatchItem = Tuple[ImageSource, PixelOptions]


@dataclass(frozen=True)
class BatchItemError:
    """Failure of one batch item."""

    index: int
    code: ErrorCode
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"error": True, "code": self.code.value, "message": self.message, "index": self.index}


@dataclass
class BatchResult:
    """Per-item results in input order."""

    results: list[Union[TensorResult, BatchItemError]] = field(default_factory=list)
    total_time_ms: float = 0.0

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if isinstance(r, TensorResult))

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if isinstance(r, BatchItemError))


class BatchProcessor:
    """Bounded-concurrency batch runner for the pixel pipeline.

    Args:
        concurrency: Maximum items in flight (default: Settings.BATCH_CONCURRENCY)
        cache: Optional TensorCache keyed by (source, options)
        loader: Callable turning an ImageSource into an ImageBuffer
    """

    def __init__(
        self,
        concurrency: Optional[int] = None,
        cache: Optional[TensorCache] = None,
        loader: Callable[[ImageSource], ImageBuffer] = load_image,
    ) -> None:
        if concurrency is None:
            concurrency = get_settings().BATCH_CONCURRENCY
        if concurrency < 1:
            raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, f"concurrency must be >= 1, got {concurrency}")
        self.concurrency = concurrency
        self.cache = cache
        self.loader = loader

    def _process_one(
        self,
        index: int,
        item: BatchItem,
        batch_id: Optional[str] = None,
    ) -> Union[TensorResult, BatchItemError]:
        source, options = item
        # worker threads do not inherit the caller's context
        token = batch_id_var.set(batch_id)
        try:
            key = (source, options)
            if self.cache is not None:
                cached = self.cache.get(key)
                if cached is not None:
                    return cached

            result = PixelProcessor(options).process(self.loader(source))

            if self.cache is not None:
                self.cache.put(key, result)
            return result
        except Exception as e:
            error = wrap_exception(e)
            logger.warning(
                f"Batch item {index} failed: {error.message}",
                extra={"operation": "process_batch", "code": error.code.value, "index": index},
            )
            return BatchItemError(index=index, code=error.code, message=error.message)
        finally:
            batch_id_var.reset(token)

    def process_batch(self, items: Sequence[BatchItem]) -> BatchResult:
        """Process (source, options) pairs concurrently.

        Args:
            items: Sources with their pipeline options

        Returns:
            BatchResult with one entry per item, in input order
        """
        start_time = time.perf_counter()
        batch_id = uuid.uuid4().hex[:12]
        token = batch_id_var.set(batch_id)
        try:
            with ThreadPoolExecutor(
                max_workers=self.concurrency,
                thread_name_prefix="vision-batch",
            ) as executor:
                # map preserves input order regardless of completion order
                results = list(
                    executor.map(self._process_one, range(len(items)), items, [batch_id] * len(items))
                )
        finally:
            batch_id_var.reset(token)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        batch = BatchResult(results=results, total_time_ms=elapsed_ms)

        logger.debug(
            f"Processed batch of {len(items)} ({batch.error_count} failed)",
            extra={"operation": "process_batch", "count": len(items), "latency_ms": round(elapsed_ms, 3)},
        )
        return batch
