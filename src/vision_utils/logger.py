"""Structured JSON logging for vision_utils.

Library modules only create `logging.getLogger(__name__)` loggers and
attach metadata through `extra=` (operation name, latency, tensor shape,
counts, error codes). Pixel data is never logged.

Applications that want the JSON output call setup_logging() once:

    from vision_utils.logger import setup_logging
    setup_logging()            # level from VISION_UTILS_LOG_LEVEL
    setup_logging("DEBUG")     # explicit level
"""

import json
import logging
import sys
from contextvars import ContextVar
from typing import IO, Any, Optional

from vision_utils.config import get_settings

# Set by BatchProcessor for the duration of a batch
batch_id_var: ContextVar[str | None] = ContextVar("batch_id", default=None)

# Attributes copied from `extra=` into the JSON object when present
_EXTRA_FIELDS = ("operation", "latency_ms", "shape", "count", "code", "index")


def _jsonable(value: Any) -> Any:
    # shapes arrive as tuples
    if isinstance(value, tuple):
        return list(value)
    return value


class JSONFormatter(logging.Formatter):
    """Render each record as a single-line JSON object.

    Always present: timestamp, level, logger, message. The current batch id
    is added while a batch is running, followed by any of the known extra
    fields set on the record and the formatted traceback, if any.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        current_batch = batch_id_var.get()
        if current_batch:
            payload["batch_id"] = current_batch

        payload.update(
            {name: _jsonable(getattr(record, name)) for name in _EXTRA_FIELDS if hasattr(record, name)}
        )

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(log_level: Optional[str] = None, stream: Optional[IO[str]] = None) -> None:
    """Route all records through a single JSON handler on the root logger.

    Existing root handlers are replaced.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR (default: Settings.LOG_LEVEL)
        stream: Output stream (default: stdout)
    """
    level_name = (log_level or get_settings().LOG_LEVEL).upper()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name))
