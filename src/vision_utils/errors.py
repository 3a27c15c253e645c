"""
Error Taxonomy

Every core operation validates its own preconditions and raises
VisionUtilsError synchronously with a specific ErrorCode. The error
subclasses ValueError so callers that only care about "bad input" can
keep catching ValueError.

The UNKNOWN code is reserved for the orchestration layer (see
wrap_exception); core functions never emit it.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """String error codes surfaced to the bridge layer."""

    INVALID_SOURCE = "INVALID_SOURCE"
    INVALID_ROI = "INVALID_ROI"
    INVALID_DIMENSIONS = "INVALID_DIMENSIONS"
    INVALID_OPTIONS = "INVALID_OPTIONS"
    INVALID_CHANNEL = "INVALID_CHANNEL"
    INVALID_PATCH = "INVALID_PATCH"
    DIMENSION_MISMATCH = "DIMENSION_MISMATCH"
    EMPTY_BATCH = "EMPTY_BATCH"
    INVALID_CROP_SIZE = "INVALID_CROP_SIZE"
    INVALID_COUNT = "INVALID_COUNT"
    IMAGE_TOO_SMALL = "IMAGE_TOO_SMALL"
    LOAD_ERROR = "LOAD_ERROR"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNKNOWN = "UNKNOWN"


class VisionUtilsError(ValueError):
    """Tagged error carrying an ErrorCode and a descriptive message.

    Attributes:
        code: ErrorCode identifying the failure kind
        message: Human-readable description

    Example:
        >>> try:
        ...     raise VisionUtilsError(ErrorCode.INVALID_ROI, "ROI out of bounds")
        ... except VisionUtilsError as e:
        ...     e.to_dict()
        {'code': 'INVALID_ROI', 'message': 'ROI out of bounds'}
    """

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = ErrorCode(code)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the bridge error map."""
        return {"code": self.code.value, "message": self.message}


def wrap_exception(exc: BaseException) -> VisionUtilsError:
    """Tag an arbitrary exception for the caller.

    VisionUtilsError instances pass through with their code intact;
    anything else becomes an UNKNOWN error.

    Args:
        exc: Exception raised while serving a request

    Returns:
        VisionUtilsError suitable for returning to the caller
    """
    if isinstance(exc, VisionUtilsError):
        return exc
    message = str(exc) or type(exc).__name__
    return VisionUtilsError(ErrorCode.UNKNOWN, message)
