"""
Normalization

Per-channel affine transform (value - mean[c]) / std[c] over pixel data
in the 0-255 domain. Named presets map to fixed mean/std pairs:

    IMAGENET:   ImageNet statistics scaled by 255
    TENSORFLOW: mean 127.5, std 127.5 (maps to [-1, 1])
    SCALE:      mean 0, std 255 (maps to [0, 1])
    RAW:        identity
    CUSTOM:     caller-supplied mean/std

Channel c uses mean[c % len(mean)] and std[c % len(std)], so a 3-element
preset also covers a 4th (alpha) channel and a single value covers all.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

import numpy as np

from vision_utils.errors import ErrorCode, VisionUtilsError


# =============================================================================
# Constants
# =============================================================================

# ImageNet normalization constants in the 0-255 domain
# Reference: https://pytorch.org/vision/stable/models.html
IMAGENET_MEAN: Tuple[float, ...] = (0.485 * 255, 0.456 * 255, 0.406 * 255)
IMAGENET_STD: Tuple[float, ...] = (0.229 * 255, 0.224 * 255, 0.225 * 255)


class NormalizationPreset(str, Enum):
    """Named mean/std pair."""

    IMAGENET = "imagenet"
    TENSORFLOW = "tensorflow"
    SCALE = "scale"
    RAW = "raw"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: "str | NormalizationPreset | None") -> "NormalizationPreset":
        """Parse a preset name case-insensitively; unknown names become SCALE."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.SCALE


_PRESETS = {
    NormalizationPreset.IMAGENET: (IMAGENET_MEAN, IMAGENET_STD),
    NormalizationPreset.TENSORFLOW: ((127.5, 127.5, 127.5), (127.5, 127.5, 127.5)),
    NormalizationPreset.SCALE: ((0.0, 0.0, 0.0), (255.0, 255.0, 255.0)),
}


@dataclass(frozen=True)
class Normalization:
    """
    Normalization settings.

    Attributes:
        preset: NormalizationPreset
        mean: Per-channel means, used only by CUSTOM
        std: Per-channel standard deviations, used only by CUSTOM
    """

    preset: NormalizationPreset = NormalizationPreset.SCALE
    mean: Optional[Tuple[float, ...]] = None
    std: Optional[Tuple[float, ...]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Normalization":
        mean = data.get("mean")
        std = data.get("std")
        return cls(
            preset=NormalizationPreset.parse(data.get("preset")),
            mean=None if mean is None else tuple(float(v) for v in np.atleast_1d(mean)),
            std=None if std is None else tuple(float(v) for v in np.atleast_1d(std)),
        )

    def resolve(self) -> Optional[Tuple[Tuple[float, ...], Tuple[float, ...]]]:
        """
        Return the (mean, std) pair to apply, or None for RAW.

        Raises:
            VisionUtilsError: INVALID_OPTIONS if CUSTOM lacks mean/std or
                has a zero standard deviation
        """
        if self.preset is NormalizationPreset.RAW:
            return None
        if self.preset is not NormalizationPreset.CUSTOM:
            return _PRESETS[self.preset]

        if not self.mean or not self.std:
            raise VisionUtilsError(
                ErrorCode.INVALID_OPTIONS, "Custom normalization requires non-empty mean and std"
            )
        if any(s == 0 for s in self.std):
            raise VisionUtilsError(ErrorCode.INVALID_OPTIONS, "Normalization std must be non-zero")
        return self.mean, self.std


def normalize(data: np.ndarray, channels: int, normalization: Normalization) -> np.ndarray:
    """
    Apply per-channel normalization to interleaved (HWC) data.

    Args:
        data: Float data, flat or [H, W, C], with channels interleaved
        channels: Number of interleaved channels
        normalization: Normalization settings

    Returns:
        float32 array of the same shape; the input itself for RAW

    Example:
        >>> data = np.array([0.0, 127.5, 255.0], dtype=np.float32)
        >>> normalize(data, 3, Normalization(NormalizationPreset.TENSORFLOW))
        array([-1.,  0.,  1.], dtype=float32)
    """
    resolved = normalization.resolve()
    if resolved is None:
        return data

    mean, std = resolved
    mean_vec = np.array([mean[c % len(mean)] for c in range(channels)], dtype=np.float32)
    std_vec = np.array([std[c % len(std)] for c in range(channels)], dtype=np.float32)

    values = np.asarray(data, dtype=np.float32)
    interleaved = values.reshape(-1, channels)
    return ((interleaved - mean_vec) / std_vec).reshape(values.shape)
