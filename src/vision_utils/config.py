"""
Configuration Module

Two layers, mirroring how the library is deployed:

- defaults.yaml (packaged next to this file) is the single source of truth
  for caller-facing defaults such as the letterbox color or NMS thresholds.
- Settings (pydantic-settings) carries runtime knobs read from the
  environment with the VISION_UTILS_ prefix.

Usage:
    from vision_utils.config import get_default, get_settings

    iou = get_default("nms", "iou_threshold")
    concurrency = get_settings().BATCH_CONCURRENCY
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Constants
# =============================================================================

_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

_REQUIRED_SECTIONS = ("resize", "nms", "quantization", "blur", "crops", "cutout", "batch")


# =============================================================================
# YAML Defaults
# =============================================================================

@lru_cache(maxsize=1)
def get_config() -> Dict[str, Any]:
    """
    Load and cache the packaged defaults.

    Returns:
        Complete defaults dictionary

    Raises:
        FileNotFoundError: If defaults.yaml is missing from the package
        yaml.YAMLError: If YAML parsing fails

    Example:
        >>> get_config()["nms"]["max_detections"]
        100
    """
    if not _CONFIG_PATH.exists():
        raise FileNotFoundError(f"Defaults file not found: {_CONFIG_PATH.absolute()}")

    with open(_CONFIG_PATH, "r") as f:
        return yaml.safe_load(f)


def reload_config() -> Dict[str, Any]:
    """
    Force reload of the defaults (clears cache).

    Returns:
        Freshly loaded configuration dictionary
    """
    get_config.cache_clear()
    return get_config()


def get_section(section: str) -> Dict[str, Any]:
    """
    Get all defaults for a section.

    Args:
        section: Section name (e.g., "nms", "resize")

    Returns:
        Dictionary of all defaults in the section

    Raises:
        KeyError: If the section does not exist
    """
    config = get_config()

    if section not in config:
        available = list(config.keys())
        raise KeyError(f"Section '{section}' not found. Available: {available}")

    return config[section]


def get_default(section: str, key: str) -> Any:
    """
    Get a single default value by section and key.

    Args:
        section: Top-level section name
        key: Key within the section

    Returns:
        The configured default

    Raises:
        KeyError: If section or key not found

    Example:
        >>> get_default("resize", "letterbox_color")
        [114, 114, 114]
    """
    section_data = get_section(section)

    if key not in section_data:
        available = list(section_data.keys())
        raise KeyError(
            f"Key '{key}' not found in {section}. Available keys: {available}"
        )

    return section_data[key]


def validate_config() -> List[str]:
    """
    Validate the packaged defaults.

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    try:
        config = get_config()
    except (OSError, yaml.YAMLError) as e:
        return [f"Failed to load config: {e}"]

    for section in _REQUIRED_SECTIONS:
        if section not in config:
            errors.append(f"Missing required section: {section}")

    nms = config.get("nms", {})
    for field in ("iou_threshold", "score_threshold", "max_detections"):
        if field not in nms:
            errors.append(f"Missing nms field: {field}")

    iou = nms.get("iou_threshold")
    if iou is not None and not 0.0 <= iou <= 1.0:
        errors.append(f"nms.iou_threshold must be in [0, 1], got {iou}")

    letterbox_color = config.get("resize", {}).get("letterbox_color", [])
    if len(letterbox_color) < 3:
        errors.append("resize.letterbox_color must have at least 3 components")

    concurrency = config.get("batch", {}).get("concurrency", 1)
    if concurrency < 1:
        errors.append(f"batch.concurrency must be >= 1, got {concurrency}")

    return errors


# =============================================================================
# Runtime Settings
# =============================================================================

class Settings(BaseSettings):
    """Runtime settings read from the environment.

    Attributes:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        BATCH_CONCURRENCY: Maximum in-flight items in BatchProcessor
        CACHE_SIZE: Capacity of the default LRUTensorCache
        STRICT_BOX_FORMAT: Reject boxes that do not have 4 coordinates
    """

    LOG_LEVEL: str = "INFO"
    BATCH_CONCURRENCY: int = get_default("batch", "concurrency")
    CACHE_SIZE: int = get_default("batch", "cache_size")
    STRICT_BOX_FORMAT: bool = True

    model_config = SettingsConfigDict(
        env_prefix="VISION_UTILS_",
        case_sensitive=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance (singleton pattern).

    Returns:
        Validated Settings instance
    """
    return Settings()
