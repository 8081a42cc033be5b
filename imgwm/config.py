"""
Configuration for the watermarking core.

Values are read from environment variables once at process start by
`configure()` and are treated as read-only afterwards, so concurrent
processing calls may read them without locking.

Environment:
    IMGWM_WATERMARK_OPACITY        global opacity multiplier, 0 < x <= 1
    IMGWM_WATERMARK_DATA           base64-encoded watermark image
    IMGWM_WATERMARK_PATH           path to a watermark image file
    IMGWM_DISABLE_SHRINK_ON_LOAD   "1"/"true" disables decode-time downscale
"""

from __future__ import annotations

import os
from typing import Optional

from .errors import ConfigError

# Multiplier applied to every request's watermark opacity.
WATERMARK_OPACITY: float = 1.0

WATERMARK_DATA: str = ""
WATERMARK_PATH: str = ""

DISABLE_SHRINK_ON_LOAD: bool = False

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def reset() -> None:
    """Restore all configuration values to their defaults."""
    global WATERMARK_OPACITY, WATERMARK_DATA, WATERMARK_PATH, DISABLE_SHRINK_ON_LOAD

    WATERMARK_OPACITY = 1.0
    WATERMARK_DATA = ""
    WATERMARK_PATH = ""
    DISABLE_SHRINK_ON_LOAD = False


def validate(watermark_opacity: Optional[float] = None) -> None:
    """
    Validate the current configuration.

    Raises:
        ConfigError: If the opacity multiplier is outside (0, 1].
    """
    opacity = WATERMARK_OPACITY if watermark_opacity is None else watermark_opacity
    if opacity <= 0:
        raise ConfigError("Watermark opacity should be greater than 0")
    if opacity > 1:
        raise ConfigError("Watermark opacity should be less than or equal to 1")


def configure() -> None:
    """Read configuration from the environment and validate it."""
    global WATERMARK_OPACITY, WATERMARK_DATA, WATERMARK_PATH, DISABLE_SHRINK_ON_LOAD

    opacity = _env_float("IMGWM_WATERMARK_OPACITY", 1.0)
    validate(opacity)

    WATERMARK_OPACITY = opacity
    WATERMARK_DATA = os.environ.get("IMGWM_WATERMARK_DATA", "")
    WATERMARK_PATH = os.environ.get("IMGWM_WATERMARK_PATH", "")
    DISABLE_SHRINK_ON_LOAD = _env_bool("IMGWM_DISABLE_SHRINK_ON_LOAD", False)
