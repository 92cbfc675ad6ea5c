"""Preference Platform: dataset curation, annotation, and simulated DPO/RLHF training."""

from .errors import (
    AlreadyRunningError,
    ConfigError,
    NotFoundError,
    ParseError,
    PlatformError,
    ValidationError,
)
from .workspace import PreferenceWorkspace

__version__ = "0.1.0"

__all__ = [
    "PreferenceWorkspace",
    "PlatformError",
    "ValidationError",
    "ParseError",
    "ConfigError",
    "AlreadyRunningError",
    "NotFoundError",
]
