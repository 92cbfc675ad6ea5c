"""Platform settings, read from defaults, a YAML file, or the environment."""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError

ENV_PREFIX = "PREFERENCE_PLATFORM_"

# Default dataset file used by the CLI
DEFAULT_DATASET_FILE = Path("data") / "dpo_dataset.json"


@dataclass
class PlatformSettings:
    """Tunable constants for the training simulation and the CLI."""

    steps_per_epoch: int = 100
    log_every: int = 10
    log_capacity: int = 10
    tick_interval: float = 0.2  # seconds between training ticks
    default_pipeline: str = "dpo"
    catalogue_path: Optional[Path] = None
    dataset_file: Path = field(default_factory=lambda: DEFAULT_DATASET_FILE)
    log_level: str = "INFO"

    def __post_init__(self):
        for name in ("steps_per_epoch", "log_every", "log_capacity"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        if self.tick_interval < 0:
            raise ConfigError("tick_interval must not be negative")
        if self.catalogue_path is not None:
            self.catalogue_path = Path(self.catalogue_path)
        self.dataset_file = Path(self.dataset_file)
        self.log_level = self.log_level.upper()

    @classmethod
    def _coerce(cls, values: dict) -> dict:
        """Convert raw strings to the field types."""
        types = {f.name: f.type for f in fields(cls)}
        coerced = {}
        for key, raw in values.items():
            if key not in types:
                raise ConfigError(f"Unknown setting: {key}")
            if raw is None:
                coerced[key] = None
                continue
            kind = types[key]
            try:
                if kind is int:
                    coerced[key] = int(raw)
                elif kind is float:
                    coerced[key] = float(raw)
                else:
                    coerced[key] = raw
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Invalid value for {key}: {raw!r}") from exc
        return coerced

    @classmethod
    def from_yaml(cls, path: Path) -> "PlatformSettings":
        """Load settings from a YAML mapping."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Settings file not found: {path}")
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file must contain a mapping: {path}")
        return cls(**cls._coerce(data))

    @classmethod
    def from_env(cls, base: Optional["PlatformSettings"] = None) -> "PlatformSettings":
        """Overlay PREFERENCE_PLATFORM_* environment variables on `base`."""
        base = base or cls()
        overrides = {}
        for f in fields(cls):
            value = os.environ.get(ENV_PREFIX + f.name.upper())
            if value is not None:
                overrides[f.name] = value
        if not overrides:
            return base
        return replace(base, **cls._coerce(overrides))

    def to_dict(self) -> dict:
        return {
            "steps_per_epoch": self.steps_per_epoch,
            "log_every": self.log_every,
            "log_capacity": self.log_capacity,
            "tick_interval": self.tick_interval,
            "default_pipeline": self.default_pipeline,
            "catalogue_path": str(self.catalogue_path) if self.catalogue_path else None,
            "dataset_file": str(self.dataset_file),
            "log_level": self.log_level,
        }
