"""Training configuration, job state, and progress snapshot models."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ConfigError

# Option sets and slider ranges offered by the training form.
BATCH_SIZE_CHOICES = (1, 2, 4, 8, 16)
EPOCH_CHOICES = (1, 2, 3, 5, 10)
LEARNING_RATE_RANGE = (1e-5, 1e-4)
BETA_RANGE = (0.01, 0.5)

STEPS_PER_EPOCH = 100
LOG_EVERY = 10
LOG_CAPACITY = 10


class TrainingConfig(BaseModel):
    """Hyperparameters for a simulated DPO training run."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_name: str = "microsoft/DialoGPT-medium"
    dataset_path: str = "preference_dataset.json"
    learning_rate: float = Field(
        default=5e-5, ge=LEARNING_RATE_RANGE[0], le=LEARNING_RATE_RANGE[1],
    )
    batch_size: int = 4
    epochs: int = 3
    beta_value: float = Field(default=0.1, ge=BETA_RANGE[0], le=BETA_RANGE[1])
    warmup_steps: int = Field(default=100, ge=0)
    save_steps: int = Field(default=500, gt=0)

    @field_validator("batch_size")
    @classmethod
    def _check_batch_size(cls, value: int) -> int:
        if value not in BATCH_SIZE_CHOICES:
            raise ValueError(f"batch_size must be one of {BATCH_SIZE_CHOICES}")
        return value

    @field_validator("epochs")
    @classmethod
    def _check_epochs(cls, value: int) -> int:
        if value not in EPOCH_CHOICES:
            raise ValueError(f"epochs must be one of {EPOCH_CHOICES}")
        return value

    @classmethod
    def build(cls, **values) -> "TrainingConfig":
        """Construct a config, reporting bad values as ConfigError."""
        try:
            return cls(**values)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            )
            raise ConfigError(f"Invalid training configuration: {problems}") from exc

    def missing_fields(self) -> list[str]:
        """Required text fields that are blank."""
        missing = []
        if not self.model_name.strip():
            missing.append("model_name")
        if not self.dataset_path.strip():
            missing.append("dataset_path")
        return missing

    def total_steps(self, steps_per_epoch: int = STEPS_PER_EPOCH) -> int:
        return self.epochs * steps_per_epoch


class JobState(Enum):
    """Lifecycle of a training job."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"


@dataclass(frozen=True)
class StepMetrics:
    """Synthetic metrics reported for one training step."""

    loss: float
    accuracy: float


@dataclass(frozen=True)
class TrainingProgress:
    """Read-only view of a job, handed to progress listeners."""

    state: JobState
    current_epoch: int
    current_step: int
    total_steps: int
    progress_percent: float
    last_log_line: Optional[str] = None
    log_lines: tuple[str, ...] = ()

    @property
    def is_running(self) -> bool:
        return self.state is JobState.RUNNING

    def to_dict(self) -> dict:
        data = {
            "state": self.state.value,
            "currentEpoch": self.current_epoch,
            "currentStep": self.current_step,
            "totalSteps": self.total_steps,
            "progressPercent": self.progress_percent,
        }
        if self.last_log_line is not None:
            data["lastLogLine"] = self.last_log_line
        return data


@dataclass
class TrainingJob:
    """Mutable state of the controller's single training job."""

    config: Optional[TrainingConfig] = None
    state: JobState = JobState.IDLE
    current_step: int = 0
    total_steps: int = 0
    steps_per_epoch: int = STEPS_PER_EPOCH
    log_capacity: int = LOG_CAPACITY
    log_buffer: deque = field(default_factory=deque)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def __post_init__(self):
        self.log_buffer = deque(self.log_buffer, maxlen=self.log_capacity)

    @property
    def current_epoch(self) -> int:
        """1-based epoch of the last applied step, 0 before the first step."""
        if self.current_step <= 0:
            return 0
        return (self.current_step - 1) // self.steps_per_epoch + 1

    @property
    def progress_percent(self) -> float:
        if self.total_steps <= 0:
            return 0.0
        percent = 100.0 * self.current_step / self.total_steps
        return max(0.0, min(100.0, percent))

    @property
    def is_finished(self) -> bool:
        return self.total_steps > 0 and self.current_step >= self.total_steps

    def append_log(self, line: str) -> None:
        """Append a log line; the deque drops the oldest line past capacity."""
        self.log_buffer.append(line)

    def mark_finished(self, state: JobState) -> None:
        self.state = state
        self.finished_at = datetime.now(timezone.utc)

    def snapshot(self) -> TrainingProgress:
        lines = tuple(self.log_buffer)
        return TrainingProgress(
            state=self.state,
            current_epoch=self.current_epoch,
            current_step=self.current_step,
            total_steps=self.total_steps,
            progress_percent=self.progress_percent,
            last_log_line=lines[-1] if lines else None,
            log_lines=lines,
        )


def format_log_line(step: int, metrics: StepMetrics) -> str:
    """Render one training log line."""
    return f"Step {step}: Loss={metrics.loss:.4f}, Accuracy={metrics.accuracy:.3f}"
