"""Workflow pipeline and step models for the training dashboard."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional


class StepStatus(Enum):
    """Status of a single pipeline step."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class WorkflowStep:
    """One stage of a multi-stage training workflow."""

    id: str
    title: str
    description: str = ""
    status: StepStatus = StepStatus.PENDING
    duration: Optional[str] = None  # display label, e.g. "2.3h"
    details: list[str] = field(default_factory=list)

    # Elapsed-time tracking, set as the status changes at runtime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED

    @property
    def elapsed(self) -> Optional[timedelta]:
        """Time spent in progress, up to completion or now."""
        if self.started_at is None:
            return None
        end = self.completed_at or datetime.now(timezone.utc)
        return end - self.started_at

    def set_status(self, status: StepStatus) -> None:
        """Change status, stamping start and completion times."""
        now = datetime.now(timezone.utc)
        if status == StepStatus.IN_PROGRESS:
            self.started_at = now
            self.completed_at = None
        elif status == StepStatus.COMPLETED:
            if self.started_at is None:
                self.started_at = now
            self.completed_at = now
        elif status == StepStatus.PENDING:
            self.started_at = None
            self.completed_at = None
        self.status = status

    def to_dict(self) -> dict:
        """Serialize step to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "duration": self.duration,
            "details": list(self.details),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkflowStep":
        """Build a step from a catalogue entry."""
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            status=StepStatus(data.get("status", "pending")),
            duration=data.get("duration"),
            details=list(data.get("details", [])),
        )


@dataclass
class WorkflowPipeline:
    """A named, ordered sequence of workflow steps."""

    name: str
    title: str = ""
    steps: list[WorkflowStep] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return sum(1 for step in self.steps if step.is_completed)

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "title": self.title,
            "steps": [s.to_dict() for s in self.steps],
        }
