"""Workflow pipeline engine for the multi-stage training dashboard."""

import logging
from pathlib import Path
from typing import Optional

import jsonschema
import yaml

from ..errors import ConfigError, NotFoundError, ValidationError
from ..models.pipeline import StepStatus, WorkflowPipeline, WorkflowStep

logger = logging.getLogger(__name__)

DEFAULT_CATALOGUE_PATH = Path(__file__).parent.parent / "catalogue" / "pipelines.yaml"
DEFAULT_PIPELINE = "dpo"

CATALOGUE_SCHEMA = {
    "type": "object",
    "minProperties": 1,
    "additionalProperties": {
        "type": "object",
        "required": ["steps"],
        "properties": {
            "title": {"type": "string"},
            "steps": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": ["id", "title"],
                    "properties": {
                        "id": {"type": "string"},
                        "title": {"type": "string"},
                        "description": {"type": "string"},
                        "status": {"enum": [s.value for s in StepStatus]},
                        "duration": {"type": ["string", "null"]},
                        "details": {"type": "array", "items": {"type": "string"}},
                    },
                },
            },
        },
    },
}


def load_catalogue(path: Optional[Path] = None) -> dict[str, dict]:
    """Load and validate a pipeline catalogue from YAML."""
    path = Path(path) if path else DEFAULT_CATALOGUE_PATH
    if not path.exists():
        raise ConfigError(f"Pipeline catalogue not found: {path}")

    with open(path) as f:
        catalogue = yaml.safe_load(f)

    try:
        jsonschema.validate(catalogue, CATALOGUE_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise ConfigError(f"Invalid pipeline catalogue {path}: {exc.message}") from exc

    for name, definition in catalogue.items():
        ids = [step["id"] for step in definition["steps"]]
        if len(ids) != len(set(ids)):
            raise ConfigError(f"Pipeline '{name}' has duplicate step ids")
    return catalogue


class PipelineEngine:
    """Holds the selected pipeline and aggregates its step statuses."""

    def __init__(
        self,
        catalogue: Optional[dict[str, dict]] = None,
        default_pipeline: str = DEFAULT_PIPELINE,
    ):
        self.catalogue = catalogue if catalogue is not None else load_catalogue()
        self.pipeline = self._build(default_pipeline)
        # Dashboard-wide pause flag; survives pipeline switches and resets
        self._running = True

    def available_pipelines(self) -> list[str]:
        return list(self.catalogue)

    def _build(self, name: str) -> WorkflowPipeline:
        """Fresh pipeline from its catalogue definition."""
        definition = self.catalogue.get(name)
        if definition is None:
            raise NotFoundError(
                f"Unknown pipeline '{name}'. Available: {', '.join(self.catalogue)}"
            )
        try:
            steps = [WorkflowStep.from_dict(step) for step in definition["steps"]]
        except (KeyError, ValueError) as exc:
            raise ConfigError(f"Invalid definition for pipeline '{name}': {exc}") from exc
        return WorkflowPipeline(
            name=name,
            title=definition.get("title", name.upper()),
            steps=steps,
        )

    @property
    def name(self) -> str:
        return self.pipeline.name

    @property
    def steps(self) -> list[WorkflowStep]:
        return self.pipeline.steps

    @property
    def running(self) -> bool:
        return self._running

    def select_pipeline(self, name: str) -> WorkflowPipeline:
        """Switch to another pipeline. Nothing carries over from the previous one."""
        self.pipeline = self._build(name)
        logger.info("Selected pipeline %s", name)
        return self.pipeline

    def toggle_running(self) -> bool:
        """Flip the pause/resume flag. Step statuses are not affected."""
        self._running = not self._running
        logger.info("Pipeline %s %s", self.name, "resumed" if self.running else "paused")
        return self._running

    def set_step_status(self, step_id: str, status: "StepStatus | str") -> WorkflowStep:
        """Record a status reported for a step. No transition rules are enforced."""
        if not isinstance(status, StepStatus):
            try:
                status = StepStatus(status)
            except ValueError as exc:
                allowed = ", ".join(s.value for s in StepStatus)
                raise ValidationError(f"Invalid step status '{status}'. Allowed: {allowed}") from exc

        step = self.pipeline.get_step(step_id)
        if step is None:
            raise NotFoundError(f"Step '{step_id}' not found in pipeline '{self.name}'")

        step.set_status(status)
        if status == StepStatus.ERROR:
            logger.warning("Step %s of pipeline %s reported an error", step_id, self.name)
        return step

    def completed_count(self) -> int:
        return self.pipeline.completed_count

    def total_steps(self) -> int:
        return self.pipeline.total_steps

    def completion_percent(self) -> float:
        """Share of completed steps, as a percentage rounded to 2 decimals."""
        total = self.pipeline.total_steps
        if total == 0:
            return 0.0
        return round(self.pipeline.completed_count / total * 100, 2)

    def summary(self) -> str:
        return f"{self.completed_count()} of {self.total_steps()} steps completed"

    def reset(self) -> WorkflowPipeline:
        """Restore every step to its initial status. The pause flag is kept.

        The replacement is built in full before it is swapped in, so a
        failure leaves the current pipeline untouched.
        """
        fresh = self._build(self.name)
        self.pipeline = fresh
        logger.info("Reset pipeline %s", self.name)
        return fresh
