"""Data models for comparisons, training jobs, and workflow pipelines."""

from .comparison import Annotation, ComparisonItem, Preference
from .training import JobState, StepMetrics, TrainingConfig, TrainingJob, TrainingProgress
from .pipeline import StepStatus, WorkflowPipeline, WorkflowStep

__all__ = [
    # Dataset
    "ComparisonItem",
    "Annotation",
    "Preference",
    # Training
    "TrainingConfig",
    "TrainingJob",
    "TrainingProgress",
    "JobState",
    "StepMetrics",
    # Pipelines
    "WorkflowPipeline",
    "WorkflowStep",
    "StepStatus",
]
