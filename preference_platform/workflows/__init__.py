"""Workflow management for datasets, annotation, training, and pipelines."""

from .dataset_store import DatasetStore
from .annotation import AnnotationSession, SAMPLE_COMPARISONS, load_sample_items
from .training import (
    ManualScheduler,
    MetricGenerator,
    RandomMetricGenerator,
    ThreadScheduler,
    TrainingController,
)
from .pipeline_engine import PipelineEngine, load_catalogue

__all__ = [
    "DatasetStore",
    "AnnotationSession",
    "SAMPLE_COMPARISONS",
    "load_sample_items",
    "TrainingController",
    "MetricGenerator",
    "RandomMetricGenerator",
    "ThreadScheduler",
    "ManualScheduler",
    "PipelineEngine",
    "load_catalogue",
]
