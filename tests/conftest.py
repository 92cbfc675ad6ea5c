"""Shared fixtures for the preference platform tests."""

import sys
from pathlib import Path

import pytest

# Make the package importable when running from a source checkout
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from preference_platform.models.training import StepMetrics  # noqa: E402
from preference_platform.workflows.dataset_store import DatasetStore  # noqa: E402
from preference_platform.workflows.training import (  # noqa: E402
    ManualScheduler,
    TrainingController,
)


class FixedMetrics:
    """Metric generator that always reports the same values and records calls."""

    def __init__(self, loss: float = 0.25, accuracy: float = 0.9):
        self.loss = loss
        self.accuracy = accuracy
        self.steps: list[int] = []

    def next_metric(self, step: int) -> StepMetrics:
        self.steps.append(step)
        return StepMetrics(loss=self.loss, accuracy=self.accuracy)


@pytest.fixture
def metrics():
    return FixedMetrics()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def controller(metrics, scheduler):
    return TrainingController(metric_generator=metrics, scheduler=scheduler)


@pytest.fixture
def store():
    store = DatasetStore()
    store.add("What is DPO?", "Direct Preference Optimization.", "A dance move.")
    store.add("Capital of France?", "Paris", "Lyon")
    store.add("2 + 2?", "4", "5")
    return store
