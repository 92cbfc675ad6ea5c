"""Tests for the session workspace that wires the components together."""

import pytest

from preference_platform import PreferenceWorkspace
from preference_platform.config import PlatformSettings
from preference_platform.errors import ConfigError
from preference_platform.models.training import JobState
from preference_platform.workflows.training import ManualScheduler


@pytest.fixture
def workspace(metrics):
    settings = PlatformSettings(steps_per_epoch=10, log_every=5)
    return PreferenceWorkspace(
        settings=settings, metric_generator=metrics, scheduler=ManualScheduler(),
        with_samples=True,
    )


def test_samples_loaded(workspace):
    assert workspace.dataset.total_count() == 3
    assert workspace.annotation.position_label == "1 of 3"


def test_annotation_shows_in_stats(workspace):
    workspace.annotation.annotate_current("B", "friendlier")
    stats = workspace.stats()
    assert stats["annotated_items"] == 1
    assert stats["preferences"] == {"A": 0, "B": 1, "tie": 0}
    assert stats["pipeline"] == "dpo"
    assert stats["pipeline_progress"] == 33.33
    assert stats["training"]["state"] == "idle"


def test_training_uses_settings(workspace):
    snapshot = workspace.start_training(epochs=2)
    assert snapshot.total_steps == 20
    workspace.training.scheduler.run_until_idle()
    done = workspace.training.snapshot()
    assert done.state is JobState.COMPLETED
    assert len(done.log_lines) == 4


def test_start_training_rejects_bad_override(workspace):
    with pytest.raises(ConfigError):
        workspace.start_training(batch_size=3)
    assert workspace.training.state is JobState.IDLE


def test_close_stops_running_job(workspace):
    workspace.start_training()
    workspace.training.scheduler.run(3)
    workspace.close()
    assert workspace.training.state is JobState.STOPPED


def test_default_pipeline_from_settings(metrics):
    workspace = PreferenceWorkspace(
        settings=PlatformSettings(default_pipeline="rlhf"),
        metric_generator=metrics, scheduler=ManualScheduler(),
    )
    assert workspace.pipelines.name == "rlhf"
    assert workspace.dataset.total_count() == 0
