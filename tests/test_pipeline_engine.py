"""Tests for the workflow pipeline engine and its catalogue."""

from datetime import timedelta

import pytest
import yaml

from preference_platform.errors import ConfigError, NotFoundError, ValidationError
from preference_platform.models.pipeline import StepStatus
from preference_platform.workflows.pipeline_engine import PipelineEngine, load_catalogue


@pytest.fixture
def engine():
    return PipelineEngine()


class TestCatalogue:
    def test_builtin_pipelines(self):
        catalogue = load_catalogue()
        assert list(catalogue) == ["dpo", "rlhf"]
        assert len(catalogue["dpo"]["steps"]) == 6
        assert len(catalogue["rlhf"]["steps"]) == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_catalogue(tmp_path / "nope.yaml")

    def test_invalid_status(self, tmp_path):
        path = tmp_path / "pipelines.yaml"
        path.write_text(yaml.safe_dump({
            "custom": {"steps": [{"id": "s1", "title": "Step", "status": "done"}]},
        }))
        with pytest.raises(ConfigError):
            load_catalogue(path)

    def test_duplicate_step_ids(self, tmp_path):
        path = tmp_path / "pipelines.yaml"
        path.write_text(yaml.safe_dump({
            "custom": {"steps": [{"id": "s1", "title": "A"}, {"id": "s1", "title": "B"}]},
        }))
        with pytest.raises(ConfigError):
            load_catalogue(path)

    def test_custom_catalogue(self, tmp_path):
        path = tmp_path / "pipelines.yaml"
        path.write_text(yaml.safe_dump({
            "sft": {
                "title": "Supervised Fine-tuning",
                "steps": [
                    {"id": "prep", "title": "Prepare", "status": "completed"},
                    {"id": "train", "title": "Train"},
                ],
            },
        }))
        engine = PipelineEngine(catalogue=load_catalogue(path), default_pipeline="sft")
        assert engine.pipeline.title == "Supervised Fine-tuning"
        assert engine.completion_percent() == 50.0
        assert engine.steps[1].status == StepStatus.PENDING


class TestSelection:
    def test_default_is_dpo(self, engine):
        assert engine.name == "dpo"
        assert engine.pipeline.title == "Direct Preference Optimization"
        assert engine.running is True

    def test_select_rlhf(self, engine):
        engine.select_pipeline("rlhf")
        assert engine.name == "rlhf"
        assert [s.id for s in engine.steps][:2] == ["supervised-finetuning", "reward-modeling"]

    def test_unknown_pipeline(self, engine):
        with pytest.raises(NotFoundError):
            engine.select_pipeline("ppo-only")
        assert engine.name == "dpo"

    def test_no_state_carried_between_pipelines(self, engine):
        engine.set_step_status("dpo-optimization", "completed")
        engine.select_pipeline("rlhf")
        engine.select_pipeline("dpo")
        assert engine.pipeline.get_step("dpo-optimization").status == StepStatus.PENDING
        assert engine.completed_count() == 2

    def test_available_pipelines(self, engine):
        assert engine.available_pipelines() == ["dpo", "rlhf"]


class TestCompletion:
    def test_dpo_two_of_six(self, engine):
        assert engine.completed_count() == 2
        assert engine.total_steps() == 6
        assert engine.completion_percent() == 33.33
        assert engine.summary() == "2 of 6 steps completed"

    def test_rlhf_two_of_five(self, engine):
        engine.select_pipeline("rlhf")
        assert engine.completion_percent() == 40.0

    def test_all_completed(self, engine):
        for step in engine.steps:
            engine.set_step_status(step.id, StepStatus.COMPLETED)
        assert engine.completion_percent() == 100.0

    def test_step_missing_title(self):
        with pytest.raises(ConfigError):
            PipelineEngine(catalogue={"bad": {"steps": [{"id": "x"}]}}, default_pipeline="bad")

    def test_empty_pipeline(self):
        engine = PipelineEngine(catalogue={"empty": {"steps": []}}, default_pipeline="empty")
        assert engine.completion_percent() == 0.0


class TestStepStatus:
    def test_set_status_any_transition(self, engine):
        step = engine.set_step_status("data-collection", "pending")
        assert step.status == StepStatus.PENDING
        step = engine.set_step_status("data-collection", "error")
        assert step.status == StepStatus.ERROR

    def test_invalid_status(self, engine):
        with pytest.raises(ValidationError):
            engine.set_step_status("evaluation", "finished")
        assert engine.pipeline.get_step("evaluation").status == StepStatus.PENDING

    def test_unknown_step(self, engine):
        with pytest.raises(NotFoundError):
            engine.set_step_status("ppo-training", "completed")

    def test_elapsed_tracking(self, engine):
        step = engine.set_step_status("evaluation", StepStatus.IN_PROGRESS)
        assert step.started_at is not None
        assert step.completed_at is None
        engine.set_step_status("evaluation", StepStatus.COMPLETED)
        assert step.completed_at >= step.started_at
        assert step.elapsed >= timedelta(0)

    def test_pending_clears_timestamps(self, engine):
        step = engine.set_step_status("evaluation", StepStatus.IN_PROGRESS)
        engine.set_step_status("evaluation", StepStatus.PENDING)
        assert step.started_at is None
        assert step.elapsed is None


class TestRunningAndReset:
    def test_toggle_running_is_advisory(self, engine):
        before = [s.status for s in engine.steps]
        assert engine.toggle_running() is False
        assert [s.status for s in engine.steps] == before
        assert engine.toggle_running() is True

    def test_reset_restores_initial_statuses(self, engine):
        engine.set_step_status("dpo-optimization", "completed")
        engine.set_step_status("data-collection", "error")
        engine.reset()
        assert engine.completion_percent() == 33.33
        assert engine.pipeline.get_step("data-collection").status == StepStatus.COMPLETED

    def test_reset_keeps_pause_flag(self, engine):
        engine.toggle_running()
        engine.reset()
        assert engine.running is False

    def test_pause_survives_pipeline_switch(self, engine):
        engine.toggle_running()
        engine.select_pipeline("rlhf")
        assert engine.running is False
        engine.select_pipeline("dpo")
        assert engine.running is False
        assert engine.toggle_running() is True

    def test_reset_keeps_selected_pipeline(self, engine):
        engine.select_pipeline("rlhf")
        engine.reset()
        assert engine.name == "rlhf"

    def test_failed_reset_leaves_pipeline_intact(self, engine):
        engine.set_step_status("deployment", "completed")
        steps_before = engine.steps
        engine.catalogue["dpo"]["steps"][-1]["status"] = "bogus"
        with pytest.raises(ConfigError):
            engine.reset()
        assert engine.steps is steps_before
        assert engine.pipeline.get_step("deployment").status == StepStatus.COMPLETED
