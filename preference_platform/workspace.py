"""Single-session workspace tying the dataset, annotation, training and pipeline views together."""

import logging
from typing import Optional

from .config import PlatformSettings
from .models.training import TrainingConfig, TrainingProgress
from .workflows.annotation import AnnotationSession, load_sample_items
from .workflows.dataset_store import DatasetStore
from .workflows.pipeline_engine import PipelineEngine, load_catalogue
from .workflows.training import MetricGenerator, TrainingController

logger = logging.getLogger(__name__)


class PreferenceWorkspace:
    """Everything one user works with during a session. Nothing is persisted."""

    def __init__(
        self,
        settings: Optional[PlatformSettings] = None,
        metric_generator: Optional[MetricGenerator] = None,
        scheduler=None,
        with_samples: bool = False,
    ):
        self.settings = settings or PlatformSettings()
        self.dataset = DatasetStore()
        self.annotation = AnnotationSession(self.dataset)
        self.training = TrainingController(
            metric_generator=metric_generator,
            scheduler=scheduler,
            steps_per_epoch=self.settings.steps_per_epoch,
            log_every=self.settings.log_every,
            log_capacity=self.settings.log_capacity,
            tick_interval=self.settings.tick_interval,
        )
        self.pipelines = PipelineEngine(
            catalogue=load_catalogue(self.settings.catalogue_path),
            default_pipeline=self.settings.default_pipeline,
        )
        if with_samples:
            load_sample_items(self.dataset)

    def start_training(self, config: Optional[TrainingConfig] = None, **overrides) -> TrainingProgress:
        """Start a training job; keyword overrides are applied to the default config."""
        config = config or TrainingConfig.build(**overrides)
        return self.training.start(config)

    def stats(self) -> dict:
        """Headline numbers for a dashboard header."""
        progress = self.training.snapshot()
        return {
            "total_items": self.dataset.total_count(),
            "annotated_items": self.dataset.annotated_count(),
            "preferences": self.dataset.preference_breakdown(),
            "review_position": self.annotation.position_label,
            "training": progress.to_dict(),
            "pipeline": self.pipelines.name,
            "pipeline_progress": self.pipelines.completion_percent(),
            "pipeline_running": self.pipelines.running,
        }

    def close(self) -> None:
        """Stop any running job so no tick outlives the session."""
        self.training.stop()
