"""
Simulated DPO training job controller.

Runs a single cancellable training job as a repeating tick. Each tick
advances the step counter, derives epoch and percentage, and every few
steps appends a synthetic loss/accuracy line to a bounded log. Nothing is
actually trained.

Tick scheduling and metric generation are pluggable so tests can drive a
job deterministically:

    controller = TrainingController(scheduler=ManualScheduler())
    controller.start(TrainingConfig(epochs=1))
    controller.scheduler.run_until_idle()
"""

import logging
import random
import threading
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Optional, Protocol

from ..errors import AlreadyRunningError, ConfigError
from ..models.training import (
    LOG_CAPACITY,
    LOG_EVERY,
    STEPS_PER_EPOCH,
    JobState,
    StepMetrics,
    TrainingConfig,
    TrainingJob,
    TrainingProgress,
    format_log_line,
)

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 0.2  # seconds

# Event names delivered to subscribers
EVENT_STARTED = "started"
EVENT_PROGRESS = "progress"
EVENT_LOG = "log"
EVENT_COMPLETED = "completed"
EVENT_STOPPED = "stopped"

Listener = Callable[[str, TrainingProgress], None]


# ---------------------------------------------------------------------------
# Metric generation
# ---------------------------------------------------------------------------

class MetricGenerator(Protocol):
    """Produces the synthetic metrics reported for a step."""

    def next_metric(self, step: int) -> StepMetrics:
        ...


class RandomMetricGenerator:
    """Uniformly random loss in [0.1, 0.6) and accuracy in [0.8, 1.0)."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def next_metric(self, step: int) -> StepMetrics:
        loss = self._rng.random() * 0.5 + 0.1
        accuracy = self._rng.random() * 0.2 + 0.8
        return StepMetrics(loss=loss, accuracy=accuracy)


# ---------------------------------------------------------------------------
# Tick scheduling
# ---------------------------------------------------------------------------

# A tick callback returns False once no further ticks are wanted.
TickCallback = Callable[[], bool]


class _ThreadHandle:
    """Repeating tick on a daemon thread, stopped by an Event."""

    def __init__(self, callback: TickCallback, interval: float):
        self._callback = callback
        self._interval = interval
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name="training-ticker", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._cancelled.wait(self._interval):
            if not self._callback():
                break
        self._cancelled.set()

    @property
    def active(self) -> bool:
        return not self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout)


class ThreadScheduler:
    """Fires ticks from a background thread at a fixed interval."""

    def schedule(self, callback: TickCallback, interval: float) -> _ThreadHandle:
        return _ThreadHandle(callback, interval)


class _ManualHandle:
    def __init__(self, callback: TickCallback):
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        self.active = False

    def join(self, timeout: Optional[float] = None) -> None:
        pass


class ManualScheduler:
    """Ticks only when told to. Used for deterministic runs and tests."""

    def __init__(self):
        self._handle: Optional[_ManualHandle] = None
        self.ticks_fired = 0

    def schedule(self, callback: TickCallback, interval: float) -> _ManualHandle:
        self._handle = _ManualHandle(callback)
        return self._handle

    @property
    def pending(self) -> bool:
        return self._handle is not None and self._handle.active

    def run(self, ticks: int = 1) -> int:
        """Fire up to `ticks` ticks; returns how many actually fired."""
        fired = 0
        while fired < ticks and self.pending:
            handle = self._handle
            keep_going = handle.callback()
            fired += 1
            self.ticks_fired += 1
            if not keep_going:
                handle.cancel()
        return fired

    def run_until_idle(self, max_ticks: int = 1_000_000) -> int:
        return self.run(max_ticks)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class TrainingController:
    """Owns one training job and the repeating tick that advances it."""

    def __init__(
        self,
        metric_generator: Optional[MetricGenerator] = None,
        scheduler=None,
        steps_per_epoch: int = STEPS_PER_EPOCH,
        log_every: int = LOG_EVERY,
        log_capacity: int = LOG_CAPACITY,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
    ):
        if steps_per_epoch <= 0 or log_every <= 0 or log_capacity <= 0:
            raise ConfigError("steps_per_epoch, log_every and log_capacity must be positive")
        if tick_interval < 0:
            raise ConfigError("tick_interval must not be negative")

        self.metric_generator = metric_generator or RandomMetricGenerator()
        self.scheduler = scheduler or ThreadScheduler()
        self.steps_per_epoch = steps_per_epoch
        self.log_every = log_every
        self.log_capacity = log_capacity
        self.tick_interval = tick_interval

        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._job = self._new_job()
        self._handle = None
        # Bumped on every start/stop so a late tick from an old job is ignored
        self._generation = 0
        self._listeners: list[Listener] = []

    def _new_job(self, config: Optional[TrainingConfig] = None) -> TrainingJob:
        return TrainingJob(
            config=config,
            steps_per_epoch=self.steps_per_epoch,
            log_capacity=self.log_capacity,
        )

    # === Observation ===

    @property
    def state(self) -> JobState:
        with self._lock:
            return self._job.state

    @property
    def is_running(self) -> bool:
        return self.state is JobState.RUNNING

    @property
    def config(self) -> Optional[TrainingConfig]:
        with self._lock:
            return self._job.config

    def snapshot(self) -> TrainingProgress:
        """Consistent view of the job; never shows a half-applied tick."""
        with self._lock:
            return self._job.snapshot()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the job is no longer running. False on timeout."""
        return self._idle.wait(timeout)

    # === Commands ===

    def start(self, config: TrainingConfig) -> TrainingProgress:
        """Start a new job from zero."""
        missing = config.missing_fields()
        if missing:
            logger.warning("Rejected training start, missing %s", ", ".join(missing))
            raise ConfigError(f"Please fill in all required fields: {', '.join(missing)}")

        with self._lock:
            if self._job.state is JobState.RUNNING:
                raise AlreadyRunningError("A training job is already running")

            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            job = self._new_job(config)
            job.state = JobState.RUNNING
            job.total_steps = config.total_steps(self.steps_per_epoch)
            job.started_at = datetime.now(timezone.utc)
            self._job = job
            self._idle.clear()
            self._handle = self.scheduler.schedule(
                partial(self._tick, self._generation), self.tick_interval,
            )
            snapshot = job.snapshot()

        logger.info(
            "Started training %s on %s: %d epochs, %d steps",
            config.model_name, config.dataset_path, config.epochs, snapshot.total_steps,
        )
        self._emit([(EVENT_STARTED, snapshot)])
        return snapshot

    def stop(self) -> TrainingProgress:
        """Halt a running job and keep its progress for inspection.

        Calling this when no job is running does nothing.
        """
        with self._lock:
            if self._job.state is not JobState.RUNNING:
                logger.debug("Stop requested with no running job (state=%s)", self._job.state.value)
                return self._job.snapshot()
            handle = self._cancel_locked()
            self._job.mark_finished(JobState.STOPPED)
            snapshot = self._job.snapshot()

        logger.info("Training stopped manually at step %d/%d", snapshot.current_step, snapshot.total_steps)
        if handle is not None:
            handle.join(timeout=1.0)
        self._emit([(EVENT_STOPPED, snapshot)])
        return snapshot

    def reset(self) -> TrainingProgress:
        """Discard the current job, stopping it first if needed."""
        if self.is_running:
            self.stop()
        with self._lock:
            handle = self._cancel_locked()
            self._job = self._new_job()
            snapshot = self._job.snapshot()
        if handle is not None:
            handle.join(timeout=1.0)
        logger.debug("Training controller reset")
        return snapshot

    def _cancel_locked(self):
        handle = self._handle
        if handle is not None:
            handle.cancel()
        self._handle = None
        self._generation += 1
        self._idle.set()
        return handle

    # === Progression ===

    def _tick(self, generation: int) -> bool:
        """Apply one step. Returns False when no further ticks should fire."""
        events = []
        with self._lock:
            job = self._job
            if generation != self._generation or job.state is not JobState.RUNNING:
                return False

            step = job.current_step + 1
            line = None
            if step % self.log_every == 0:
                try:
                    metrics = self.metric_generator.next_metric(step)
                except Exception:
                    logger.exception("Metric generator failed at step %d; stopping job", step)
                    self._cancel_locked()
                    job.mark_finished(JobState.STOPPED)
                    events.append((EVENT_STOPPED, job.snapshot()))
                else:
                    line = format_log_line(step, metrics)

            if not events:
                events = self._apply_step(job, step, line)

        self._emit(events)
        return not any(name in (EVENT_COMPLETED, EVENT_STOPPED) for name, _ in events)

    def _apply_step(self, job: TrainingJob, step: int, line: Optional[str]) -> list:
        # Caller holds the lock; everything below lands as one tick.
        job.current_step = step
        if line is not None:
            job.append_log(line)
        finished = job.is_finished
        if finished:
            self._cancel_locked()
            job.mark_finished(JobState.COMPLETED)
            logger.info("Training complete after %d steps", step)

        snapshot = job.snapshot()
        events = [(EVENT_PROGRESS, snapshot)]
        if line is not None:
            events.append((EVENT_LOG, snapshot))
        if finished:
            events.append((EVENT_COMPLETED, snapshot))
        return events

    def _emit(self, events) -> None:
        for name, snapshot in events:
            for listener in list(self._listeners):
                try:
                    listener(name, snapshot)
                except Exception:
                    logger.exception("Training listener failed on %s event", name)
