"""
Training Scheduler

Owns the training job lifecycle: at most one running job, further
submissions queued in FIFO order, and an hourly retrain that never overlaps
an active cycle.
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from typing import Any, Callable, Deque, Dict, Mapping, Optional

from ..core.config import TrainingConfig
from ..core.exceptions import DataUnavailable
from ..core.models import JobStatus, TrainingJob
from ..streaming.bus import MessageBus
from ..streaming.events import Event, EventFactory
from .training import TrainingPipeline


def generate_job_id() -> str:
    return f"job-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class TrainingScheduler:
    """
    Single-flight training queue

    Job state changes happen synchronously between awaits, so no observer can
    see two running jobs or a half-updated job.
    """

    def __init__(
        self,
        pipeline: TrainingPipeline,
        bus: Optional[MessageBus] = None,
        interval_seconds: float = 3600.0,
        max_job_history: int = 100,
        default_config: Optional[TrainingConfig] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        self.pipeline = pipeline
        self.bus = bus
        self.interval_seconds = interval_seconds
        self.max_job_history = max_job_history
        self.default_config = default_config or TrainingConfig()
        self.clock = clock or time.time

        self.current_job: Optional[TrainingJob] = None
        self.queue: Deque[TrainingJob] = deque()
        self.jobs: Dict[str, TrainingJob] = {}
        self.completed_models = 0

        self._tasks: set = set()
        self._timer: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()

        self.logger = logging.getLogger(__name__)

    @property
    def is_training(self) -> bool:
        return self.current_job is not None

    def submit(self, config: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Submit a training request

        Must be called from a running event loop.

        Args:
            config: Training config as a mapping; missing keys use defaults

        Returns:
            ``{"success": True, "id": ..., "status": "started" | "queued"}``

        Raises:
            ValidationError: if the config is malformed
        """
        training_config = TrainingConfig.from_dict(config)
        job = TrainingJob(
            job_id=generate_job_id(),
            config=training_config.to_dict(),
            created_at=self.clock()
        )
        self._record(job)

        if self.current_job is not None:
            self.queue.append(job)
            self.logger.info(f"Training job {job.job_id} queued ({len(self.queue)} waiting)")
            return {"success": True, "id": job.job_id, "status": "queued"}

        self._start(job)
        return {"success": True, "id": job.job_id, "status": "started"}

    def _record(self, job: TrainingJob):
        """Remember a job, forgetting the oldest finished ones past max_job_history"""
        self.jobs[job.job_id] = job
        excess = len(self.jobs) - self.max_job_history
        if excess <= 0:
            return
        finished = [
            job_id for job_id, known in self.jobs.items()
            if known.status in (JobStatus.COMPLETED, JobStatus.FAILED)
        ]
        for job_id in finished[:excess]:
            del self.jobs[job_id]

    def _start(self, job: TrainingJob):
        job.status = JobStatus.RUNNING
        job.started_at = self.clock()
        self.current_job = job
        self._idle.clear()

        task = asyncio.create_task(self._run(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.logger.info(f"Model training started: {job.job_id}")

    async def _run(self, job: TrainingJob):
        try:
            await self._emit(EventFactory.training_started(job.job_id, job.config))

            try:
                outcome = await self.pipeline.run(job.job_id, TrainingConfig.from_dict(job.config))
            except Exception as e:
                job.status = JobStatus.FAILED
                job.error = str(e)
                job.completed_at = self.clock()
                self.logger.error(f"Model training failed for job {job.job_id}: {e}")
                event = EventFactory.training_failed(job.job_id, job.error)
            else:
                job.status = JobStatus.COMPLETED
                job.model_version = outcome.model.version
                job.completed_at = self.clock()
                self.completed_models += 1
                event = EventFactory.model_updated(outcome.model_id, outcome.model.version, outcome.report.metrics)

            await self._emit(event)
        finally:
            self._advance()

    def _advance(self):
        self.current_job = None
        if self.queue:
            self._start(self.queue.popleft())
        else:
            self._idle.set()

    async def _emit(self, event: Event):
        if self.bus is None:
            return
        try:
            await self.bus.publish(event)
        except DataUnavailable as e:
            self.logger.error(f"Failed to publish {event.type.value}: {e}")
        except Exception as e:
            self.logger.error(f"Unexpected error publishing {event.type.value}: {e}")

    def trigger_periodic(self) -> Optional[Dict[str, Any]]:
        """Submit a default job if nothing is running or waiting"""
        if self.current_job is not None or self.queue:
            self.logger.debug("Scheduled training skipped, a cycle is already in flight")
            return None
        self.logger.info("Starting scheduled model training...")
        return self.submit(self.default_config.to_dict())

    async def _periodic_loop(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.trigger_periodic()
            except Exception as e:
                self.logger.error(f"Scheduled training submission failed: {e}")

    async def start(self):
        if self._timer is None:
            self._timer = asyncio.create_task(self._periodic_loop())

    async def stop(self):
        if self._timer is not None:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None

    async def wait_idle(self, timeout: Optional[float] = None):
        """Wait until no job is running and the queue is empty"""
        await asyncio.wait_for(self._idle.wait(), timeout)

    def get_job(self, job_id: str) -> Optional[TrainingJob]:
        return self.jobs.get(job_id)

    def status(self) -> Dict[str, Any]:
        return {
            "is_training": self.is_training,
            "current_job": self.current_job.to_dict() if self.current_job else None,
            "queue_length": len(self.queue),
            "completed_models": self.completed_models
        }
