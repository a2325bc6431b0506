"""
Unit tests for the training scheduler
"""

import asyncio
from types import SimpleNamespace

import pytest

from recstream.core.exceptions import TrainingFailure, ValidationError
from recstream.core.models import JobStatus
from recstream.ml.scheduler import TrainingScheduler
from recstream.streaming.bus import InMemoryMessageBus
from recstream.streaming.events import EventType

from .helpers import wait_for


class GatedPipeline:
    """Pipeline stub whose runs block until released"""

    def __init__(self, fail_jobs=()):
        self.fail_jobs = set(fail_jobs)
        self.release = asyncio.Event()
        self.running = 0
        self.max_running = 0
        self.runs = []

    async def run(self, job_id, config=None):
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        self.runs.append(job_id)
        try:
            await self.release.wait()
            if len(self.runs) in self.fail_jobs:
                raise TrainingFailure(job_id, "collect", ConnectionError("store down"))
            version = f"v{len(self.runs)}.0"
            return SimpleNamespace(
                model=SimpleNamespace(version=version),
                model_id=f"model-{version}",
                report=SimpleNamespace(metrics={"precision": 0.5})
            )
        finally:
            self.running -= 1


class BrokenBus(InMemoryMessageBus):
    """Bus whose publish fails with an unexpected error"""

    async def publish(self, event):
        raise RuntimeError("serializer exploded")


async def _bus():
    bus = InMemoryMessageBus()
    await bus.connect()
    return bus


class TestTrainingScheduler:
    """Test cases for TrainingScheduler"""

    @pytest.mark.asyncio
    async def test_second_submission_is_queued(self):
        pipeline = GatedPipeline()
        scheduler = TrainingScheduler(pipeline, await _bus())

        first = scheduler.submit()
        second = scheduler.submit({"time_decay": 0.5})

        assert first["success"] and second["success"]
        assert first["status"] == "started"
        assert second["status"] == "queued"
        status = scheduler.status()
        assert status["is_training"]
        assert status["queue_length"] == 1
        assert status["current_job"]["id"] == first["id"]

        pipeline.release.set()
        await scheduler.wait_idle(timeout=2)

    @pytest.mark.asyncio
    async def test_jobs_run_one_at_a_time_in_order(self):
        pipeline = GatedPipeline()
        bus = await _bus()
        scheduler = TrainingScheduler(pipeline, bus)

        ids = [scheduler.submit()["id"] for _ in range(3)]
        await asyncio.sleep(0)
        pipeline.release.set()
        await scheduler.wait_idle(timeout=2)

        assert pipeline.max_running == 1
        assert pipeline.runs == ids
        assert scheduler.completed_models == 3
        assert not scheduler.is_training
        assert all(scheduler.get_job(job_id).status is JobStatus.COMPLETED for job_id in ids)
        assert scheduler.get_job(ids[0]).model_version == "v1.0"

        types = [event.type for event in bus.published]
        assert types.count(EventType.MODEL_TRAINING_STARTED) == 3
        assert types.count(EventType.RECOMMENDATION_MODEL_UPDATED) == 3

    @pytest.mark.asyncio
    async def test_failed_job_does_not_block_the_queue(self):
        pipeline = GatedPipeline(fail_jobs={1})
        bus = await _bus()
        scheduler = TrainingScheduler(pipeline, bus)

        failed_id = scheduler.submit()["id"]
        next_id = scheduler.submit()["id"]
        pipeline.release.set()
        await scheduler.wait_idle(timeout=2)

        failed = scheduler.get_job(failed_id)
        assert failed.status is JobStatus.FAILED
        assert "store down" in failed.error
        assert failed.completed_at is not None
        assert scheduler.get_job(next_id).status is JobStatus.COMPLETED

        failures = [e for e in bus.published if e.type is EventType.MODEL_TRAINING_FAILED]
        assert [e.data["job_id"] for e in failures] == [failed_id]

    @pytest.mark.asyncio
    async def test_unreachable_bus_does_not_fail_jobs(self):
        pipeline = GatedPipeline()
        scheduler = TrainingScheduler(pipeline, InMemoryMessageBus())

        job_id = scheduler.submit()["id"]
        pipeline.release.set()
        await scheduler.wait_idle(timeout=2)

        assert scheduler.get_job(job_id).status is JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_malformed_config_rejected(self):
        scheduler = TrainingScheduler(GatedPipeline())

        with pytest.raises(ValidationError):
            scheduler.submit({"weights": {"click": 1}})

        assert not scheduler.is_training

    @pytest.mark.asyncio
    async def test_periodic_trigger_skips_while_busy(self):
        pipeline = GatedPipeline()
        scheduler = TrainingScheduler(pipeline)

        assert scheduler.trigger_periodic()["status"] == "started"
        assert scheduler.trigger_periodic() is None
        assert scheduler.status()["queue_length"] == 0

        pipeline.release.set()
        await scheduler.wait_idle(timeout=2)

    @pytest.mark.asyncio
    async def test_periodic_loop_submits(self):
        pipeline = GatedPipeline()
        pipeline.release.set()
        scheduler = TrainingScheduler(pipeline, interval_seconds=0.01)

        await scheduler.start()
        try:
            await wait_for(lambda: scheduler.completed_models >= 1)
        finally:
            await scheduler.stop()
        await scheduler.wait_idle(timeout=2)

        assert pipeline.max_running == 1

    @pytest.mark.asyncio
    async def test_misbehaving_bus_does_not_stall_the_queue(self):
        """A bus raising something other than DataUnavailable must not strand a running job"""
        pipeline = GatedPipeline()
        scheduler = TrainingScheduler(pipeline, BrokenBus())

        first = scheduler.submit()["id"]
        second = scheduler.submit()["id"]
        pipeline.release.set()
        await scheduler.wait_idle(timeout=2)

        assert scheduler.get_job(first).status is JobStatus.COMPLETED
        assert scheduler.get_job(second).status is JobStatus.COMPLETED
        assert not scheduler.is_training
        assert scheduler.status()["queue_length"] == 0
        assert scheduler.trigger_periodic()["status"] == "started"
        await scheduler.wait_idle(timeout=2)

    @pytest.mark.asyncio
    async def test_job_history_is_capped(self):
        pipeline = GatedPipeline()
        pipeline.release.set()
        scheduler = TrainingScheduler(pipeline, max_job_history=2)

        ids = []
        for _ in range(3):
            ids.append(scheduler.submit()["id"])
            await scheduler.wait_idle(timeout=2)

        assert list(scheduler.jobs) == ids[1:]
        assert scheduler.get_job(ids[0]) is None
        assert scheduler.completed_models == 3

    @pytest.mark.asyncio
    async def test_job_history_cap_keeps_active_jobs(self):
        pipeline = GatedPipeline()
        scheduler = TrainingScheduler(pipeline, max_job_history=1)

        ids = [scheduler.submit()["id"] for _ in range(3)]

        assert list(scheduler.jobs) == ids
        pipeline.release.set()
        await scheduler.wait_idle(timeout=2)
