"""Tests for the job consumer."""

import asyncio
from collections import Counter
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import FakeEmbeddingBackend, FakeFetcher, RecordingEventSink

from repoinsight.config import Settings
from repoinsight.fetch.models import RepositorySnapshot
from repoinsight.jobs.models import AnalysisJob, JobPayload
from repoinsight.jobs.queue import InMemoryJobQueue
from repoinsight.observability.events import EventType
from repoinsight.pipeline.consumer import AnalysisConsumer, backoff_delay
from repoinsight.pipeline.locks import ProjectLocks
from repoinsight.pipeline.outcomes import ProcessOutcome
from repoinsight.pipeline.pipeline import AnalysisPipeline
from repoinsight.pipeline.resources import WorkerResources
from repoinsight.storage.analysis_store import InMemoryAnalysisStore
from repoinsight.storage.models import EmbeddingRecord, Project, ProjectStatus
from repoinsight.storage.vectorstore import InMemoryEmbeddingStore


def _job(project_id: str = "p1", *repositories: str) -> AnalysisJob:
    return AnalysisJob(
        payload=JobPayload(
            project_id=project_id,
            organization_id="org",
            repositories=list(repositories) or ["acme/web"],
        )
    )


async def _wait_for(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not condition():
            await asyncio.sleep(0.01)


class BlockingFetcher(FakeFetcher):
    """Fetcher that blocks until cancelled."""

    async def fetch(self, handle: str, destination_root: Path) -> RepositorySnapshot:
        self.fetched.append(handle)
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


@pytest.fixture
async def consumer(
    settings: Settings,
    queue: InMemoryJobQueue,
    pipeline: AnalysisPipeline,
    store: InMemoryAnalysisStore,
    events: RecordingEventSink,
) -> AsyncGenerator[AnalysisConsumer, None]:
    consumer = AnalysisConsumer(queue, pipeline, store, events, settings.worker)
    yield consumer
    await consumer.shutdown(grace=0.5)


class TestBackoffDelay:
    """Tests for exponential backoff."""

    @pytest.mark.parametrize(
        ("attempt", "expected"),
        [(1, 1.0), (2, 2.0), (3, 4.0), (7, 60.0), (20, 60.0)],
    )
    def test_delay(self, attempt: int, expected: float) -> None:
        """Delays double per attempt up to the maximum."""
        assert backoff_delay(attempt, base=1.0, maximum=60.0) == expected


class TestProjectLocks:
    """Tests for per-project locks."""

    def test_exclusive(self) -> None:
        """Only one job holds a project; re-acquiring by the holder succeeds."""
        locks = ProjectLocks()

        assert locks.try_acquire("p1", "job-a")
        assert locks.try_acquire("p1", "job-a")
        assert not locks.try_acquire("p1", "job-b")
        assert locks.try_acquire("p2", "job-b")
        assert len(locks) == 2

    def test_release_by_holder_only(self) -> None:
        """Other jobs cannot release a held project."""
        locks = ProjectLocks()
        locks.try_acquire("p1", "job-a")

        assert not locks.release("p1", "job-b")
        assert locks.holder("p1") == "job-a"
        assert locks.release("p1", "job-a")
        assert locks.holder("p1") is None


class TestAnalysisConsumer:
    """Tests for AnalysisConsumer."""

    async def test_processes_job(
        self,
        consumer: AnalysisConsumer,
        queue: InMemoryJobQueue,
        store: InMemoryAnalysisStore,
    ) -> None:
        """A queued job is processed and acknowledged."""
        job = _job()
        await queue.enqueue(job)

        consumer.start()
        await consumer.run_until_idle(timeout=5.0)

        assert queue.completed == [job.id]
        project = await store.get_project("p1")
        assert project is not None
        assert project.status == ProjectStatus.COMPLETE
        assert await store.latest_result("p1") is not None

    async def test_start_twice(self, consumer: AnalysisConsumer) -> None:
        """A running consumer cannot be started again."""
        consumer.start()
        assert consumer.is_running

        with pytest.raises(RuntimeError):
            consumer.start()

    async def test_transient_failure_retried(
        self,
        consumer: AnalysisConsumer,
        queue: InMemoryJobQueue,
        fetcher: FakeFetcher,
        events: RecordingEventSink,
        store: InMemoryAnalysisStore,
    ) -> None:
        """A network failure is retried with the next attempt number."""
        fetcher.failures["acme/web"] = 1
        job = _job()
        await queue.enqueue(job)

        consumer.start()
        await consumer.run_until_idle(timeout=5.0)

        assert queue.completed == [job.id]
        assert queue.dead_letter == {}
        assert events.types(job.id) == [
            EventType.JOB_STARTED,
            EventType.JOB_FAILED,
            EventType.JOB_RETRY_SCHEDULED,
            EventType.JOB_STARTED,
            EventType.JOB_COMPLETED,
        ]
        assert events.events[-1].attempt == 2
        project = await store.get_project("p1")
        assert project is not None
        assert project.status == ProjectStatus.COMPLETE

    async def test_max_attempts(
        self,
        consumer: AnalysisConsumer,
        queue: InMemoryJobQueue,
        fetcher: FakeFetcher,
        events: RecordingEventSink,
        store: InMemoryAnalysisStore,
    ) -> None:
        """A job that keeps failing stops after max_attempts deliveries."""
        fetcher.failures["acme/web"] = 10
        job = _job()
        await queue.enqueue(job)

        consumer.start()
        await consumer.run_until_idle(timeout=5.0)

        assert fetcher.fetched == ["acme/web"] * 3
        assert list(queue.dead_letter) == [job.id]
        assert events.types(job.id).count(EventType.JOB_RETRY_SCHEDULED) == 2
        project = await store.get_project("p1")
        assert project is not None
        assert project.status == ProjectStatus.FAILED
        assert project.status_reason == "Failed to clone acme/web"

    async def test_permanent_failure_not_retried(
        self,
        consumer: AnalysisConsumer,
        queue: InMemoryJobQueue,
        store: InMemoryAnalysisStore,
        events: RecordingEventSink,
    ) -> None:
        """Payload failures go straight to the dead letter list."""
        await store.upsert_project(Project(id="p1", organization_id="org"))
        job = _job("p1", "not a handle")
        await queue.enqueue(job)

        consumer.start()
        await consumer.run_until_idle(timeout=5.0)

        assert list(queue.dead_letter) == [job.id]
        assert EventType.JOB_RETRY_SCHEDULED not in events.types(job.id)
        project = await store.get_project("p1")
        assert project is not None
        assert project.status == ProjectStatus.FAILED

    async def test_failure_for_unknown_project_is_logged(
        self,
        consumer: AnalysisConsumer,
        queue: InMemoryJobQueue,
    ) -> None:
        """A status update for a missing project does not stop the worker."""
        bad, good = _job("ghost", "not a handle"), _job("p2")
        await queue.enqueue(bad)
        await queue.enqueue(good)

        consumer.start()
        await consumer.run_until_idle(timeout=5.0)

        assert list(queue.dead_letter) == [bad.id]
        assert queue.completed == [good.id]

    async def test_busy_project_released(
        self,
        consumer: AnalysisConsumer,
        queue: InMemoryJobQueue,
        events: RecordingEventSink,
    ) -> None:
        """A job for a busy project is released without using an attempt."""
        consumer.locks.try_acquire("p1", "someone-else")
        job = _job()
        await queue.enqueue(job)

        consumer.start()
        await _wait_for(lambda: EventType.JOB_RELEASED in events.types(job.id))
        consumer.locks.release("p1", "someone-else")
        await consumer.run_until_idle(timeout=5.0)

        assert queue.completed == [job.id]
        completed = [e for e in events.events if e.type == EventType.JOB_COMPLETED]
        assert completed[0].attempt == 1

    async def test_same_project_never_overlaps(
        self,
        consumer: AnalysisConsumer,
        queue: InMemoryJobQueue,
        pipeline: AnalysisPipeline,
    ) -> None:
        """Jobs for one project run one at a time; other projects run alongside."""
        active: Counter[str] = Counter()
        peak: Counter[str] = Counter()
        process = pipeline.process

        async def tracked(job: AnalysisJob) -> ProcessOutcome:
            project_id = job.payload.project_id
            active[project_id] += 1
            peak[project_id] = max(peak[project_id], active[project_id])
            try:
                await asyncio.sleep(0.02)
                return await process(job)
            finally:
                active[project_id] -= 1

        jobs = [_job("p1"), _job("p1"), _job("p2"), _job("p1")]
        for job in jobs:
            await queue.enqueue(job)

        with patch.object(pipeline, "process", side_effect=tracked):
            consumer.start()
            await consumer.run_until_idle(timeout=10.0)

        assert peak["p1"] == 1
        assert sorted(queue.completed) == sorted(job.id for job in jobs)
        assert len(consumer.locks) == 0

    async def test_concurrency_limit(
        self,
        consumer: AnalysisConsumer,
        queue: InMemoryJobQueue,
        pipeline: AnalysisPipeline,
        settings: Settings,
    ) -> None:
        """No more than ``concurrency`` jobs run at once across projects."""
        active = 0
        peak = 0
        process = pipeline.process

        async def tracked(job: AnalysisJob) -> ProcessOutcome:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            try:
                await asyncio.sleep(0.05)
                return await process(job)
            finally:
                active -= 1

        jobs = [_job(f"p{n}") for n in range(6)]
        for job in jobs:
            await queue.enqueue(job)

        with patch.object(pipeline, "process", side_effect=tracked):
            consumer.start()
            await consumer.run_until_idle(timeout=10.0)

        assert peak == settings.worker.concurrency
        assert sorted(queue.completed) == sorted(job.id for job in jobs)

    async def test_no_claims_after_shutdown(
        self,
        settings: Settings,
        queue: InMemoryJobQueue,
        pipeline: AnalysisPipeline,
        store: InMemoryAnalysisStore,
        events: RecordingEventSink,
        fetcher: FakeFetcher,
    ) -> None:
        """A job that becomes due during the grace period stays queued."""
        settings.worker.claim_timeout = 5.0
        consumer = AnalysisConsumer(queue, pipeline, store, events, settings.worker)
        job = _job()

        consumer.start()
        await asyncio.sleep(0.01)
        await queue.enqueue(job, delay=0.1)
        await consumer.shutdown(grace=2.0)

        assert queue.completed == []
        assert fetcher.fetched == []
        assert await queue.pending_count() == 1
        assert events.types(job.id) == []

    async def test_shutdown_while_saving_keeps_result(
        self,
        settings: Settings,
        queue: InMemoryJobQueue,
        pipeline: AnalysisPipeline,
        store: InMemoryAnalysisStore,
        events: RecordingEventSink,
        embedding_store: InMemoryEmbeddingStore,
    ) -> None:
        """A job cancelled while its result is written is acknowledged, not requeued."""
        replace = embedding_store.replace_project_embeddings
        saving = asyncio.Event()
        lock_holders: list[str | None] = []
        consumer = AnalysisConsumer(queue, pipeline, store, events, settings.worker)

        async def slow_replace(project_id: str, records: list[EmbeddingRecord]) -> None:
            saving.set()
            await asyncio.sleep(0.3)
            lock_holders.append(consumer.locks.holder(project_id))
            await replace(project_id, records)

        job = _job()
        await queue.enqueue(job)

        with patch.object(embedding_store, "replace_project_embeddings", side_effect=slow_replace):
            consumer.start()
            await asyncio.wait_for(saving.wait(), timeout=5.0)
            await consumer.shutdown(grace=0.01)

        assert queue.completed == [job.id]
        assert await queue.pending_count() == 0
        assert lock_holders == [job.id]
        assert len(consumer.locks) == 0
        assert len(await store.list_results("p1")) == 1
        project = await store.get_project("p1")
        assert project is not None
        assert project.status == ProjectStatus.COMPLETE
        assert EventType.JOB_RELEASED not in events.types(job.id)
        assert events.types(job.id)[-1] == EventType.JOB_COMPLETED

    async def test_shutdown_interrupts_running_job(
        self,
        settings: Settings,
        queue: InMemoryJobQueue,
        pipeline: AnalysisPipeline,
        store: InMemoryAnalysisStore,
        events: RecordingEventSink,
    ) -> None:
        """Jobs still running after the grace period go back to the queue."""
        pipeline._fetcher = BlockingFetcher()
        consumer = AnalysisConsumer(queue, pipeline, store, events, settings.worker)
        job = _job()
        await queue.enqueue(job)

        consumer.start()
        await _wait_for(lambda: consumer.in_flight == 1)
        await consumer.shutdown(grace=0.05)

        assert not consumer.is_running
        assert queue.closed
        assert queue.completed == []
        assert queue.dead_letter == {}
        assert await queue.pending_count() == 1
        project = await store.get_project("p1")
        assert project is not None
        assert project.status == ProjectStatus.QUEUED
        assert project.status_reason == "interrupted"
        released = [e for e in events.events if e.type == EventType.JOB_RELEASED]
        assert released[0].reason == "shutdown"
        assert len(consumer.locks) == 0

    async def test_shutdown_closes_resources(
        self,
        settings: Settings,
        queue: InMemoryJobQueue,
        pipeline: AnalysisPipeline,
        store: InMemoryAnalysisStore,
        events: RecordingEventSink,
        primary_backend: FakeEmbeddingBackend,
        embedding_store: InMemoryEmbeddingStore,
    ) -> None:
        """Process resources are closed once the workers stop."""
        resources = WorkerResources([primary_backend], embedding_store)
        consumer = AnalysisConsumer(
            queue, pipeline, store, events, settings.worker, resources=resources
        )
        await queue.enqueue(_job())

        consumer.start()
        await consumer.run_until_idle(timeout=5.0)
        await consumer.shutdown()

        assert primary_backend.closed
        assert queue.completed

    async def test_run_until_idle_timeout(
        self,
        settings: Settings,
        queue: InMemoryJobQueue,
        pipeline: AnalysisPipeline,
        store: InMemoryAnalysisStore,
        events: RecordingEventSink,
    ) -> None:
        """Waiting for a queue that never drains times out."""
        consumer = AnalysisConsumer(queue, pipeline, store, events, settings.worker)
        await queue.enqueue(_job())

        with pytest.raises(TimeoutError):
            await consumer.run_until_idle(timeout=0.1)
