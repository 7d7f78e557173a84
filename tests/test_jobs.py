"""Tests for job models and the in-memory queue."""

import asyncio

import pytest

from repoinsight.exceptions import ErrorCode, JobPayloadError, QueueError
from repoinsight.jobs.models import AnalysisJob, JobClaim, JobKind, JobPayload
from repoinsight.jobs.queue import InMemoryJobQueue


def _job(project_id: str = "p1", *repositories: str) -> AnalysisJob:
    return AnalysisJob(
        payload=JobPayload(
            project_id=project_id,
            organization_id="org",
            repositories=list(repositories) or ["acme/web"],
        )
    )


class TestJobPayload:
    """Tests for JobPayload model."""

    def test_repositories_deduplicated(self) -> None:
        """Duplicate handles collapse, keeping first-seen order."""
        payload = JobPayload(
            project_id="p1",
            organization_id="org",
            repositories=["acme/web", " acme/api ", "acme/web"],
        )
        assert payload.repositories == ["acme/web", "acme/api"]

    def test_repositories_required(self) -> None:
        """At least one non-blank handle is required."""
        with pytest.raises(ValueError):
            JobPayload(project_id="p1", organization_id="org", repositories=[])
        with pytest.raises(ValueError):
            JobPayload(project_id="p1", organization_id="org", repositories=["  "])


class TestAnalysisJob:
    """Tests for AnalysisJob model."""

    def test_defaults(self) -> None:
        """New jobs start at attempt one with a unique id."""
        first, second = _job(), _job()
        assert first.kind == JobKind.ANALYZE_PROJECT
        assert first.attempt == 1
        assert first.id != second.id

    def test_next_attempt(self) -> None:
        """next_attempt bumps the attempt and keeps everything else."""
        job = _job()
        retried = job.next_attempt()
        assert retried.attempt == 2
        assert retried.id == job.id
        assert job.attempt == 1

    def test_from_raw(self) -> None:
        """Raw mappings are validated into jobs."""
        job = AnalysisJob.from_raw(
            {
                "kind": "analyze-project",
                "payload": {
                    "project_id": "p1",
                    "organization_id": "org",
                    "repositories": ["acme/web"],
                },
            }
        )
        assert job.payload.repositories == ["acme/web"]

    def test_from_raw_malformed(self) -> None:
        """Malformed mappings raise JobPayloadError with the errors."""
        with pytest.raises(JobPayloadError) as exc_info:
            AnalysisJob.from_raw({"kind": "unknown", "payload": {"project_id": "p1"}})
        assert exc_info.value.details["errors"]


class TestInMemoryJobQueue:
    """Tests for the in-process queue."""

    async def test_claim_in_order(self, queue: InMemoryJobQueue) -> None:
        """Jobs are claimed in enqueue order."""
        first, second = _job("p1"), _job("p2")
        await queue.enqueue(first)
        await queue.enqueue(second)

        claim_a = await queue.claim_next(timeout=0.1)
        claim_b = await queue.claim_next(timeout=0.1)

        assert claim_a is not None and claim_a.job.id == first.id
        assert claim_b is not None and claim_b.job.id == second.id
        assert queue.active_claims == 2
        assert await queue.pending_count() == 0

    async def test_claim_timeout(self, queue: InMemoryJobQueue) -> None:
        """An empty queue returns None after the timeout."""
        assert await queue.claim_next(timeout=0.01) is None

    async def test_claim_waits_for_enqueue(self, queue: InMemoryJobQueue) -> None:
        """A waiting claimer wakes when a job arrives."""
        waiter = asyncio.create_task(queue.claim_next(timeout=1.0))
        await asyncio.sleep(0)
        job = _job()
        await queue.enqueue(job)

        claim = await waiter
        assert claim is not None and claim.job.id == job.id

    async def test_delayed_job_invisible(self, queue: InMemoryJobQueue) -> None:
        """Delayed jobs are pending but not claimable until due."""
        await queue.enqueue(_job(), delay=0.2)

        assert await queue.pending_count() == 1
        assert await queue.claim_next(timeout=0.01) is None
        assert await queue.claim_next(timeout=1.0) is not None

    async def test_ack(self, queue: InMemoryJobQueue) -> None:
        """Acked jobs are recorded as completed."""
        job = _job()
        await queue.enqueue(job)
        claim = await queue.claim_next(timeout=0.1)
        assert claim is not None

        await queue.ack(claim)

        assert queue.completed == [job.id]
        assert queue.active_claims == 0

    async def test_nack(self, queue: InMemoryJobQueue) -> None:
        """Nacked jobs go to the dead letter list with their reason."""
        job = _job()
        await queue.enqueue(job)
        claim = await queue.claim_next(timeout=0.1)
        assert claim is not None

        await queue.nack(claim, "extractor failed")

        assert queue.dead_letter == {job.id: "extractor failed"}
        assert await queue.pending_count() == 0

    async def test_retry_increments_attempt(self, queue: InMemoryJobQueue) -> None:
        """Retried jobs come back with the next attempt number."""
        job = _job()
        await queue.enqueue(job)
        claim = await queue.claim_next(timeout=0.1)
        assert claim is not None

        await queue.retry(claim, delay=0.0)
        again = await queue.claim_next(timeout=0.1)

        assert again is not None
        assert again.job.id == job.id
        assert again.job.attempt == 2

    async def test_release_keeps_attempt(self, queue: InMemoryJobQueue) -> None:
        """Released jobs come back unchanged."""
        job = _job()
        await queue.enqueue(job)
        claim = await queue.claim_next(timeout=0.1)
        assert claim is not None

        await queue.release(claim)
        again = await queue.claim_next(timeout=0.1)

        assert again is not None
        assert again.job.attempt == 1
        assert again.token != claim.token

    async def test_stale_claim_rejected(self, queue: InMemoryJobQueue) -> None:
        """Settling a claim twice, or a forged claim, fails."""
        job = _job()
        await queue.enqueue(job)
        claim = await queue.claim_next(timeout=0.1)
        assert claim is not None
        await queue.ack(claim)

        with pytest.raises(QueueError) as exc_info:
            await queue.ack(claim)
        assert exc_info.value.code == ErrorCode.CLAIM_NOT_HELD

        with pytest.raises(QueueError):
            await queue.nack(JobClaim(job=_job()), "forged")

    async def test_close_wakes_claimers(self, queue: InMemoryJobQueue) -> None:
        """Closing the queue returns None to waiting claimers."""
        waiter = asyncio.create_task(queue.claim_next())
        await asyncio.sleep(0)

        await queue.close()

        assert await waiter is None
        assert queue.closed

    async def test_settle_after_close(self, queue: InMemoryJobQueue) -> None:
        """Claims handed out before close are still settled; retried jobs are kept."""
        first, second = _job(), _job()
        await queue.enqueue(first)
        await queue.enqueue(second)
        done = await queue.claim_next(timeout=0.1)
        failed = await queue.claim_next(timeout=0.1)
        assert done is not None and failed is not None

        await queue.close()
        await queue.ack(done)
        await queue.retry(failed, delay=0.0)

        assert queue.completed == [first.id]
        assert await queue.pending_count() == 1
        assert await queue.claim_next(timeout=0.1) is None

    async def test_enqueue_after_close(self, queue: InMemoryJobQueue) -> None:
        """A closed queue accepts no new jobs."""
        await queue.close()
        with pytest.raises(QueueError):
            await queue.enqueue(_job())

    async def test_wait_idle(self, queue: InMemoryJobQueue) -> None:
        """wait_idle returns once every job is settled."""
        await queue.enqueue(_job())
        claim = await queue.claim_next(timeout=0.1)
        assert claim is not None

        idle = asyncio.create_task(queue.wait_idle())
        await asyncio.sleep(0)
        assert not idle.done()

        await queue.ack(claim)
        await asyncio.wait_for(idle, timeout=1.0)
