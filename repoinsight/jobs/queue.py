"""Job queue interface and in-process implementation."""

import asyncio
import heapq
import itertools
import time
from abc import ABC, abstractmethod

from repoinsight.exceptions import ErrorCode, QueueError
from repoinsight.jobs.models import AnalysisJob, JobClaim
from repoinsight.logging_config import get_logger

logger = get_logger(__name__)


class JobQueue(ABC):
    """Abstract base class for job queues.

    A claimed job is invisible to other claimers until the claim is
    settled with ``ack``, ``nack``, ``retry`` or ``release``.
    """

    @abstractmethod
    async def enqueue(self, job: AnalysisJob, delay: float = 0.0) -> None:
        """Add a job, visible after ``delay`` seconds."""
        ...

    @abstractmethod
    async def claim_next(self, timeout: float | None = None) -> JobClaim | None:
        """Wait for and claim the next visible job.

        Returns:
            A claim, or None when nothing became visible within the timeout
            or the queue is closed.
        """
        ...

    @abstractmethod
    async def ack(self, claim: JobClaim) -> None:
        """Mark a claimed job as done."""
        ...

    @abstractmethod
    async def nack(self, claim: JobClaim, reason: str) -> None:
        """Fail a claimed job permanently."""
        ...

    @abstractmethod
    async def retry(self, claim: JobClaim, delay: float) -> None:
        """Re-enqueue a claimed job with its attempt incremented."""
        ...

    @abstractmethod
    async def release(self, claim: JobClaim, delay: float = 0.0) -> None:
        """Return a claimed job unchanged, without consuming an attempt."""
        ...

    @abstractmethod
    async def pending_count(self) -> int:
        """Number of jobs waiting (visible or delayed), excluding claimed ones."""
        ...

    @abstractmethod
    async def wait_idle(self) -> None:
        """Wait until nothing is pending or claimed."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Stop handing out jobs and wake every waiting claimer.

        Claims already handed out can still be settled.
        """
        ...


class InMemoryJobQueue(JobQueue):
    """Process-local queue built on ``asyncio.Condition``.

    Jobs are ordered by due time, then enqueue order. Claimers wait on the
    condition until the earliest job is due; nothing polls.
    """

    def __init__(self) -> None:
        self._condition = asyncio.Condition()
        self._heap: list[tuple[float, int, AnalysisJob]] = []
        self._sequence = itertools.count()
        self._claims: dict[str, JobClaim] = {}
        self._closed = False
        self.completed: list[str] = []
        self.dead_letter: dict[str, str] = {}

    @property
    def closed(self) -> bool:
        """Whether the queue has been closed."""
        return self._closed

    @property
    def active_claims(self) -> int:
        """Number of jobs currently claimed."""
        return len(self._claims)

    async def enqueue(self, job: AnalysisJob, delay: float = 0.0) -> None:
        async with self._condition:
            if self._closed:
                raise QueueError("Queue is closed", details={"job_id": job.id})
            self._push(job, delay)
            self._condition.notify_all()
        logger.debug(f"Enqueued job {job.id}", extra={"job_id": job.id, "delay": delay})

    async def claim_next(self, timeout: float | None = None) -> JobClaim | None:
        deadline = None if timeout is None else time.monotonic() + timeout

        async with self._condition:
            while True:
                if self._closed:
                    return None

                now = time.monotonic()
                if self._heap and self._heap[0][0] <= now:
                    _, _, job = heapq.heappop(self._heap)
                    claim = JobClaim(job=job)
                    self._claims[job.id] = claim
                    return claim

                wait_for = None
                if self._heap:
                    wait_for = self._heap[0][0] - now
                if deadline is not None:
                    remaining = deadline - now
                    if remaining <= 0:
                        return None
                    wait_for = remaining if wait_for is None else min(wait_for, remaining)

                try:
                    await asyncio.wait_for(self._condition.wait(), timeout=wait_for)
                except TimeoutError:
                    pass

    async def ack(self, claim: JobClaim) -> None:
        async with self._condition:
            self._settle(claim)
            self.completed.append(claim.job.id)
            self._condition.notify_all()

    async def nack(self, claim: JobClaim, reason: str) -> None:
        async with self._condition:
            self._settle(claim)
            self.dead_letter[claim.job.id] = reason
            self._condition.notify_all()
        logger.warning(
            f"Job {claim.job.id} dead-lettered",
            extra={"job_id": claim.job.id, "reason": reason},
        )

    async def retry(self, claim: JobClaim, delay: float) -> None:
        async with self._condition:
            self._settle(claim)
            # Settled jobs survive close so a restart can pick them up
            self._push(claim.job.next_attempt(), delay)
            self._condition.notify_all()

    async def release(self, claim: JobClaim, delay: float = 0.0) -> None:
        async with self._condition:
            self._settle(claim)
            self._push(claim.job, delay)
            self._condition.notify_all()

    async def pending_count(self) -> int:
        async with self._condition:
            return len(self._heap)

    async def wait_idle(self) -> None:
        async with self._condition:
            await self._condition.wait_for(lambda: not self._heap and not self._claims)

    async def close(self) -> None:
        async with self._condition:
            self._closed = True
            self._condition.notify_all()

    def _push(self, job: AnalysisJob, delay: float) -> None:
        due = time.monotonic() + max(0.0, delay)
        heapq.heappush(self._heap, (due, next(self._sequence), job))

    def _settle(self, claim: JobClaim) -> None:
        current = self._claims.get(claim.job.id)
        if current is None or current.token != claim.token:
            raise QueueError(
                f"Claim on job {claim.job.id} is not held",
                code=ErrorCode.CLAIM_NOT_HELD,
                details={"job_id": claim.job.id},
            )
        del self._claims[claim.job.id]
