"""Job consumer: claims jobs and drives them through the pipeline."""

import asyncio

from repoinsight.config import WorkerSettings
from repoinsight.exceptions import PersistenceError, QueueError
from repoinsight.jobs.models import JobClaim
from repoinsight.jobs.queue import JobQueue
from repoinsight.logging_config import get_logger
from repoinsight.observability.events import EventSink, EventType, PipelineEvent
from repoinsight.observability.metrics import set_jobs_in_flight
from repoinsight.pipeline.locks import ProjectLocks
from repoinsight.pipeline.outcomes import Completed, Failed, ProcessOutcome
from repoinsight.pipeline.pipeline import AnalysisPipeline
from repoinsight.pipeline.resources import WorkerResources
from repoinsight.storage.analysis_store import AnalysisStore
from repoinsight.storage.models import ProjectStatus

logger = get_logger(__name__)


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Delay before retrying after the given (1-based) attempt."""
    return min(base * 2 ** (attempt - 1), maximum)


class AnalysisConsumer:
    """Runs a fixed pool of worker tasks over a job queue.

    Each worker claims one job, processes it, settles the claim and only
    then claims again, so at most ``concurrency`` jobs run at once. Jobs
    for the same project never overlap: a job whose project is busy is
    released back to the queue without using an attempt.
    """

    def __init__(
        self,
        queue: JobQueue,
        pipeline: AnalysisPipeline,
        store: AnalysisStore,
        events: EventSink,
        settings: WorkerSettings,
        resources: WorkerResources | None = None,
        locks: ProjectLocks | None = None,
    ) -> None:
        """Initialize the consumer.

        Args:
            queue: Source of jobs.
            pipeline: Processes one job.
            store: Project status updates.
            events: Receiver of lifecycle events.
            settings: Concurrency, retry and shutdown parameters.
            resources: Process-scoped handles closed on shutdown.
            locks: Per-project locks (shared between consumers in one process).
        """
        self._queue = queue
        self._pipeline = pipeline
        self._store = store
        self._events = events
        self._settings = settings
        self._resources = resources
        self._locks = locks or ProjectLocks()
        self._workers: list[asyncio.Task[None]] = []
        self._in_flight: dict[str, JobClaim] = {}
        self._stopping = False

    @property
    def is_running(self) -> bool:
        """Whether workers are claiming jobs."""
        return bool(self._workers) and not self._stopping

    @property
    def in_flight(self) -> int:
        """Jobs currently being processed."""
        return len(self._in_flight)

    @property
    def locks(self) -> ProjectLocks:
        """Per-project locks used by this consumer."""
        return self._locks

    def start(self) -> None:
        """Spawn the worker tasks."""
        if self._workers:
            raise RuntimeError("Consumer already started")
        self._stopping = False
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"analysis-worker-{n}")
            for n in range(self._settings.concurrency)
        ]
        logger.info(
            f"Started {self._settings.concurrency} workers",
            extra={"concurrency": self._settings.concurrency},
        )

    async def run_until_idle(self, timeout: float | None = None) -> None:
        """Wait until nothing is pending or in flight.

        Raises:
            TimeoutError: If the queue does not drain in time.
        """
        async with asyncio.timeout(timeout):
            await self._queue.wait_idle()

    async def shutdown(self, grace: float | None = None) -> None:
        """Stop claiming, drain in-flight jobs, then release resources.

        The queue is closed first, which wakes every waiting worker. Jobs
        still running after the grace period are cancelled; their claims
        are released and their projects set back to queued, unless the
        result was already saved.
        """
        grace = self._settings.shutdown_grace if grace is None else grace
        self._stopping = True
        workers, self._workers = self._workers, []
        await self._queue.close()

        if workers:
            logger.info(
                f"Shutting down, {self.in_flight} jobs in flight",
                extra={"grace": grace, "in_flight": self.in_flight},
            )
            _, pending = await asyncio.wait(workers, timeout=grace)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning(f"Cancelled {len(pending)} workers after grace period")

        if self._resources is not None:
            await self._resources.close()

    async def _worker(self, number: int) -> None:
        while not self._stopping:
            claim = await self._queue.claim_next(timeout=self._settings.claim_timeout)
            if claim is None:
                continue
            if self._stopping:
                await self._queue.release(claim)
                break
            try:
                await self._handle(claim)
            except QueueError:
                logger.exception(
                    f"Worker {number} could not settle job {claim.job.id}",
                    extra={"job_id": claim.job.id},
                )
        logger.debug(f"Worker {number} stopped")

    async def _handle(self, claim: JobClaim) -> None:
        job = claim.job
        project_id = job.payload.project_id

        if not self._locks.try_acquire(project_id, job.id):
            await self._queue.release(claim, delay=self._settings.busy_project_delay)
            self._emit(EventType.JOB_RELEASED, claim, reason="project busy")
            return

        self._in_flight[job.id] = claim
        set_jobs_in_flight(len(self._in_flight))
        try:
            outcome = await self._pipeline.process(job)
            await self._settle(claim, outcome)
        except asyncio.CancelledError:
            await asyncio.shield(self._interrupted(claim))
            raise
        finally:
            self._in_flight.pop(job.id, None)
            set_jobs_in_flight(len(self._in_flight))
            self._locks.release(project_id, job.id)

    async def _settle(self, claim: JobClaim, outcome: ProcessOutcome) -> None:
        if isinstance(outcome, Completed):
            await self._queue.ack(claim)
        else:
            await self._settle_failure(claim, outcome)

    async def _settle_failure(self, claim: JobClaim, outcome: Failed) -> None:
        job = claim.job

        if outcome.transient and job.attempt < self._settings.max_attempts:
            delay = backoff_delay(
                job.attempt, self._settings.backoff_base, self._settings.backoff_max
            )
            await self._set_status(job.payload.project_id, ProjectStatus.QUEUED, outcome.reason)
            await self._queue.retry(claim, delay)
            self._emit(
                EventType.JOB_RETRY_SCHEDULED,
                claim,
                failure_kind=outcome.kind.value,
                reason=f"retry in {delay:g}s: {outcome.reason}",
            )
            return

        await self._queue.nack(claim, outcome.reason)
        await self._set_status(job.payload.project_id, ProjectStatus.FAILED, outcome.reason)

    async def _interrupted(self, claim: JobClaim) -> None:
        job = claim.job
        try:
            latest = await self._store.latest_result(job.payload.project_id)
        except PersistenceError:
            logger.exception(f"Could not look up result for job {job.id}", extra={"job_id": job.id})
            latest = None

        if latest is None or latest.job_id != job.id:
            await self._abandon(claim)
            return

        # The result was saved before the cancellation took effect
        try:
            await self._queue.ack(claim)
        except QueueError as e:
            logger.warning(f"Could not acknowledge job {job.id}: {e}")
        logger.info(f"Job {job.id} finished during shutdown", extra={"job_id": job.id})

    async def _abandon(self, claim: JobClaim) -> None:
        try:
            await self._queue.release(claim)
        except QueueError as e:
            logger.warning(f"Could not release job {claim.job.id}: {e}")
        await self._set_status(claim.job.payload.project_id, ProjectStatus.QUEUED, "interrupted")
        self._emit(EventType.JOB_RELEASED, claim, reason="shutdown")

    async def _set_status(self, project_id: str, status: ProjectStatus, reason: str | None) -> None:
        try:
            await self._store.set_project_status(project_id, status, reason)
        except PersistenceError:
            logger.exception(
                f"Could not set project {project_id} to {status.value}",
                extra={"project_id": project_id},
            )

    def _emit(self, event_type: EventType, claim: JobClaim, **fields: object) -> None:
        self._events.emit(
            PipelineEvent(
                type=event_type,
                job_id=claim.job.id,
                project_id=claim.job.payload.project_id,
                attempt=claim.job.attempt,
                **fields,  # type: ignore[arg-type]
            )
        )
