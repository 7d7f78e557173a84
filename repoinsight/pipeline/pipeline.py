"""The analysis pipeline: fetch, extract, embed, score, persist."""

import asyncio
import shutil
import time
from collections import Counter
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from repoinsight.config import Settings
from repoinsight.embeddings.models import EmbeddingOutcome, EmbeddingVector
from repoinsight.embeddings.service import EmbeddingGenerator
from repoinsight.exceptions import (
    EmbeddingUnavailableError,
    JobPayloadError,
    PipelineTimeoutError,
    RepoInsightError,
)
from repoinsight.extractors.documentation import read_readme
from repoinsight.extractors.models import RepositoryMetrics
from repoinsight.extractors.normalize import project_category_scores
from repoinsight.extractors.service import MetricExtractor
from repoinsight.fetch.git import RepositoryFetcher
from repoinsight.fetch.models import RepositorySnapshot, validate_handle
from repoinsight.indexing.models import ContentUnit
from repoinsight.indexing.selector import select_content_units
from repoinsight.jobs.models import AnalysisJob, JobKind
from repoinsight.llm.models import RepositorySummary
from repoinsight.llm.summarizer import RepositorySummarizer, summarize_project
from repoinsight.logging_config import get_logger
from repoinsight.observability.events import EventSink, EventType, PipelineEvent
from repoinsight.pipeline.outcomes import (
    Completed,
    Failed,
    FailureKind,
    ProcessOutcome,
    classify_error,
    is_transient,
)
from repoinsight.scoring.aggregator import aggregate
from repoinsight.storage.analysis_store import AnalysisStore
from repoinsight.storage.models import (
    AnalysisResult,
    EmbeddingRecord,
    Project,
    ProjectStatus,
)
from repoinsight.storage.vectorstore import EmbeddingStore

logger = get_logger(__name__)


class PreparedAnalysis(BaseModel):
    """Everything a run produced, ready to be written."""

    model_config = ConfigDict(frozen=True)

    result: AnalysisResult
    records: tuple[EmbeddingRecord, ...]


class AnalysisPipeline:
    """Processes one analyze-project job end to end.

    Every run derives a complete AnalysisResult from scratch. Nothing is
    written until all stages succeed, so a failed attempt leaves no
    partial data behind.
    """

    def __init__(
        self,
        fetcher: RepositoryFetcher,
        extractor: MetricExtractor,
        summarizer: RepositorySummarizer,
        generator: EmbeddingGenerator,
        store: AnalysisStore,
        embedding_store: EmbeddingStore,
        events: EventSink,
        settings: Settings,
        embedding_model: str | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            fetcher: Materializes repositories on disk.
            extractor: Computes repository metrics.
            summarizer: Produces repository summaries.
            generator: Embeds content units.
            store: Projects, results and weight profiles.
            embedding_store: Searchable embeddings.
            events: Receiver of lifecycle events.
            settings: Application settings.
            embedding_model: Optional model hint for embeddings.
        """
        self._fetcher = fetcher
        self._extractor = extractor
        self._summarizer = summarizer
        self._generator = generator
        self._store = store
        self._embedding_store = embedding_store
        self._events = events
        self._settings = settings
        self._embedding_model = embedding_model

    async def process(self, job: AnalysisJob) -> ProcessOutcome:
        """Run every stage for a job.

        Stage errors are returned as ``Failed``; cancellation propagates.
        A cancellation that arrives while the result is being written
        propagates only after the write has finished, so the caller can
        find the saved result with ``AnalysisStore.latest_result``.

        Returns:
            Completed with the new result id, or Failed with the cause.
        """
        start = time.perf_counter()
        project_id = job.payload.project_id
        self._emit(EventType.JOB_STARTED, job)
        logger.info(
            f"Processing job {job.id}",
            extra={"job_id": job.id, "project_id": project_id, "attempt": job.attempt},
        )

        try:
            timeout = asyncio.timeout(self._settings.worker.job_timeout)
            try:
                async with timeout:
                    prepared = await self._prepare(job)
            except TimeoutError as e:
                if not timeout.expired():
                    raise
                raise PipelineTimeoutError(
                    f"Job exceeded {self._settings.worker.job_timeout:g}s",
                    details={"job_id": job.id},
                ) from e

            persist = asyncio.ensure_future(self._persist(prepared))
            try:
                await asyncio.shield(persist)
            except asyncio.CancelledError:
                await self._finish_persist(job, persist, start)
                raise

        except RepoInsightError as e:
            return self._failed(job, classify_error(e), e.message, start)
        except TimeoutError as e:
            return self._failed(job, classify_error(e), str(e) or "Operation timed out", start)
        except Exception as e:
            logger.exception(f"Unexpected error in job {job.id}", extra={"job_id": job.id})
            return self._failed(job, FailureKind.INTERNAL, f"Unexpected error: {e}", start)

        duration = time.perf_counter() - start
        self._emit(EventType.JOB_COMPLETED, job, duration=duration)
        return Completed(job_id=job.id, result_id=prepared.result.id, duration=duration)

    async def _finish_persist(
        self,
        job: AnalysisJob,
        persist: asyncio.Future[None],
        start: float,
    ) -> None:
        logger.warning(
            f"Job {job.id} cancelled while saving, waiting for the write",
            extra={"job_id": job.id},
        )
        await asyncio.wait([persist])
        error = persist.exception()
        if error is not None:
            logger.error(
                f"Saving job {job.id} failed after cancellation: {error}",
                extra={"job_id": job.id},
            )
            return
        self._emit(EventType.JOB_COMPLETED, job, duration=time.perf_counter() - start)

    def _failed(self, job: AnalysisJob, kind: FailureKind, reason: str, start: float) -> Failed:
        duration = time.perf_counter() - start
        failed = Failed(
            job_id=job.id,
            kind=kind,
            reason=reason,
            transient=is_transient(kind),
            duration=duration,
        )
        self._emit(
            EventType.JOB_FAILED,
            job,
            duration=duration,
            failure_kind=kind.value,
            reason=reason,
        )
        return failed

    def _emit(self, event_type: EventType, job: AnalysisJob, **fields: object) -> None:
        self._events.emit(
            PipelineEvent(
                type=event_type,
                job_id=job.id,
                project_id=job.payload.project_id,
                attempt=job.attempt,
                **fields,  # type: ignore[arg-type]
            )
        )

    async def _prepare(self, job: AnalysisJob) -> PreparedAnalysis:
        payload = job.payload
        if job.kind is not JobKind.ANALYZE_PROJECT:
            raise JobPayloadError(f"Unsupported job kind: {job.kind}", details={"job_id": job.id})
        for handle in payload.repositories:
            validate_handle(handle)

        await self._mark_running(payload.project_id, payload.organization_id)

        job_root = Path(self._settings.fetch.workdir) / job.id
        snapshots: list[RepositorySnapshot] = []
        try:
            for handle in payload.repositories:
                snapshots.append(await self._fetcher.fetch(handle, job_root))

            metrics = [await self._extractor.extract(snapshot) for snapshot in snapshots]

            summaries: list[RepositorySummary] = []
            units: list[ContentUnit] = []
            for snapshot, repo_metrics in zip(snapshots, metrics, strict=True):
                summary = await self._summarize(snapshot, repo_metrics)
                summaries.append(summary)
                units.extend(
                    await asyncio.to_thread(
                        select_content_units,
                        payload.project_id,
                        snapshot,
                        summary.text,
                        self._settings.indexing,
                    )
                )
        finally:
            await self._cleanup(snapshots, job_root)

        records = await self._embed(job, units)

        category_scores = project_category_scores(metrics)
        profile = await self._store.get_weight_profile(payload.organization_id)
        score = aggregate(category_scores, profile)

        result = AnalysisResult(
            project_id=payload.project_id,
            organization_id=payload.organization_id,
            job_id=job.id,
            score=score,
            summary=summarize_project(summaries, score),
            repositories=tuple(metrics),
            embedding_count=len(records),
        )
        return PreparedAnalysis(result=result, records=tuple(records))

    async def _mark_running(self, project_id: str, organization_id: str) -> None:
        project = await self._store.get_project(project_id)
        if project is None:
            await self._store.upsert_project(
                Project(id=project_id, organization_id=organization_id, name=project_id)
            )
        await self._store.set_project_status(project_id, ProjectStatus.RUNNING)

    async def _summarize(
        self,
        snapshot: RepositorySnapshot,
        metrics: RepositoryMetrics,
    ) -> RepositorySummary:
        readme = await asyncio.to_thread(read_readme, snapshot.path)
        return await self._summarizer.summarize(metrics, readme)

    async def _embed(self, job: AnalysisJob, units: list[ContentUnit]) -> list[EmbeddingRecord]:
        if not units:
            return []

        texts = [unit.text for unit in units]
        outcomes = await self._generator.embed_batch(texts, model_hint=self._embedding_model)

        # One job stores vectors of a single model and dimension
        pinned = _pinned_model(outcomes)
        if pinned is not None:
            stray = [
                i
                for i, outcome in enumerate(outcomes)
                if outcome.embedding is not None and _signature(outcome.embedding) != pinned
            ]
            if stray:
                logger.warning(
                    f"Re-embedding {len(stray)} content units with {pinned[0]}",
                    extra={"job_id": job.id, "model": pinned[0], "dimensions": pinned[1]},
                )
                retried = await self._generator.embed_batch(
                    [texts[i] for i in stray], model_hint=pinned[0], fallback=False
                )
                for i, outcome in zip(stray, retried, strict=True):
                    outcomes[i] = outcome

        records: list[EmbeddingRecord] = []
        for unit, outcome in zip(units, outcomes, strict=True):
            if outcome.embedding is None or _signature(outcome.embedding) != pinned:
                logger.warning(
                    f"Skipping content unit {unit.id}: {outcome.error or 'model mismatch'}",
                    extra={"job_id": job.id, "repository": unit.repository, "path": unit.path},
                )
                continue
            records.append(
                EmbeddingRecord(
                    id=unit.id,
                    project_id=job.payload.project_id,
                    organization_id=job.payload.organization_id,
                    repository=unit.repository,
                    path=unit.path,
                    kind=unit.kind,
                    text=unit.text,
                    vector=outcome.embedding.vector,
                    model=outcome.embedding.model,
                )
            )

        if not records:
            first_error = next((o.error for o in outcomes if o.error is not None), None)
            raise EmbeddingUnavailableError(
                f"Every content unit failed to embed ({len(units)} units)",
                details={
                    "job_id": job.id,
                    "first_error": first_error.message if first_error else None,
                },
            )

        if len(records) < len(units):
            logger.warning(
                f"Embedded {len(records)} of {len(units)} content units",
                extra={"job_id": job.id},
            )
        return records

    async def _persist(self, prepared: PreparedAnalysis) -> None:
        result = prepared.result
        await self._embedding_store.replace_project_embeddings(
            result.project_id, list(prepared.records)
        )
        await self._store.save_result(result)
        await self._store.set_project_status(result.project_id, ProjectStatus.COMPLETE)
        logger.info(
            f"Saved result {result.id} for project {result.project_id}",
            extra={
                "job_id": result.job_id,
                "overall": result.score.overall_rounded,
                "embeddings": result.embedding_count,
            },
        )

    async def _cleanup(self, snapshots: list[RepositorySnapshot], job_root: Path) -> None:
        for snapshot in snapshots:
            try:
                await self._fetcher.cleanup(snapshot)
            except OSError as e:
                logger.warning(f"Could not remove snapshot {snapshot.handle}: {e}")
        if self._settings.fetch.cleanup:
            await asyncio.to_thread(shutil.rmtree, job_root, True)


def _signature(embedding: EmbeddingVector) -> tuple[str, int]:
    return embedding.model, embedding.dimensions


def _pinned_model(outcomes: list[EmbeddingOutcome]) -> tuple[str, int] | None:
    """Most common (model, dimensions) among embedded outcomes; ties go to the earliest."""
    counts = Counter(
        _signature(outcome.embedding) for outcome in outcomes if outcome.embedding is not None
    )
    if not counts:
        return None
    return counts.most_common(1)[0][0]
