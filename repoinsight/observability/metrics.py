"""Prometheus metrics for RepoInsight.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Analysis job outcomes, retries and in-flight jobs
- LLM token usage and latency
- Embedding request latency and batch sizes
- Similarity search latency and results
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from repoinsight.logging_config import get_logger

logger = get_logger(__name__)

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Analysis Job Metrics
JOB_DURATION = Histogram(
    "analysis_job_duration_seconds",
    "Analysis job duration in seconds",
    ["outcome"],
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0],
)

JOB_TOTAL = Counter(
    "analysis_jobs_total",
    "Total analysis jobs processed",
    ["outcome", "failure_kind"],
)

JOB_RETRIES_TOTAL = Counter(
    "analysis_job_retries_total",
    "Total analysis job retries scheduled",
    ["failure_kind"],
)

JOBS_IN_FLIGHT = Gauge(
    "analysis_jobs_in_flight",
    "Analysis jobs currently being processed",
)

# LLM Metrics
LLM_REQUEST_DURATION = Histogram(
    "llm_request_duration_seconds",
    "LLM request duration in seconds",
    ["model", "status"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

LLM_TOKENS_TOTAL = Counter(
    "llm_tokens_total",
    "Total LLM tokens used",
    ["model", "type"],  # "type" label values: prompt, completion
)

LLM_REQUEST_TOTAL = Counter(
    "llm_requests_total",
    "Total LLM requests",
    ["model", "status"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "backend", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "backend", "status"],
)

EMBEDDING_BATCH_SIZE = Histogram(
    "embedding_batch_size",
    "Embedding batch size",
    buckets=[1, 2, 5, 10, 25, 50, 100],
)

EMBEDDING_ITEM_FAILURES = Counter(
    "embedding_item_failures_total",
    "Batch items that could not be embedded",
)

# Search Metrics
SEARCH_DURATION = Histogram(
    "search_duration_seconds",
    "Similarity search duration in seconds",
    ["status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

SEARCH_RESULTS_RETURNED = Histogram(
    "search_results_returned",
    "Number of hits returned per search",
    buckets=[0, 1, 2, 3, 5, 10, 20, 50],
)

SEARCH_TOP_SCORE = Histogram(
    "search_top_score",
    "Top similarity per search",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        if path.startswith("/health"):
            return "/health"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_job(outcome: str, duration: float, failure_kind: str = "") -> None:
    """Track a finished analysis job.

    Args:
        outcome: "completed" or "failed".
        duration: Processing time in seconds.
        failure_kind: Failure kind for failed jobs, empty otherwise.
    """
    JOB_DURATION.labels(outcome=outcome).observe(duration)
    JOB_TOTAL.labels(outcome=outcome, failure_kind=failure_kind).inc()


def track_job_retry(failure_kind: str) -> None:
    """Track a retry scheduled after a transient failure."""
    JOB_RETRIES_TOTAL.labels(failure_kind=failure_kind).inc()


def set_jobs_in_flight(count: int) -> None:
    """Set the number of jobs currently being processed."""
    JOBS_IN_FLIGHT.set(count)


def track_llm_request(
    model: str,
    duration: float,
    prompt_tokens: int,
    completion_tokens: int,
    success: bool = True,
) -> None:
    """Track LLM request metrics.

    Args:
        model: LLM model name.
        duration: Request duration in seconds.
        prompt_tokens: Number of prompt tokens.
        completion_tokens: Number of completion tokens.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    LLM_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    LLM_REQUEST_TOTAL.labels(model=model, status=status).inc()

    if success:
        LLM_TOKENS_TOTAL.labels(model=model, type="prompt").inc(prompt_tokens)
        LLM_TOKENS_TOTAL.labels(model=model, type="completion").inc(completion_tokens)


def track_embedding_request(
    model: str,
    backend: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track a single embedding backend call.

    Args:
        model: Embedding model name.
        backend: Backend that served the call.
        duration: Request duration in seconds.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(model=model, backend=backend, status=status).observe(
        duration
    )
    EMBEDDING_REQUEST_TOTAL.labels(model=model, backend=backend, status=status).inc()


def track_embedding_batch(size: int, failed: int = 0) -> None:
    """Track one settled embedding batch.

    Args:
        size: Number of texts in the batch.
        failed: Number of items that could not be embedded.
    """
    EMBEDDING_BATCH_SIZE.observe(size)
    if failed:
        EMBEDDING_ITEM_FAILURES.inc(failed)


def track_search(
    duration: float,
    results_returned: int,
    top_score: float,
    success: bool = True,
) -> None:
    """Track similarity search metrics.

    Args:
        duration: Search duration in seconds.
        results_returned: Number of hits returned.
        top_score: Highest similarity among the hits.
        success: Whether the search succeeded.
    """
    status = "success" if success else "error"
    SEARCH_DURATION.labels(status=status).observe(duration)
    if not success:
        return
    SEARCH_RESULTS_RETURNED.observe(results_returned)
    if top_score > 0:
        SEARCH_TOP_SCORE.observe(top_score)
