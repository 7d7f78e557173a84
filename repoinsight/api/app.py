"""FastAPI application for health checks and metrics.

Exposes the operational surface of a worker process: liveness,
readiness (is the consumer running) and Prometheus metrics.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from repoinsight import __version__
from repoinsight.config import get_settings
from repoinsight.exceptions import ErrorCode, RepoInsightError
from repoinsight.logging_config import get_logger
from repoinsight.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from repoinsight.pipeline.consumer import AnalysisConsumer

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "Starting RepoInsight API",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    yield

    logger.info("Shutting down RepoInsight API")


def create_app(consumer: AnalysisConsumer | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        consumer: Consumer whose state drives the readiness probe.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="RepoInsight",
        description="Repository analysis worker",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.consumer = consumer

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(RepoInsightError, repoinsight_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics, methods=["GET"], tags=["Monitoring"])

    return app


async def repoinsight_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Convert RepoInsightError into a structured JSON response."""
    if not isinstance(exc, RepoInsightError):
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ErrorCode.INTERNAL_ERROR.value,
                    "message": str(exc),
                    "details": {},
                }
            },
        )

    logger.error(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=_get_status_code(exc.code),
        content=exc.to_dict(),
    )


def _get_status_code(error_code: ErrorCode) -> int:
    """Map error code to HTTP status code."""
    if error_code in (
        ErrorCode.VALIDATION_ERROR,
        ErrorCode.INVALID_QUERY,
        ErrorCode.JOB_PAYLOAD_INVALID,
    ):
        return 400

    if error_code is ErrorCode.PROJECT_NOT_FOUND:
        return 404

    if error_code is ErrorCode.LLM_RATE_LIMIT:
        return 429

    if error_code is ErrorCode.EMBEDDING_UNAVAILABLE:
        return 503

    if error_code in (ErrorCode.LLM_TIMEOUT, ErrorCode.PIPELINE_TIMEOUT):
        return 504

    return 500


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> JSONResponse:
    """Readiness probe.

    Ready when an attached consumer is running. A process with no
    consumer (API only) is always ready.
    """
    consumer: AnalysisConsumer | None = request.app.state.consumer
    checks: dict[str, str] = {"config": "ok"}
    in_flight = 0

    if consumer is not None:
        checks["consumer"] = "ok" if consumer.is_running else "stopped"
        in_flight = consumer.in_flight

    all_ok = all(v == "ok" for v in checks.values())

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
            "in_flight": in_flight,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


async def liveness_check() -> dict[str, str]:
    """Liveness probe.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics() -> Response:
    """Prometheus metrics in exposition format."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Create the application instance
app = create_app()
