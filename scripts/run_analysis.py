#!/usr/bin/env python
"""Analyze projects from the command line.

Usage:
    python -m scripts.run_analysis --org acme --project web octocat/Hello-World
    python -m scripts.run_analysis --org acme --project web octocat/Hello-World \\
        --search "how do I configure the server" --serve

Enqueues one analyze-project job, runs the consumer until the queue
drains, prints the result and optionally searches the fresh corpus.
"""

import argparse
import asyncio
import sys
from pathlib import Path

import uvicorn

from repoinsight.api.app import create_app
from repoinsight.config import Environment, get_settings
from repoinsight.embeddings.service import EmbeddingGenerator
from repoinsight.jobs.models import AnalysisJob, JobPayload
from repoinsight.jobs.queue import InMemoryJobQueue
from repoinsight.logging_config import get_logger, setup_logging
from repoinsight.observability.events import MetricsEventSink
from repoinsight.pipeline.consumer import AnalysisConsumer
from repoinsight.pipeline.resources import build_pipeline, build_resources
from repoinsight.search.engine import SemanticSearchEngine
from repoinsight.search.models import SearchHit
from repoinsight.storage.analysis_store import InMemoryAnalysisStore
from repoinsight.storage.models import CorpusScope, Project

logger = get_logger(__name__)


async def run_analysis(
    organization_id: str,
    project_id: str,
    repositories: list[str],
    query: str | None = None,
    top_k: int = 5,
    serve: bool = False,
    output_path: Path | None = None,
) -> bool:
    """Analyze one project and report the outcome.

    Returns:
        True if the project was analyzed successfully.
    """
    settings = get_settings()
    setup_logging(
        level=settings.log_level,
        json_output=settings.environment != Environment.DEVELOPMENT,
    )

    store = InMemoryAnalysisStore()
    queue = InMemoryJobQueue()
    events = MetricsEventSink()
    resources = build_resources(settings)
    await resources.startup()

    consumer = AnalysisConsumer(
        queue=queue,
        pipeline=build_pipeline(settings, resources, store, events),
        store=store,
        events=events,
        settings=settings.worker,
        resources=resources,
    )

    server_task: asyncio.Task[None] | None = None
    server: uvicorn.Server | None = None
    if serve:
        config = uvicorn.Config(
            create_app(consumer),
            host=settings.api_host,
            port=settings.api_port,
            log_config=None,
        )
        server = uvicorn.Server(config)
        server_task = asyncio.create_task(server.serve())

    await store.upsert_project(
        Project(id=project_id, organization_id=organization_id, name=project_id)
    )
    await queue.enqueue(
        AnalysisJob(
            payload=JobPayload(
                project_id=project_id,
                organization_id=organization_id,
                repositories=repositories,
            )
        )
    )

    consumer.start()
    hits: list[SearchHit] = []
    try:
        await consumer.run_until_idle()

        if query:
            engine = SemanticSearchEngine(
                EmbeddingGenerator(resources.backends, settings.embedding),
                resources.embedding_store,
            )
            hits = await engine.search(
                query, CorpusScope(organization_id=organization_id), top_k=top_k
            )
    finally:
        await consumer.shutdown()
        if server is not None and server_task is not None:
            server.should_exit = True
            await server_task

    project = await store.get_project(project_id)
    result = await store.latest_result(project_id)

    print("\n" + "=" * 60)
    print("ANALYSIS SUMMARY")
    print("=" * 60)
    print(f"Project: {project_id} ({organization_id})")
    print(f"Status: {project.status.value if project else 'unknown'}")
    if project and project.status_reason:
        print(f"Reason: {project.status_reason}")
    if result is not None:
        print(f"Overall Score: {result.score.overall_rounded} ({result.score.overall:.2f})")
        print("\nCategory Scores:")
        for category, value in result.score.categories.items():
            print(f"  {category.value}: {value:.1f}")
        print(f"\nEmbedded Units: {result.embedding_count}")
        print(f"\n{result.summary}")
    if hits:
        print(f"\nSearch: {query}")
        for hit in hits:
            location = f"{hit.repository}/{hit.path}" if hit.path else hit.repository
            print(f"  {hit.score:.3f}  [{hit.kind.value}] {location}: {hit.snippet}")
    print("=" * 60)

    if output_path and result is not None:
        output_path.write_text(result.model_dump_json(indent=2))
        logger.info(f"Result saved to {output_path}")

    return result is not None


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Analyze repositories and score the project",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("repositories", nargs="+", help="Repository handles (owner/name)")
    parser.add_argument("--org", required=True, help="Organization identifier")
    parser.add_argument("--project", required=True, help="Project identifier")
    parser.add_argument("--search", default=None, help="Query to run after analysis")
    parser.add_argument("--top-k", type=int, default=5, help="Number of search hits")
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve health and metrics endpoints while running",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Path to save the analysis result JSON",
    )

    args = parser.parse_args()

    ok = asyncio.run(
        run_analysis(
            organization_id=args.org,
            project_id=args.project,
            repositories=args.repositories,
            query=args.search,
            top_k=args.top_k,
            serve=args.serve,
            output_path=args.output,
        )
    )

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
