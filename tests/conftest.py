"""Pytest configuration and shared fixtures."""

import asyncio
import shutil
import zlib
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from repoinsight.api.app import app
from repoinsight.config import EmbeddingSettings, FetchSettings, Settings, WorkerSettings
from repoinsight.embeddings.backends import EmbeddingBackend
from repoinsight.embeddings.models import EmbeddingVector
from repoinsight.embeddings.service import EmbeddingGenerator
from repoinsight.exceptions import EmbeddingError, FetchError
from repoinsight.extractors.service import MetricExtractor
from repoinsight.fetch.git import RepositoryFetcher
from repoinsight.fetch.models import RepositorySnapshot, validate_handle
from repoinsight.jobs.queue import InMemoryJobQueue
from repoinsight.llm.summarizer import RepositorySummarizer
from repoinsight.observability.events import EventSink, EventType, PipelineEvent
from repoinsight.pipeline.pipeline import AnalysisPipeline
from repoinsight.storage.analysis_store import InMemoryAnalysisStore
from repoinsight.storage.vectorstore import InMemoryEmbeddingStore

VECTOR_SIZE = 8

SAMPLE_FILES = {
    "README.md": (
        "# Sample\n\n"
        "## Installation\n\npip install sample\n\n"
        "## Usage\n\nRun the server and open the dashboard.\n\n"
        "## Configuration\n\nSet environment variables before starting.\n\n"
        "## License\n\nMIT\n"
    ),
    "src/app.py": "def main():\n    return 42\n\n\nif __name__ == '__main__':\n    main()\n",
    "src/util.js": "export function add(a, b) {\n  return a + b;\n}\n",
    "tests/test_app.py": (
        "from src.app import main\n\n\ndef test_main():\n    assert main() == 42\n"
    ),
    "docs/guide.md": "# Guide\n\nDeploying the server behind a reverse proxy.\n",
    ".github/workflows/ci.yml": "on: push\njobs: {}\n",
}


def fake_vector(text: str, size: int = VECTOR_SIZE) -> list[float]:
    """Deterministic bag-of-words vector; identical texts map to identical vectors."""
    vector = [0.1] * size
    for word in text.lower().split():
        vector[zlib.crc32(word.encode()) % size] += 1.0
    return vector


class FakeEmbeddingBackend(EmbeddingBackend):
    """In-process backend with switchable failures.

    ``fail_calls`` holds 1-based call numbers that fail. ``delay`` keeps
    each call in flight for a while so ``peak`` records how many calls
    overlapped.
    """

    def __init__(
        self,
        name: str = "primary",
        model: str = "fake-model",
        available: bool = True,
        failing: bool = False,
        fail_on: set[str] | None = None,
        size: int = VECTOR_SIZE,
        fail_calls: set[int] | None = None,
        delay: float = 0.0,
    ) -> None:
        self._name = name
        self._model = model
        self.available = available
        self.failing = failing
        self.fail_on = fail_on or set()
        self.size = size
        self.fail_calls = fail_calls or set()
        self.delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.peak = 0
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def default_model(self) -> str:
        return self._model

    @property
    def is_available(self) -> bool:
        return self.available

    def handles(self, model: str) -> bool:
        return model == self._model

    async def embed(self, text: str, model: str | None = None) -> EmbeddingVector:
        self.calls.append(text)
        call_number = len(self.calls)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.failing or text in self.fail_on or call_number in self.fail_calls:
                raise EmbeddingError(f"{self._name} is down", details={"backend": self._name})
            return EmbeddingVector(
                vector=fake_vector(text, self.size),
                model=model or self._model,
                backend=self._name,
            )
        finally:
            self.active -= 1

    async def close(self) -> None:
        self.closed = True


class FakeFetcher(RepositoryFetcher):
    """Writes a small sample repository instead of cloning."""

    def __init__(
        self,
        files: dict[str, str] | None = None,
        failures: dict[str, int] | None = None,
    ) -> None:
        self.files = SAMPLE_FILES if files is None else files
        self.failures = dict(failures or {})
        self.fetched: list[str] = []
        self.cleaned: list[str] = []

    async def fetch(self, handle: str, destination_root: Path) -> RepositorySnapshot:
        validate_handle(handle)
        self.fetched.append(handle)
        if self.failures.get(handle, 0) > 0:
            self.failures[handle] -= 1
            raise FetchError(f"Failed to clone {handle}", details={"handle": handle})

        destination = destination_root / handle.replace("/", "__")
        for relative, content in self.files.items():
            path = destination / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return RepositorySnapshot(handle=handle, url=f"file://{destination}", path=destination)

    async def cleanup(self, snapshot: RepositorySnapshot) -> None:
        self.cleaned.append(snapshot.handle)
        shutil.rmtree(snapshot.path, ignore_errors=True)


class RecordingEventSink(EventSink):
    """Keeps every emitted event."""

    def __init__(self) -> None:
        self.events: list[PipelineEvent] = []

    def emit(self, event: PipelineEvent) -> None:
        self.events.append(event)

    def types(self, job_id: str | None = None) -> list[EventType]:
        """Event types in emission order, optionally for one job."""
        return [e.type for e in self.events if job_id is None or e.job_id == job_id]


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with a temporary workdir and fast retries."""
    return Settings(
        fetch=FetchSettings(workdir=tmp_path / "work"),
        embedding=EmbeddingSettings(
            default_backend="primary",
            fallback_backend="secondary",
            batch_size=4,
            batch_delay=0.0,
        ),
        worker=WorkerSettings(
            concurrency=2,
            max_attempts=3,
            backoff_base=0.01,
            backoff_max=0.05,
            claim_timeout=0.05,
            busy_project_delay=0.01,
            shutdown_grace=1.0,
        ),
    )


@pytest.fixture
def primary_backend() -> FakeEmbeddingBackend:
    return FakeEmbeddingBackend(name="primary", model="fake-model")


@pytest.fixture
def secondary_backend() -> FakeEmbeddingBackend:
    return FakeEmbeddingBackend(name="secondary", model="other-model")


@pytest.fixture
def generator(
    settings: Settings,
    primary_backend: FakeEmbeddingBackend,
    secondary_backend: FakeEmbeddingBackend,
) -> EmbeddingGenerator:
    return EmbeddingGenerator([primary_backend, secondary_backend], settings.embedding)


@pytest.fixture
def store() -> InMemoryAnalysisStore:
    return InMemoryAnalysisStore()


@pytest.fixture
def embedding_store() -> InMemoryEmbeddingStore:
    return InMemoryEmbeddingStore()


@pytest.fixture
def queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def pipeline(
    settings: Settings,
    fetcher: FakeFetcher,
    generator: EmbeddingGenerator,
    store: InMemoryAnalysisStore,
    embedding_store: InMemoryEmbeddingStore,
    events: RecordingEventSink,
) -> AnalysisPipeline:
    """Pipeline wired to in-memory collaborators; blame is disabled."""
    return AnalysisPipeline(
        fetcher=fetcher,
        extractor=MetricExtractor(blame=False),
        summarizer=RepositorySummarizer(),
        generator=generator,
        store=store,
        embedding_store=embedding_store,
        events=events,
        settings=settings,
    )
