"""Selection of the content units embedded for each repository."""

from pathlib import Path

from repoinsight.config import IndexingSettings
from repoinsight.extractors.documentation import find_readme
from repoinsight.extractors.walk import read_text
from repoinsight.fetch.models import RepositorySnapshot
from repoinsight.indexing.chunker import CharacterChunker
from repoinsight.indexing.models import ChunkerConfig, ContentUnit
from repoinsight.storage.models import ContentKind, embedding_record_id

DOC_DIRECTORY = "docs"
DOC_SUFFIXES = (".md", ".markdown", ".rst", ".txt")


def _doc_files(root: Path) -> list[Path]:
    docs = root / DOC_DIRECTORY
    if not docs.is_dir():
        return []
    return sorted(p for p in docs.iterdir() if p.is_file() and p.suffix.lower() in DOC_SUFFIXES)


def select_content_units(
    project_id: str,
    snapshot: RepositorySnapshot,
    summary: str,
    settings: IndexingSettings,
) -> list[ContentUnit]:
    """Pick the texts to embed for one repository.

    The repository summary always comes first; README chunks and then
    top-level ``docs/`` chunks follow until the per-repository cap.

    Args:
        project_id: Project the units belong to.
        snapshot: Checked-out repository.
        summary: Repository summary text.
        settings: Chunking parameters and the unit cap.

    Returns:
        Units with ids that are stable across reprocessing.
    """
    chunker = CharacterChunker(
        ChunkerConfig(chunk_size=settings.chunk_size, chunk_overlap=settings.chunk_overlap)
    )
    handle = snapshot.handle
    units: list[ContentUnit] = []

    if summary.strip():
        units.append(
            ContentUnit(
                id=embedding_record_id(project_id, handle, "", 0),
                repository=handle,
                kind=ContentKind.SUMMARY,
                text=summary.strip(),
            )
        )

    sources: list[tuple[Path, ContentKind]] = []
    readme = find_readme(snapshot.path)
    if readme is not None:
        sources.append((readme, ContentKind.README))
    sources.extend((doc, ContentKind.DOC) for doc in _doc_files(snapshot.path))

    for path, kind in sources:
        text = read_text(path)
        if not text:
            continue
        relative = path.relative_to(snapshot.path).as_posix()
        for chunk in chunker.chunk(text):
            if len(units) >= settings.max_units_per_repository:
                return units
            units.append(
                ContentUnit(
                    id=embedding_record_id(project_id, handle, relative, chunk.index),
                    repository=handle,
                    path=relative,
                    kind=kind,
                    text=chunk.content,
                )
            )

    return units[: settings.max_units_per_repository]
