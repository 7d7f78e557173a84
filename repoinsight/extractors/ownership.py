"""Code ownership from git blame."""

from collections import Counter
from pathlib import Path

from repoinsight.exceptions import ExtractorError
from repoinsight.extractors.inventory import is_source_file
from repoinsight.extractors.models import OwnershipShare
from repoinsight.fetch.git import GitCommandError, run_git
from repoinsight.logging_config import get_logger

logger = get_logger(__name__)

BLAME_TIMEOUT = 60.0


def parse_line_porcelain(output: str) -> Counter[str]:
    """Count lines per author in ``git blame --line-porcelain`` output."""
    counts: Counter[str] = Counter()
    for line in output.splitlines():
        if line.startswith("author "):
            counts[line[len("author ") :].strip()] += 1
    return counts


def shares_from_counts(counts: Counter[str]) -> list[OwnershipShare]:
    """Turn per-author line counts into shares summing to 1.

    Sorted by lines descending, then author name.
    """
    total = sum(counts.values())
    if total == 0:
        return []
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        OwnershipShare(author=author, lines=lines, share=lines / total)
        for author, lines in ordered
    ]


async def blame_ownership(root: Path, max_files: int = 500) -> list[OwnershipShare]:
    """Attribute surviving source lines to authors.

    Files git cannot blame are skipped.

    Args:
        root: Working tree of a git repository.
        max_files: Upper bound on blamed files.

    Raises:
        ExtractorError: If the tracked files cannot be listed.
    """
    try:
        listing = await run_git(["ls-files"], cwd=root, timeout=BLAME_TIMEOUT)
    except GitCommandError as e:
        raise ExtractorError(
            f"Cannot list tracked files: {e}",
            details={"path": str(root)},
        ) from e

    files = [name for name in listing.splitlines() if name and is_source_file(Path(name))]
    counts: Counter[str] = Counter()
    skipped = 0

    for name in files[:max_files]:
        try:
            output = await run_git(
                ["blame", "--line-porcelain", "--", name],
                cwd=root,
                timeout=BLAME_TIMEOUT,
            )
        except GitCommandError:
            skipped += 1
            continue
        counts.update(parse_line_porcelain(output))

    if skipped:
        logger.debug(f"Skipped {skipped} files during blame", extra={"path": str(root)})

    return shares_from_counts(counts)
