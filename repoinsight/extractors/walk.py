"""Shared directory walking for the scanners."""

import os
from collections.abc import Iterator
from pathlib import Path

IGNORED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "dist",
        "build",
        "target",
        "vendor",
        "coverage",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".venv",
        "venv",
        "env",
        ".tox",
        ".next",
        ".nuxt",
        ".gradle",
        ".mvn",
        ".idea",
        ".vscode",
    }
)

BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico",
        ".pdf", ".zip", ".tar", ".gz", ".rar", ".7z",
        ".exe", ".dll", ".so", ".dylib", ".bin",
        ".mp4", ".mp3", ".wav", ".avi", ".mov",
        ".woff", ".woff2", ".ttf", ".eot",
    }
)

# Files larger than this are skipped by the line-based scanners
MAX_FILE_BYTES = 1_000_000


def iter_files(root: Path) -> Iterator[Path]:
    """Yield regular files under root, pruning ignored directories."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if path.is_file() and not path.is_symlink():
                yield path


def read_text(path: Path) -> str | None:
    """Read a text file, returning None for binary or oversized files."""
    if path.suffix.lower() in BINARY_EXTENSIONS:
        return None
    try:
        if path.stat().st_size > MAX_FILE_BYTES:
            return None
        data = path.read_bytes()
    except OSError:
        return None
    if b"\x00" in data[:8192]:
        return None
    return data.decode("utf-8", errors="replace")
