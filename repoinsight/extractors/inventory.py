"""Language and size inventory of a repository snapshot."""

from collections import Counter
from pathlib import Path

from repoinsight.extractors.models import Inventory
from repoinsight.extractors.walk import iter_files, read_text

LANGUAGE_EXTENSIONS: dict[str, tuple[str, ...]] = {
    "javascript": (".js", ".jsx", ".mjs", ".cjs"),
    "typescript": (".ts", ".tsx", ".mts", ".cts"),
    "python": (".py", ".pyi", ".pyw"),
    "java": (".java",),
    "csharp": (".cs",),
    "go": (".go",),
    "rust": (".rs",),
    "php": (".php", ".phtml"),
    "ruby": (".rb",),
    "swift": (".swift",),
    "kotlin": (".kt", ".kts"),
    "cpp": (".cpp", ".cc", ".cxx", ".hpp"),
    "c": (".c", ".h"),
    "html": (".html", ".htm"),
    "css": (".css", ".scss", ".sass", ".less"),
    "shell": (".sh", ".bash", ".zsh", ".fish"),
    "powershell": (".ps1", ".psm1"),
}

_EXTENSION_TO_LANGUAGE = {
    ext: language for language, extensions in LANGUAGE_EXTENSIONS.items() for ext in extensions
}


def detect_language(path: Path) -> str | None:
    """Map a file to a language by extension, None when unknown."""
    return _EXTENSION_TO_LANGUAGE.get(path.suffix.lower())


def is_source_file(path: Path) -> bool:
    """Whether the file is counted as source code."""
    return detect_language(path) is not None


def scan_inventory(root: Path) -> Inventory:
    """Count source files and non-blank lines per language.

    Args:
        root: Snapshot directory.

    Returns:
        Inventory of the snapshot. Ties for the dominant language go to
        the alphabetically first language.
    """
    lines: Counter[str] = Counter()
    total_files = 0

    for path in iter_files(root):
        language = detect_language(path)
        if language is None:
            continue
        text = read_text(path)
        if text is None:
            continue
        total_files += 1
        lines[language] += sum(1 for line in text.splitlines() if line.strip())

    dominant = None
    if lines:
        dominant = min(lines, key=lambda lang: (-lines[lang], lang))

    return Inventory(
        languages=dict(sorted(lines.items())),
        total_files=total_files,
        total_loc=sum(lines.values()),
        dominant_language=dominant,
    )
