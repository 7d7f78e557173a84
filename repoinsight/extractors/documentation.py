"""README quality checklist."""

import re
from pathlib import Path

from repoinsight.extractors.walk import read_text

README_NAMES = ("README.md", "README.rst", "README.txt", "README.adoc", "README")

# One pattern per checklist item; a README earns a point per matching item
README_CHECKLIST: dict[str, re.Pattern[str]] = {
    "setup": re.compile(r"\b(installation|install|setup|getting started|prerequisites)\b", re.I),
    "configuration": re.compile(r"\b(configuration|configure|environment variables?|\.env)\b", re.I),
    "contributing": re.compile(r"\bcontribut(e|ing|ors?)\b", re.I),
    "license": re.compile(r"\b(license|licence)\b", re.I),
    "api": re.compile(r"\b(api|reference|endpoints?)\b", re.I),
    "usage": re.compile(r"\b(usage|examples?|quick ?start)\b", re.I),
}


def find_readme(root: Path) -> Path | None:
    """Locate the README at the repository root."""
    for name in README_NAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    if not root.is_dir():
        return None
    # Case-insensitive fallback (readme.md, Readme.markdown, ...)
    for candidate in sorted(root.iterdir()):
        if candidate.is_file() and candidate.name.lower().startswith("readme"):
            return candidate
    return None


def readme_checklist(text: str) -> dict[str, bool]:
    """Evaluate each checklist item against README text."""
    return {item: bool(pattern.search(text)) for item, pattern in README_CHECKLIST.items()}


def score_readme(root: Path) -> int:
    """Score the README as round(100 * hits / items); 0 when absent."""
    readme = find_readme(root)
    if readme is None:
        return 0
    text = read_text(readme)
    if not text:
        return 0
    hits = sum(readme_checklist(text).values())
    return round(100 * hits / len(README_CHECKLIST))


def read_readme(root: Path) -> str:
    """Return README text, empty when there is none."""
    readme = find_readme(root)
    if readme is None:
        return ""
    return read_text(readme) or ""
