"""Lightweight style checks plus test and CI detection."""

import re
from pathlib import Path

from repoinsight.extractors.inventory import is_source_file
from repoinsight.extractors.walk import iter_files, read_text

MAX_LINE_LENGTH = 120

TEST_DIR_NAMES = frozenset({"test", "tests", "__tests__", "spec", "specs"})
TEST_FILE_PATTERN = re.compile(r"(^test_.+|.+_test\.[^.]+$|.+\.(test|spec)\.[^.]+$)", re.I)

CI_PATHS = (
    ".github/workflows",
    ".gitlab-ci.yml",
    "Jenkinsfile",
    "azure-pipelines.yml",
    ".circleci/config.yml",
    ".travis.yml",
    "bitbucket-pipelines.yml",
)


def lint_text(text: str) -> int:
    """Count style issues in one file.

    Flags over-long lines, trailing whitespace and lines that indent with
    both tabs and spaces.
    """
    issues = 0
    for line in text.splitlines():
        if len(line) > MAX_LINE_LENGTH:
            issues += 1
        if line != line.rstrip():
            issues += 1
        indent = line[: len(line) - len(line.lstrip())]
        if "\t" in indent and " " in indent:
            issues += 1
    return issues


def count_lint_issues(root: Path) -> int:
    """Total style issues across source files of a snapshot."""
    total = 0
    for path in iter_files(root):
        if not is_source_file(path):
            continue
        text = read_text(path)
        if text is not None:
            total += lint_text(text)
    return total


def detect_tests(root: Path) -> bool:
    """Whether the snapshot contains test directories or test files."""
    for path in iter_files(root):
        relative = path.relative_to(root)
        if any(part.lower() in TEST_DIR_NAMES for part in relative.parts[:-1]):
            return True
        if TEST_FILE_PATTERN.match(path.name):
            return True
    return False


def detect_ci(root: Path) -> bool:
    """Whether the snapshot carries CI configuration."""
    workflows = root / ".github" / "workflows"
    if workflows.is_dir() and any(workflows.glob("*.y*ml")):
        return True
    return any((root / ci_path).is_file() for ci_path in CI_PATHS[1:])
