"""Repository fetch module."""

from repoinsight.fetch.git import (
    GitCommandError,
    GitRepositoryFetcher,
    RepositoryFetcher,
    run_git,
)
from repoinsight.fetch.models import RepositorySnapshot, validate_handle

__all__ = [
    "GitCommandError",
    "GitRepositoryFetcher",
    "RepositoryFetcher",
    "RepositorySnapshot",
    "run_git",
    "validate_handle",
]
