"""Repository snapshot models."""

import re
from pathlib import Path

from pydantic import BaseModel, Field

from repoinsight.exceptions import JobPayloadError

HANDLE_PATTERN = re.compile(r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})/[A-Za-z0-9._-]{1,100}")


def validate_handle(handle: str) -> str:
    """Check that a repository handle looks like ``owner/name``.

    Raises:
        JobPayloadError: If the handle is malformed.
    """
    if not HANDLE_PATTERN.fullmatch(handle) or handle.endswith((".", "/")) or ".." in handle:
        raise JobPayloadError(
            f"Invalid repository handle: {handle!r}",
            details={"handle": handle},
        )
    return handle


class RepositorySnapshot(BaseModel):
    """A checked-out copy of a repository on local disk.

    Attributes:
        handle: Repository handle (owner/name).
        url: Clone URL that produced the snapshot.
        path: Working tree location.
    """

    handle: str = Field(description="Repository handle")
    url: str = Field(description="Clone URL")
    path: Path = Field(description="Local working tree")

    @property
    def name(self) -> str:
        """Repository name without the owner."""
        return self.handle.rsplit("/", 1)[-1]
