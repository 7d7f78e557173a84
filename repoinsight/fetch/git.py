"""Shallow git clones of remote repositories."""

import asyncio
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from repoinsight.config import FetchSettings
from repoinsight.exceptions import FetchError
from repoinsight.fetch.models import RepositorySnapshot, validate_handle
from repoinsight.logging_config import get_logger

logger = get_logger(__name__)


class GitCommandError(Exception):
    """Error running git commands."""

    pass


async def run_git(args: list[str], cwd: Path | None = None, timeout: float | None = None) -> str:
    """Run a git command and return its stdout.

    Raises:
        GitCommandError: If git is missing, exits non-zero or times out.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise GitCommandError("git executable not found") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError as e:
        process.kill()
        await process.wait()
        raise GitCommandError(f"git {args[0]} timed out after {timeout}s") from e
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    if process.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        raise GitCommandError(f"git {args[0]} failed: {message}")

    return stdout.decode("utf-8", errors="replace")


class RepositoryFetcher(ABC):
    """Abstract base class for repository fetchers."""

    @abstractmethod
    async def fetch(self, handle: str, destination_root: Path) -> RepositorySnapshot:
        """Materialize a repository under destination_root.

        Raises:
            JobPayloadError: If the handle is malformed.
            FetchError: If the repository cannot be fetched.
        """
        ...

    @abstractmethod
    async def cleanup(self, snapshot: RepositorySnapshot) -> None:
        """Remove a snapshot from disk."""
        ...


class GitRepositoryFetcher(RepositoryFetcher):
    """Fetches repositories with a shallow ``git clone``."""

    def __init__(self, settings: FetchSettings) -> None:
        self._settings = settings

    def clone_url(self, handle: str) -> str:
        """Clone URL for a handle."""
        return f"{self._settings.base_url.rstrip('/')}/{handle}.git"

    async def fetch(self, handle: str, destination_root: Path) -> RepositorySnapshot:
        validate_handle(handle)
        url = self.clone_url(handle)
        destination = destination_root / handle.replace("/", "__")

        # A retry must start from an empty directory
        await asyncio.to_thread(shutil.rmtree, destination, True)
        destination.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Cloning {handle}", extra={"handle": handle, "url": url})
        try:
            await run_git(
                [
                    "clone",
                    "--depth",
                    str(self._settings.clone_depth),
                    "--quiet",
                    url,
                    str(destination),
                ],
                timeout=self._settings.timeout,
            )
        except GitCommandError as e:
            await asyncio.to_thread(shutil.rmtree, destination, True)
            raise FetchError(
                f"Failed to clone {handle}: {e}",
                details={"handle": handle, "url": url},
            ) from e

        return RepositorySnapshot(handle=handle, url=url, path=destination)

    async def cleanup(self, snapshot: RepositorySnapshot) -> None:
        if not self._settings.cleanup:
            return
        await asyncio.to_thread(shutil.rmtree, snapshot.path, True)
        logger.debug(f"Removed snapshot {snapshot.handle}", extra={"path": str(snapshot.path)})
