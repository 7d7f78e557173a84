"""Per-project lock tokens."""

from repoinsight.logging_config import get_logger

logger = get_logger(__name__)


class ProjectLocks:
    """At most one job per project at a time.

    Methods never await, so check-and-set is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._holders: dict[str, str] = {}

    def try_acquire(self, project_id: str, job_id: str) -> bool:
        """Take the project for a job; True if the job now holds it."""
        holder = self._holders.get(project_id)
        if holder is None:
            self._holders[project_id] = job_id
            return True
        return holder == job_id

    def release(self, project_id: str, job_id: str) -> bool:
        """Give the project back; only its holder can release it."""
        if self._holders.get(project_id) != job_id:
            logger.debug(
                f"Job {job_id} does not hold project {project_id}",
                extra={"project_id": project_id, "job_id": job_id},
            )
            return False
        del self._holders[project_id]
        return True

    def holder(self, project_id: str) -> str | None:
        """Job currently holding the project."""
        return self._holders.get(project_id)

    def __len__(self) -> int:
        return len(self._holders)
