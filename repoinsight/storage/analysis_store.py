"""Project, result and weight profile persistence."""

import asyncio
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from repoinsight.exceptions import ErrorCode, PersistenceError
from repoinsight.logging_config import get_logger
from repoinsight.scoring.models import DEFAULT_WEIGHT_PROFILE, WeightProfile
from repoinsight.storage.models import AnalysisResult, Project, ProjectStatus

logger = get_logger(__name__)


class AnalysisStore(ABC):
    """Abstract base class for analysis persistence.

    All failures surface as ``PersistenceError``.
    """

    @abstractmethod
    async def get_project(self, project_id: str) -> Project | None:
        """Fetch a project, None when unknown."""
        ...

    @abstractmethod
    async def upsert_project(self, project: Project) -> Project:
        """Create or replace a project."""
        ...

    @abstractmethod
    async def set_project_status(
        self,
        project_id: str,
        status: ProjectStatus,
        reason: str | None = None,
    ) -> Project:
        """Update a project's status.

        Raises:
            PersistenceError: If the project does not exist.
        """
        ...

    @abstractmethod
    async def save_result(self, result: AnalysisResult) -> None:
        """Store a new analysis result."""
        ...

    @abstractmethod
    async def latest_result(self, project_id: str) -> AnalysisResult | None:
        """Most recent result for a project."""
        ...

    @abstractmethod
    async def list_results(self, project_id: str) -> list[AnalysisResult]:
        """Every result for a project, oldest first."""
        ...

    @abstractmethod
    async def get_weight_profile(self, organization_id: str) -> WeightProfile:
        """Active weight profile, the default when none is set."""
        ...

    @abstractmethod
    async def set_weight_profile(self, profile: WeightProfile) -> None:
        """Make a profile active for its organization."""
        ...


class InMemoryAnalysisStore(AnalysisStore):
    """Dictionary-backed store guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._projects: dict[str, Project] = {}
        self._results: dict[str, list[AnalysisResult]] = {}
        self._profiles: dict[str, WeightProfile] = {}

    async def get_project(self, project_id: str) -> Project | None:
        async with self._lock:
            return self._projects.get(project_id)

    async def upsert_project(self, project: Project) -> Project:
        async with self._lock:
            self._projects[project.id] = project
            return project

    async def set_project_status(
        self,
        project_id: str,
        status: ProjectStatus,
        reason: str | None = None,
    ) -> Project:
        async with self._lock:
            project = self._projects.get(project_id)
            if project is None:
                raise PersistenceError(
                    f"Project not found: {project_id}",
                    code=ErrorCode.PROJECT_NOT_FOUND,
                    details={"project_id": project_id},
                )
            updated = project.model_copy(
                update={
                    "status": status,
                    "status_reason": reason,
                    "updated_at": datetime.now(UTC),
                }
            )
            self._projects[project_id] = updated

        logger.debug(
            f"Project {project_id} is now {status.value}",
            extra={"project_id": project_id, "status": status.value},
        )
        return updated

    async def save_result(self, result: AnalysisResult) -> None:
        async with self._lock:
            self._results.setdefault(result.project_id, []).append(result)

    async def latest_result(self, project_id: str) -> AnalysisResult | None:
        async with self._lock:
            results = self._results.get(project_id)
            return results[-1] if results else None

    async def list_results(self, project_id: str) -> list[AnalysisResult]:
        async with self._lock:
            return list(self._results.get(project_id, []))

    async def get_weight_profile(self, organization_id: str) -> WeightProfile:
        async with self._lock:
            return self._profiles.get(organization_id, DEFAULT_WEIGHT_PROFILE)

    async def set_weight_profile(self, profile: WeightProfile) -> None:
        if profile.organization_id is None:
            raise PersistenceError(
                "Weight profile has no organization",
                details={"profile_id": profile.id},
            )
        async with self._lock:
            self._profiles[profile.organization_id] = profile
