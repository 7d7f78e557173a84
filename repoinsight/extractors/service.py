"""Metric extraction over a repository snapshot."""

import asyncio
from pathlib import Path

from repoinsight.exceptions import ExtractorError, RepoInsightError
from repoinsight.extractors.documentation import score_readme
from repoinsight.extractors.inventory import scan_inventory
from repoinsight.extractors.models import Inventory, RepositoryMetrics
from repoinsight.extractors.ownership import blame_ownership
from repoinsight.extractors.quality import count_lint_issues, detect_ci, detect_tests
from repoinsight.extractors.security import scan_secrets
from repoinsight.fetch.models import RepositorySnapshot
from repoinsight.logging_config import get_logger

logger = get_logger(__name__)


def _scan(root: Path) -> tuple[Inventory, int, int, int, bool, bool]:
    return (
        scan_inventory(root),
        count_lint_issues(root),
        scan_secrets(root),
        score_readme(root),
        detect_tests(root),
        detect_ci(root),
    )


class MetricExtractor:
    """Runs every scanner against one snapshot."""

    def __init__(self, blame: bool = True) -> None:
        """Initialize the extractor.

        Args:
            blame: Whether to compute ownership with git blame.
        """
        self._blame = blame

    async def extract(self, snapshot: RepositorySnapshot) -> RepositoryMetrics:
        """Extract metrics for a snapshot.

        The file scanners are blocking and run in a worker thread.

        Raises:
            ExtractorError: If any scanner fails.
        """
        root = snapshot.path
        if not root.is_dir():
            raise ExtractorError(
                f"Snapshot path does not exist: {root}",
                details={"handle": snapshot.handle},
            )

        try:
            inventory, lint, secrets, readme, has_tests, has_ci = await asyncio.to_thread(
                _scan, root
            )
            ownership = await blame_ownership(root) if self._blame else []
        except ExtractorError:
            raise
        except RepoInsightError as e:
            raise ExtractorError(e.message, details={"handle": snapshot.handle}) from e
        except (OSError, ValueError, UnicodeError) as e:
            raise ExtractorError(
                f"Extraction failed for {snapshot.handle}: {e}",
                details={"handle": snapshot.handle},
            ) from e

        metrics = RepositoryMetrics(
            handle=snapshot.handle,
            dominant_language=inventory.dominant_language,
            languages=inventory.languages,
            total_files=inventory.total_files,
            total_loc=inventory.total_loc,
            lint_issues=lint,
            security_findings=secrets,
            readme_score=readme,
            has_tests=has_tests,
            has_ci=has_ci,
            ownership=ownership,
        )
        logger.info(
            f"Extracted metrics for {snapshot.handle}",
            extra={
                "handle": snapshot.handle,
                "total_loc": metrics.total_loc,
                "contributors": metrics.contributors,
            },
        )
        return metrics
