"""Category rules turning repository facts into scores in [0, 100]."""

import math
from collections.abc import Sequence

from repoinsight.extractors.models import OwnershipShare, RepositoryMetrics
from repoinsight.scoring.models import ScoreCategory


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def gini(values: Sequence[float]) -> float:
    """Gini coefficient of non-negative values; 0 for empty or all-zero input."""
    ordered = sorted(values)
    n = len(ordered)
    total = math.fsum(ordered)
    if n == 0 or total == 0:
        return 0.0
    weighted = math.fsum((2 * (i + 1) - n - 1) * v for i, v in enumerate(ordered))
    return weighted / (n * total)


def craft_score(metrics: RepositoryMetrics) -> float:
    if metrics.total_loc == 0:
        return 100.0
    per_kloc = metrics.lint_issues / metrics.total_loc * 1000
    return _clamp(100.0 - 2.0 * per_kloc)


def reliability_score(metrics: RepositoryMetrics) -> float:
    return 40.0 + (30.0 if metrics.has_tests else 0.0) + (30.0 if metrics.has_ci else 0.0)


def security_score(metrics: RepositoryMetrics) -> float:
    return _clamp(100.0 - 10.0 * metrics.security_findings)


def impact_score(metrics: RepositoryMetrics) -> float:
    return _clamp(
        40.0 * min(metrics.total_loc / 10_000, 1.0)
        + 30.0 * min(len(metrics.languages) / 5, 1.0)
        + 30.0 * min(metrics.total_files / 100, 1.0)
    )


def collaboration_score(ownership: Sequence[OwnershipShare]) -> float:
    contributors = [share for share in ownership if share.lines > 0]
    if not contributors:
        return 0.0
    diversity = 1.0 - gini([share.lines for share in contributors])
    return _clamp(50.0 * diversity + 50.0 * min(len(contributors) / 5, 1.0))


def category_scores(metrics: RepositoryMetrics) -> dict[ScoreCategory, float]:
    """Score every category for one repository."""
    return {
        ScoreCategory.CRAFT: craft_score(metrics),
        ScoreCategory.RELIABILITY: reliability_score(metrics),
        ScoreCategory.DOCUMENTATION: _clamp(float(metrics.readme_score)),
        ScoreCategory.SECURITY: security_score(metrics),
        ScoreCategory.IMPACT: impact_score(metrics),
        ScoreCategory.COLLABORATION: collaboration_score(metrics.ownership),
    }


def project_category_scores(
    repositories: Sequence[RepositoryMetrics],
) -> dict[ScoreCategory, float]:
    """Average each category across a project's repositories.

    Returns an empty mapping when there are no repositories.
    """
    if not repositories:
        return {}
    per_repo = [category_scores(metrics) for metrics in repositories]
    return {
        category: math.fsum(scores[category] for scores in per_repo) / len(per_repo)
        for category in ScoreCategory
    }
