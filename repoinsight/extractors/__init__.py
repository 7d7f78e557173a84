"""Repository metric extraction module."""

from repoinsight.extractors.models import Inventory, OwnershipShare, RepositoryMetrics
from repoinsight.extractors.normalize import category_scores, project_category_scores
from repoinsight.extractors.service import MetricExtractor

__all__ = [
    "Inventory",
    "MetricExtractor",
    "OwnershipShare",
    "RepositoryMetrics",
    "category_scores",
    "project_category_scores",
]
