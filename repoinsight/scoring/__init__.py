"""Score aggregation module."""

from repoinsight.scoring.aggregator import aggregate, round_half_up, validate_weight_profile
from repoinsight.scoring.models import (
    DEFAULT_WEIGHT_PROFILE,
    ScoreBreakdown,
    ScoreCategory,
    WeightProfile,
)

__all__ = [
    "DEFAULT_WEIGHT_PROFILE",
    "ScoreBreakdown",
    "ScoreCategory",
    "WeightProfile",
    "aggregate",
    "round_half_up",
    "validate_weight_profile",
]
