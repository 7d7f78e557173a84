"""Weighted aggregation of category scores."""

import math
from collections.abc import Mapping

from repoinsight.exceptions import NoApplicableWeightsError, ValidationError
from repoinsight.scoring.models import ScoreBreakdown, ScoreCategory, WeightProfile

WEIGHT_SUM_TOLERANCE = 0.01
MAX_SINGLE_WEIGHT = 0.5


def _parse_category(name: ScoreCategory | str) -> ScoreCategory:
    try:
        return ScoreCategory(name)
    except ValueError as e:
        raise ValidationError(
            f"Unknown score category: {name}",
            details={"category": str(name)},
        ) from e


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up."""
    return math.floor(value + 0.5)


def aggregate(
    raw_metrics: Mapping[ScoreCategory | str, float],
    weight_profile: WeightProfile,
) -> ScoreBreakdown:
    """Combine normalized category values into one weighted score.

    Only categories present in both the metrics and the profile take part;
    the rest are excluded from numerator and denominator alike. The result
    does not depend on the order of either mapping.

    Args:
        raw_metrics: Category value in [0, 100] per category.
        weight_profile: Weights to apply.

    Returns:
        ScoreBreakdown with the unrounded and rounded overall score.

    Raises:
        ValidationError: If a value is outside [0, 100] or a category is unknown.
        NoApplicableWeightsError: If no category matches or matching weights sum to 0.
    """
    values: dict[ScoreCategory, float] = {}
    for name, value in raw_metrics.items():
        category = _parse_category(name)
        if not 0.0 <= value <= 100.0:
            raise ValidationError(
                f"Score for {category.value} must be in [0, 100], got {value}",
                details={"category": category.value, "value": value},
            )
        values[category] = float(value)

    # Fixed enum order keeps the float sums independent of input order
    applicable = [c for c in ScoreCategory if c in values and c in weight_profile.weights]
    weights = {c: weight_profile.weights[c] for c in applicable}
    total_weight = math.fsum(weights.values())

    if not applicable or total_weight <= 0.0:
        raise NoApplicableWeightsError(
            "No category has a usable weight",
            details={
                "categories": sorted(c.value for c in values),
                "profile": weight_profile.id,
            },
        )

    overall = math.fsum(values[c] * weights[c] for c in applicable) / total_weight
    overall = max(0.0, min(100.0, overall))

    return ScoreBreakdown(
        categories={c: values[c] for c in applicable},
        overall=overall,
        overall_rounded=round_half_up(overall),
        weights_used=weights,
    )


def validate_weight_profile(profile: WeightProfile) -> list[str]:
    """Report problems with a weight profile without rejecting it.

    Returns:
        Human-readable problems; empty when the profile looks sane.
    """
    problems: list[str] = []

    total = math.fsum(profile.weights.values())
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        problems.append(f"Weights sum to {total:.2f}, expected 1.00")

    for category, weight in profile.weights.items():
        if weight < 0.0 or weight > 1.0:
            problems.append(f"Weight for {category.value} must be between 0 and 1")
        elif weight > MAX_SINGLE_WEIGHT:
            problems.append(
                f"Weight for {category.value} is {weight:.2f}; "
                f"no single category should exceed {MAX_SINGLE_WEIGHT:.2f}"
            )

    return problems
