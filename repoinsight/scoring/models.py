"""Scoring data models."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class ScoreCategory(str, Enum):
    """Scoring dimensions of a repository or project."""

    CRAFT = "craft"
    RELIABILITY = "reliability"
    DOCUMENTATION = "documentation"
    SECURITY = "security"
    IMPACT = "impact"
    COLLABORATION = "collaboration"


class WeightProfile(BaseModel):
    """Per-category weights used to aggregate category scores.

    Attributes:
        id: Profile identifier.
        name: Human-readable name.
        organization_id: Owning organization, None for the built-in default.
        weights: Weight per category, each in [0, 1].
    """

    id: str = Field(description="Profile identifier")
    name: str = Field(description="Profile name")
    organization_id: str | None = Field(default=None, description="Owning organization")
    weights: dict[ScoreCategory, float] = Field(description="Weight per category")

    @field_validator("weights")
    @classmethod
    def _weights_in_range(cls, value: dict[ScoreCategory, float]) -> dict[ScoreCategory, float]:
        for category, weight in value.items():
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"weight for {category.value} must be in [0, 1], got {weight}")
        return value


class ScoreBreakdown(BaseModel):
    """Result of aggregating category scores with a weight profile.

    Attributes:
        categories: Category values that took part in the aggregate.
        overall: Weighted mean, unrounded.
        overall_rounded: Overall rounded half up, for display.
        weights_used: Weights that were applied.
    """

    categories: dict[ScoreCategory, float] = Field(description="Category scores")
    overall: float = Field(ge=0.0, le=100.0, description="Unrounded overall score")
    overall_rounded: int = Field(ge=0, le=100, description="Overall rounded for display")
    weights_used: dict[ScoreCategory, float] = Field(description="Weights applied")


DEFAULT_WEIGHT_PROFILE = WeightProfile(
    id="default",
    name="Default",
    weights={
        ScoreCategory.CRAFT: 0.25,
        ScoreCategory.RELIABILITY: 0.25,
        ScoreCategory.DOCUMENTATION: 0.15,
        ScoreCategory.SECURITY: 0.20,
        ScoreCategory.IMPACT: 0.10,
        ScoreCategory.COLLABORATION: 0.05,
    },
)
