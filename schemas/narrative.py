"""Narrative schemas.

NarrativeProposal is the shape an LLM narrative must have before any
grounding check runs. Narrative is what survives validation: a proposal that
cites real signals spanning at least two independent sources.
"""

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from schemas.signal import Category, SignalSource
from utils.categories import normalize_category


class TrendDirection(str, Enum):
    """Direction a narrative is moving in."""

    ACCELERATING = "Accelerating"
    STABLE = "Stable"
    EMERGING = "Emerging"
    DECLINING = "Declining"


_TREND_ALIASES = {
    "accelerating": TrendDirection.ACCELERATING,
    "growing": TrendDirection.ACCELERATING,
    "stable": TrendDirection.STABLE,
    "steady": TrendDirection.STABLE,
    "declining": TrendDirection.DECLINING,
    "decelerating": TrendDirection.DECLINING,
    "emerging": TrendDirection.EMERGING,
    "nascent": TrendDirection.EMERGING,
    "early": TrendDirection.EMERGING,
}


def parse_trend(value: str | TrendDirection) -> TrendDirection:
    """Map a free-text trend onto TrendDirection.

    Models use synonyms ("steady", "decelerating", "nascent"). Anything
    unrecognised is treated as Emerging rather than failing the proposal.
    """
    if isinstance(value, TrendDirection):
        return value
    return _TREND_ALIASES.get(value.strip().lower(), TrendDirection.EMERGING)


class KeyMetric(BaseModel):
    """A headline figure the model quoted in support of a narrative."""

    name: str
    value: float | str
    unit: str = ""


class NarrativeProposal(BaseModel):
    """An untrusted narrative claim as returned by the LLM.

    Unknown keys (including any "accepted" or "id" the model invents) are
    dropped. A single category string is accepted in place of a list, and
    "supporting_signals" / "summary" are accepted as aliases.

    Attributes:
        title: Short name of the trend.
        categories: Sectors the trend spans. At least one.
        confidence: Claimed confidence on a 0-100 scale. Range is enforced
            later by the validator, which clamps rather than rejects.
        trend: Direction of the trend.
        cited_signal_indices: Store indices offered as evidence. Duplicates
            are removed, first occurrence wins.
        rationale: Why the cited signals support the claim.
        key_metrics: Optional headline figures.
    """

    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    categories: list[Category] = Field(
        min_length=1,
        validation_alias=AliasChoices("categories", "category"),
    )
    confidence: float = Field(allow_inf_nan=False)
    trend: TrendDirection
    cited_signal_indices: list[int] = Field(
        min_length=1,
        validation_alias=AliasChoices("cited_signal_indices", "supporting_signals"),
    )
    rationale: str = Field(validation_alias=AliasChoices("rationale", "summary"))
    key_metrics: list[KeyMetric] = Field(default_factory=list)

    @field_validator("categories", mode="before")
    @classmethod
    def _coerce_categories(cls, value):
        if isinstance(value, (str, Category)):
            value = [value]
        if not isinstance(value, list):
            return value
        normalized = []
        for item in value:
            if not isinstance(item, (str, Category)):
                raise ValueError(f"category must be a string, got {type(item).__name__}")
            category = normalize_category(item)
            if category not in normalized:
                normalized.append(category)
        return normalized

    @field_validator("trend", mode="before")
    @classmethod
    def _coerce_trend(cls, value):
        if isinstance(value, str):
            return parse_trend(value)
        return value

    @field_validator("cited_signal_indices", mode="before")
    @classmethod
    def _reject_bool_indices(cls, value):
        if isinstance(value, list) and any(isinstance(item, bool) for item in value):
            raise ValueError("signal indices must be integers, not booleans")
        return value

    @field_validator("cited_signal_indices")
    @classmethod
    def _dedupe_indices(cls, value: list[int]) -> list[int]:
        return list(dict.fromkeys(value))


class Narrative(BaseModel):
    """A narrative that passed every grounding check.

    Attributes:
        id: Sequential id within the run, starting at 1. Ideas reference it.
        title: Short name of the trend.
        categories: Sectors the trend spans.
        confidence: Final confidence in [0, 100], after any clamping.
        trend: Direction of the trend.
        cited_signal_indices: Store indices backing the claim. All resolve.
        rationale: Model-written justification.
        accepted: Set to True by the validator only.
        raw_sources: Distinct raw sources reached from the citations,
            following Derived provenance. Always two or more.
        confidence_adjusted_from: The claimed confidence when the validator
            had to clamp it. None when the claim was kept as-is.
        key_metrics: Headline figures quoted by the model.
    """

    id: int = Field(ge=1)
    title: str
    categories: list[Category]
    confidence: float = Field(ge=0.0, le=100.0)
    trend: TrendDirection
    cited_signal_indices: list[int] = Field(min_length=1)
    rationale: str
    accepted: bool = False
    raw_sources: list[SignalSource] = Field(default_factory=list)
    confidence_adjusted_from: float | None = None
    key_metrics: list[KeyMetric] = Field(default_factory=list)
