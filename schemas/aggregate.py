"""Category aggregate schema."""

from pydantic import BaseModel, Field

from schemas.signal import Category, SignalSource


class CategoryAggregate(BaseModel):
    """Per-category view of the signal set.

    Attributes:
        category: The sector this aggregate covers.
        signal_indices: Store indices of every signal in the category,
            ascending.
        source_diversity: Number of distinct raw sources behind the
            category. Derived signals contribute the sources in their
            provenance, never "Derived" itself.
        raw_sources: The sources counted by source_diversity, sorted.
        signal_count: Number of signals in the category, Derived included.
        corroboration_score: Cross-source support in [0, 1].
        metric_totals: Sum of numeric values per metric name.
    """

    category: Category
    signal_indices: list[int]
    source_diversity: int = Field(ge=0)
    raw_sources: list[SignalSource] = Field(default_factory=list)
    signal_count: int = Field(ge=0)
    corroboration_score: float = Field(ge=0.0, le=1.0)
    metric_totals: dict[str, float] = Field(default_factory=dict)
