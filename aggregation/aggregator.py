"""Category aggregator.

The CategoryAggregator groups the frozen signal set by sector and scores
how well each sector is corroborated. It handles two concerns:

1. Diversity: how many independent raw sources stand behind a category.
   Derived signals never count as a source of their own; the raw sources
   in their provenance are folded in instead.

2. Scoring: categories are scored by a single pure formula:
       corroboration_score = min(1.0, 0.25 * diversity + 0.05 * min(count, 10))
   Source diversity dominates; volume only breaks ties between otherwise
   similar categories.

Output is ordered by diversity, then signal count, then category name, so
the most credible sectors appear first in the synthesis context.
"""

from core.provenance import raw_sources, sorted_sources
from schemas.aggregate import CategoryAggregate
from schemas.signal import Category, Signal

DIVERSITY_WEIGHT = 0.25
VOLUME_WEIGHT = 0.05
VOLUME_CAP = 10


def corroboration_score(source_diversity: int, signal_count: int) -> float:
    """Score cross-source support for a category in [0, 1].

    Args:
        source_diversity: Distinct raw sources behind the category.
        signal_count: Signals in the category.

    Returns:
        The score, rounded to four decimals.
    """
    score = DIVERSITY_WEIGHT * source_diversity + VOLUME_WEIGHT * min(signal_count, VOLUME_CAP)
    return round(min(1.0, max(0.0, score)), 4)


class CategoryAggregator:
    """Groups signals by category and computes per-category corroboration.

    Stateless: running aggregate() twice on the same signals produces equal
    output.
    """

    def aggregate(self, signals: list[Signal]) -> dict[Category, CategoryAggregate]:
        """Aggregate indexed signals into one CategoryAggregate per category.

        Steps:
            1. Group signal indices by category
            2. Resolve raw sources per group, following Derived provenance
            3. Sum numeric values per metric name
            4. Score and sort

        Args:
            signals: Stored signals (every one must carry an index). Derived
                provenance is resolved against this same list.

        Returns:
            Dict of Category -> CategoryAggregate in ranking order. Only
            categories with at least one signal appear.
        """
        by_index = {s.index: s for s in signals if s.index is not None}
        groups = self._group_by_category(by_index)

        aggregates = [
            self._build(category, indices, by_index)
            for category, indices in groups.items()
        ]
        aggregates.sort(key=lambda a: (-a.source_diversity, -a.signal_count, a.category.value))

        return {a.category: a for a in aggregates}

    # ── Private helpers ───────────────────────────────────────────────────────

    def _group_by_category(self, by_index: dict[int, Signal]) -> dict[Category, list[int]]:
        groups: dict[Category, list[int]] = {}
        for index in sorted(by_index):
            groups.setdefault(by_index[index].category, []).append(index)
        return groups

    def _build(
        self,
        category: Category,
        indices: list[int],
        by_index: dict[int, Signal],
    ) -> CategoryAggregate:
        sources = raw_sources(indices, by_index.get)
        return CategoryAggregate(
            category=category,
            signal_indices=indices,
            source_diversity=len(sources),
            raw_sources=sorted_sources(sources),
            signal_count=len(indices),
            corroboration_score=corroboration_score(len(sources), len(indices)),
            metric_totals=self._metric_totals(by_index[i] for i in indices),
        )

    def _metric_totals(self, signals) -> dict[str, float]:
        """Sum numeric values per metric name. Text signals are skipped."""
        totals: dict[str, float] = {}
        for signal in signals:
            value = signal.numeric_value()
            if value is None:
                continue
            totals[signal.metric_name] = totals.get(signal.metric_name, 0.0) + value
        return {name: round(total, 4) for name, total in sorted(totals.items())}
