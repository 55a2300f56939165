"""Grounding context builders.

The narrative context is the only view of the data the model gets: every
signal appears under its store index, grouped by category in aggregate
order, so any index the model cites can be checked against the store.
Output is deterministic JSON; retries re-send the exact same string.
"""

import json

from schemas.aggregate import CategoryAggregate
from schemas.narrative import Narrative
from schemas.signal import Signal

_MAX_METADATA_CHARS = 400


def build_narrative_context(aggregates: list[CategoryAggregate], signals: list[Signal]) -> str:
    """Serialize aggregates and their signals for narrative synthesis.

    Args:
        aggregates: Category aggregates in ranking order.
        signals: Every stored signal, indexed.

    Returns:
        Pretty-printed JSON with one entry per category.
    """
    by_index = {s.index: s for s in signals}
    categories = []
    for aggregate in aggregates:
        categories.append({
            "category": aggregate.category.value,
            "source_diversity": aggregate.source_diversity,
            "raw_sources": [s.value for s in aggregate.raw_sources],
            "corroboration_score": aggregate.corroboration_score,
            "signal_count": aggregate.signal_count,
            "metric_totals": aggregate.metric_totals,
            "signals": [_signal_entry(by_index[i]) for i in aggregate.signal_indices if i in by_index],
        })

    return json.dumps(
        {"total_signals": len(signals), "categories": categories},
        indent=2,
        sort_keys=False,
        default=str,
    )


def build_idea_context(narratives: list[Narrative]) -> str:
    """Serialize accepted narratives for idea synthesis."""
    payload = [
        {
            "narrative_id": n.id,
            "title": n.title,
            "categories": [c.value for c in n.categories],
            "confidence": n.confidence,
            "trend": n.trend.value,
            "rationale": n.rationale,
            "raw_sources": [s.value for s in n.raw_sources],
            "key_metrics": [m.model_dump() for m in n.key_metrics],
        }
        for n in narratives
    ]
    return json.dumps({"narratives": payload}, indent=2, default=str)


def _signal_entry(signal: Signal) -> dict:
    entry = {
        "index": signal.index,
        "source": signal.source.value,
        "metric": signal.metric_name,
        "value": round(signal.value, 4) if isinstance(signal.value, float) else signal.value,
        "unit": signal.unit,
    }
    if signal.url:
        entry["url"] = signal.url
    if signal.derivation:
        entry["derivation"] = signal.derivation
        entry["provenance"] = list(signal.provenance)
    if signal.metadata:
        metadata = json.dumps(dict(signal.metadata), default=str, sort_keys=True)
        entry["metadata"] = metadata[:_MAX_METADATA_CHARS]
    return entry
