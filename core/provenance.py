"""Provenance traversal.

Derived signals point back at the indices they were computed from, and may
themselves be cited by other Derived signals (a ratio of two rates). Both
the aggregator and the narrative validator need the set of raw sources a
group of indices ultimately rests on.
"""

from typing import Callable, Iterable

from schemas.signal import Signal, SignalSource

Lookup = Callable[[int], Signal | None]


def raw_sources(indices: Iterable[int], lookup: Lookup) -> set[SignalSource]:
    """Return the distinct raw sources reached from indices.

    Walks provenance iteratively with a visited set, so shared inputs are
    expanded once and a malformed cycle cannot loop forever. Indices that
    do not resolve are skipped; citation existence is checked separately.

    Args:
        indices: Starting indices, raw or Derived.
        lookup: Resolves an index to a signal, or None (e.g. SignalStore.get).

    Returns:
        Set of raw SignalSource values. Never contains SignalSource.DERIVED.
    """
    sources: set[SignalSource] = set()
    visited: set[int] = set()
    pending = list(indices)

    while pending:
        index = pending.pop()
        if index in visited:
            continue
        visited.add(index)

        signal = lookup(index)
        if signal is None:
            continue
        if signal.is_derived:
            pending.extend(signal.provenance)
        else:
            sources.add(signal.source)

    return sources


def sorted_sources(sources: Iterable[SignalSource]) -> list[SignalSource]:
    """Sort sources by enum declaration order for stable output."""
    order = list(SignalSource)
    return sorted(set(sources), key=order.index)
