"""Signal store for a single run.

SignalStore is the indexed, append-only collection every phase after the
fetch reads from. It lives for the duration of one NarrativeRuntime run and
is discarded when the run returns. No disk, no network.

Lifecycle within one run:
    1. NarrativeRuntime creates an empty SignalStore
    2. Fetch results are inserted in fetcher registration order
    3. MetricDeriver inserts Derived signals
    4. The runtime freezes the store
    5. CategoryAggregator and the validators read from it

The index returned by insert() is the only citation handle for a signal.
Indices are dense, start at 0 and never change.
"""

import threading

from core.errors import StoreFrozenError
from schemas.signal import Category, Signal


class SignalStore:
    """Append-only, thread-safe store of indexed signals.

    There is no update and no delete. Inserts are serialized by a lock so
    concurrent writers still get distinct, dense indices. After freeze()
    the store is read-only.

    Attributes:
        _signals: Stored signals. Position in the list equals the index.
        _frozen: True once freeze() has been called.
    """

    def __init__(self) -> None:
        """Initialise an empty, writable store."""
        self._signals: list[Signal] = []
        self._frozen = False
        self._lock = threading.Lock()

    def insert(self, signal: Signal) -> int:
        """Store a copy of signal and return the index assigned to it.

        Any index already set on the incoming signal is overwritten.

        Args:
            signal: The signal to store.

        Returns:
            The new signal's index.

        Raises:
            StoreFrozenError: If the store has been frozen.
        """
        with self._lock:
            if self._frozen:
                raise StoreFrozenError(
                    f"Cannot insert '{signal.metric_name}': the signal store is frozen."
                )
            index = len(self._signals)
            self._signals.append(signal.model_copy(update={"index": index}))
            return index

    def extend(self, signals: list[Signal]) -> list[int]:
        """Insert several signals in order and return their indices."""
        return [self.insert(signal) for signal in signals]

    def get(self, index: int) -> Signal | None:
        """Look up a signal by index.

        An unknown index is a normal result here (a model citing a signal
        that does not exist); the caller decides what it means.

        Args:
            index: The citation handle to resolve.

        Returns:
            The stored signal, or None.
        """
        if isinstance(index, bool) or not isinstance(index, int):
            return None
        with self._lock:
            if 0 <= index < len(self._signals):
                return self._signals[index]
        return None

    def all(self) -> list[Signal]:
        """Return every stored signal in index order.

        Returns a copy so callers cannot mutate the internal list.
        """
        with self._lock:
            return list(self._signals)

    def by_category(self, category: Category) -> list[Signal]:
        """Return the signals of one category in index order."""
        return [s for s in self.all() if s.category == category]

    def freeze(self) -> None:
        """Make the store read-only. Idempotent."""
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        with self._lock:
            return len(self._signals)

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.get(index) is not None
