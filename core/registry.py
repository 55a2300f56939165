"""Fetcher registry.

FetcherRegistry is the runtime's roster of sources. Registration order is
significant: after the fetch barrier, results are inserted into the signal
store in this order, which is what makes indices reproducible for identical
fetch results.

Fetcher names are unique; they key timeouts, source status and display
panels.
"""

from fetchers.base import Fetcher


class FetcherRegistry:
    """Tracks registered fetchers in registration order.

    Attributes:
        _fetchers: Internal dict mapping fetcher name to instance. Dicts
            preserve insertion order, which is the storage order.
    """

    def __init__(self) -> None:
        """Initialise an empty registry."""
        self._fetchers: dict[str, Fetcher] = {}

    def register(self, fetcher: Fetcher) -> None:
        """Register a fetcher.

        Raises:
            ValueError: If a fetcher with the same name is already registered.
                This is always a programming error, not a recoverable condition.
        """
        if fetcher.name in self._fetchers:
            raise ValueError(
                f"Fetcher '{fetcher.name}' is already registered. "
                "Each fetcher must have a unique name."
            )
        self._fetchers[fetcher.name] = fetcher

    def get_all(self) -> list[Fetcher]:
        """Return all fetchers in registration order (a copy)."""
        return list(self._fetchers.values())

    def get_by_name(self, name: str) -> Fetcher | None:
        """Look up a fetcher by name. None if not registered."""
        return self._fetchers.get(name)

    def names(self) -> list[str]:
        return list(self._fetchers)

    def __len__(self) -> int:
        return len(self._fetchers)
