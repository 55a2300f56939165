"""Metric deriver: runs every derivation against the store.

This is the only class the runtime calls for derivation. It:
1. Converts every Solana RPC transaction count into a per-hour rate
2. Divides configured program pairs of those rates into ratios
3. Computes star/fork velocity per category from GitHub repo signals
4. Inserts each result into the store as it is produced

Order matters: ratios read rates that must already be stored, so each phase
inserts before the next one runs. A derivation that lacks data is skipped
and logged; it never stops the others.
"""

import logging
from typing import Callable

from core.errors import InsufficientData
from core.store import SignalStore
from derivation.rate import derive_rate, is_tx_count, program_of
from derivation.ratio import derive_ratio
from derivation.velocity import derive_velocity, is_repo_signal
from schemas.signal import Category, Signal

logger = logging.getLogger(__name__)

DEFAULT_RATIO_PAIRS: list[tuple[str, str]] = [("jupiter", "raydium")]
DEFAULT_VELOCITY_WINDOW_DAYS = 30


class MetricDeriver:
    """Computes second-order metrics and writes them back into the store.

    Attributes:
        ratio_pairs: (numerator, denominator) program slugs to compare.
        velocity_window_days: Look-back window for repo velocity.
    """

    def __init__(
        self,
        ratio_pairs: list[tuple[str, str]] | None = None,
        velocity_window_days: int = DEFAULT_VELOCITY_WINDOW_DAYS,
    ) -> None:
        self.ratio_pairs = list(ratio_pairs) if ratio_pairs is not None else list(DEFAULT_RATIO_PAIRS)
        self.velocity_window_days = velocity_window_days

    def derive(self, store: SignalStore) -> list[Signal]:
        """Run all derivations and return the stored Derived signals.

        Args:
            store: The run's store. Must not be frozen yet.

        Returns:
            Derived signals as stored (indices assigned), in insertion order.
        """
        raw = [s for s in store.all() if not s.is_derived]
        derived: list[Signal] = []

        # Rates first; ratios are computed from them.
        rates: dict[str, Signal] = {}
        for signal in raw:
            if not is_tx_count(signal):
                continue
            rate = self._run(derive_rate, (signal,), signal.metric_name)
            if rate is not None:
                stored = store.get(store.insert(rate))
                rates[program_of(stored)] = stored
                derived.append(stored)

        for numerator, denominator in self.ratio_pairs:
            if numerator not in rates or denominator not in rates:
                logger.debug(
                    "Skipping %s/%s ratio: rate missing for %s.",
                    numerator,
                    denominator,
                    numerator if numerator not in rates else denominator,
                )
                continue
            ratio = self._run(
                derive_ratio,
                (rates[numerator], rates[denominator]),
                f"{numerator}/{denominator} ratio",
            )
            if ratio is not None:
                derived.append(store.get(store.insert(ratio)))

        for category in Category:
            repo_signals = [s for s in raw if s.category == category and is_repo_signal(s)]
            if not repo_signals:
                continue
            velocity = self._run(
                derive_velocity,
                (category, repo_signals, self.velocity_window_days),
                f"{category.value} velocity",
            )
            for signal in velocity or []:
                derived.append(store.get(store.insert(signal)))

        logger.info("MetricDeriver produced %d derived signals.", len(derived))
        return derived

    # ── Private ───────────────────────────────────────────────────────────────

    def _run(self, fn: Callable, args: tuple, label: str):
        """Call one deriver, returning None when it lacks data."""
        try:
            return fn(*args)
        except InsufficientData as exc:
            logger.debug("Derivation %s skipped: %s", label, exc)
            return None
