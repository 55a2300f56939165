"""Rate normalization: raw transaction counts to transactions per hour.

The Solana RPC fetcher reports how many signatures it paged through for a
program (``<program>_tx``) and the block-time span they covered
(``metadata.window_hours``). Counts from different programs are only
comparable once both are expressed per hour.

No LLM involved. Same input always produces the same output.
"""

from core.errors import InsufficientData
from schemas.signal import Signal, SignalSource

TX_COUNT_SUFFIX = "_tx"
RATE_SUFFIX = "_tx_per_hour"
RATE_UNIT = "tx/hr"


def is_tx_count(signal: Signal) -> bool:
    """True for raw Solana RPC transaction-count signals."""
    return (
        signal.source == SignalSource.SOLANA_RPC
        and signal.metric_name.endswith(TX_COUNT_SUFFIX)
        and len(signal.metric_name) > len(TX_COUNT_SUFFIX)
    )


def program_of(signal: Signal) -> str:
    """Return the program slug of a ``<program>_tx`` or rate signal."""
    name = signal.metric_name
    for suffix in (RATE_SUFFIX, TX_COUNT_SUFFIX):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


def derive_rate(count_signal: Signal) -> Signal:
    """Convert one stored transaction count into a per-hour rate.

    Args:
        count_signal: A stored ``<program>_tx`` signal with a numeric value
            and ``metadata.window_hours``.

    Returns:
        An unindexed Derived signal ``<program>_tx_per_hour`` whose
        provenance is the count signal's index.

    Raises:
        InsufficientData: If the signal is not stored, the count is not
            numeric, or the window is missing, non-numeric or not positive.
    """
    if count_signal.index is None:
        raise InsufficientData(f"{count_signal.metric_name} has not been stored yet.")

    count = count_signal.numeric_value()
    if count is None:
        raise InsufficientData(f"{count_signal.metric_name} has a non-numeric value.")

    window = count_signal.metadata.get("window_hours")
    if isinstance(window, bool) or not isinstance(window, (int, float)):
        raise InsufficientData(f"{count_signal.metric_name} has no numeric window_hours.")
    if window <= 0:
        raise InsufficientData(
            f"{count_signal.metric_name} window_hours is {window}; refusing to divide."
        )

    program = program_of(count_signal)
    return Signal(
        source=SignalSource.DERIVED,
        category=count_signal.category,
        metric_name=f"{program}{RATE_SUFFIX}",
        value=count / window,
        unit=RATE_UNIT,
        timestamp=count_signal.timestamp,
        url=count_signal.url,
        metadata={"program": program, "tx_count": count, "window_hours": float(window)},
        provenance=(count_signal.index,),
        derivation="rate",
    )
