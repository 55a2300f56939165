"""Ratio between two programs' transaction rates.

A ratio like jupiter/raydium says something neither rate says alone: how
activity is shifting between two protocols. Only ever computed from two
stored rate signals, never from raw counts, so both sides share a unit.
"""

from core.errors import InsufficientData
from derivation.rate import RATE_UNIT, program_of
from schemas.signal import Category, Signal, SignalSource


def derive_ratio(numerator: Signal, denominator: Signal) -> Signal:
    """Divide one stored rate by another.

    The category is the shared category of both programs, or Other when
    they differ.

    Args:
        numerator: Stored ``<a>_tx_per_hour`` Derived signal.
        denominator: Stored ``<b>_tx_per_hour`` Derived signal.

    Returns:
        An unindexed Derived signal ``<a>_<b>_tx_ratio`` with both rate
        indices as provenance.

    Raises:
        InsufficientData: If either side is unstored, is not a rate, or the
            denominator is zero.
    """
    for side in (numerator, denominator):
        if side.index is None:
            raise InsufficientData(f"{side.metric_name} has not been stored yet.")
        if side.derivation != "rate" or side.unit != RATE_UNIT:
            raise InsufficientData(f"{side.metric_name} is not a transaction rate.")

    a = numerator.numeric_value()
    b = denominator.numeric_value()
    if a is None or b is None:
        raise InsufficientData("Ratio inputs must be numeric.")
    if b == 0:
        raise InsufficientData(
            f"{denominator.metric_name} is zero; {program_of(numerator)} ratio is undefined."
        )

    name_a = program_of(numerator)
    name_b = program_of(denominator)
    category = numerator.category if numerator.category == denominator.category else Category.OTHER

    return Signal(
        source=SignalSource.DERIVED,
        category=category,
        metric_name=f"{name_a}_{name_b}_tx_ratio",
        value=a / b,
        unit="x",
        timestamp=max(numerator.timestamp, denominator.timestamp),
        metadata={"numerator": name_a, "denominator": name_b},
        provenance=(numerator.index, denominator.index),
        derivation="ratio",
    )
