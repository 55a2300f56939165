"""Star and fork velocity per category.

A single repo's star count says little. How many new repos appeared in a
sector over the window, and how quickly they gathered stars and forks,
says whether developers are moving into it.

The reference time is the latest collection timestamp among the inputs,
never the wall clock, so the same signals always produce the same result.
"""

from datetime import datetime, timedelta, timezone

from core.errors import InsufficientData
from schemas.signal import Category, Signal, SignalSource

STARS_METRIC = "repo_stars"
FORKS_METRIC = "repo_forks"


def is_repo_signal(signal: Signal) -> bool:
    """True for raw GitHub star/fork signals."""
    return signal.source == SignalSource.GITHUB and signal.metric_name in (STARS_METRIC, FORKS_METRIC)


def derive_velocity(category: Category, repo_signals: list[Signal], window_days: int) -> list[Signal]:
    """Compute new-repo, star and fork velocity for one category.

    Only repos whose ``metadata.created_at`` falls inside the window ending
    at the reference time are counted. Signals without a parseable
    created_at or repo name are ignored.

    Args:
        category: Category the output signals are attributed to.
        repo_signals: Stored GitHub ``repo_stars``/``repo_forks`` signals of
            that category.
        window_days: Window length in days. Must be positive.

    Returns:
        Three unindexed Derived signals: ``<cat>_new_repos_per_week``,
        ``<cat>_stars_per_week`` and ``<cat>_forks_per_week``. Each carries
        the indices of every in-window signal as provenance.

    Raises:
        InsufficientData: If the window is not positive or no repo was
            created inside it.
    """
    if window_days <= 0:
        raise InsufficientData(f"Velocity window must be positive, got {window_days}.")

    usable = [
        (s, created)
        for s in repo_signals
        if is_repo_signal(s) and s.index is not None
        and s.metadata.get("repo")
        and (created := _parse_created_at(s.metadata.get("created_at"))) is not None
    ]
    if not usable:
        raise InsufficientData(f"No dated GitHub repo signals for {category.value}.")

    reference = max(_as_utc(s.timestamp) for s, _ in usable)
    window_start = reference - timedelta(days=window_days)
    in_window = [(s, created) for s, created in usable if window_start <= created <= reference]
    if not in_window:
        raise InsufficientData(
            f"No {category.value} repos created in the last {window_days} days."
        )

    weeks = window_days / 7
    repos = {s.metadata["repo"] for s, _ in in_window}
    stars = sum(s.numeric_value() or 0.0 for s, _ in in_window if s.metric_name == STARS_METRIC)
    forks = sum(s.numeric_value() or 0.0 for s, _ in in_window if s.metric_name == FORKS_METRIC)
    provenance = tuple(sorted(s.index for s, _ in in_window))

    prefix = category.value.lower()
    metadata = {"window_days": window_days, "repo_count": len(repos)}

    def make(metric: str, value: float, unit: str) -> Signal:
        return Signal(
            source=SignalSource.DERIVED,
            category=category,
            metric_name=f"{prefix}_{metric}",
            value=value / weeks,
            unit=unit,
            timestamp=reference,
            metadata=dict(metadata),
            provenance=provenance,
            derivation="velocity",
        )

    return [
        make("new_repos_per_week", len(repos), "repos/wk"),
        make("stars_per_week", stars, "stars/wk"),
        make("forks_per_week", forks, "forks/wk"),
    ]


def _parse_created_at(value) -> datetime | None:
    if isinstance(value, datetime):
        return _as_utc(value)
    if not isinstance(value, str):
        return None
    try:
        return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
