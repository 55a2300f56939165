"""Offline stub fetchers and a scripted synthesis transport.

Used by the test suite to drive the full runtime without network or LLM
access. Signals carry fixed timestamps so derivations are reproducible.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from config import RunConfig
from core.errors import FetchError
from fetchers.base import Fetcher
from schemas.signal import Category, Signal, SignalSource

FIXED_TIME = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class StaticFetcher(Fetcher):
    """Returns a fixed signal list, optionally after a delay."""

    def __init__(self, name: str, source: SignalSource, signals: list[Signal], delay: float = 0.0):
        super().__init__()
        self.name = name
        self.source = source
        self._signals = signals
        self._delay = delay
        self.calls = 0

    async def fetch(self, config: RunConfig) -> list[Signal]:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        return list(self._signals)


class FailingFetcher(Fetcher):
    """Always raises FetchError."""

    def __init__(self, name: str, source: SignalSource, message: str = "source unavailable"):
        super().__init__()
        self.name = name
        self.source = source
        self._message = message

    async def fetch(self, config: RunConfig) -> list[Signal]:
        raise FetchError(self.name, self._message)


class ScriptedTransport:
    """SynthesisTransport that replays scripted responses in order.

    Each scripted item is either a list of proposal dicts to return or an
    exception instance to raise. Every context received is recorded.
    """

    def __init__(self, narratives: list | None = None, ideas: list | None = None):
        self._narratives = list(narratives or [])
        self._ideas = list(ideas or [])
        self.narrative_contexts: list[str] = []
        self.idea_contexts: list[str] = []

    async def synthesize_narratives(self, context: str) -> list[dict]:
        self.narrative_contexts.append(context)
        return self._next(self._narratives, "narrative")

    async def synthesize_ideas(self, context: str) -> list[dict]:
        self.idea_contexts.append(context)
        return self._next(self._ideas, "idea")

    def _next(self, script: list, stage: str) -> list[dict]:
        if not script:
            raise AssertionError(f"No scripted {stage} response left.")
        item = script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def github_repo_signals(repo: str = "acme/solana-dex", stars: float = 120, forks: float = 12,
                        age_days: int = 10, category: Category = Category.DEFI) -> list[Signal]:
    created_at = (FIXED_TIME - timedelta(days=age_days)).isoformat()
    return [
        Signal(
            source=SignalSource.GITHUB,
            category=category,
            metric_name=metric,
            value=value,
            unit=unit,
            timestamp=FIXED_TIME,
            url=f"https://github.com/{repo}",
            metadata={"repo": repo, "created_at": created_at},
        )
        for metric, value, unit in (("repo_stars", stars, "stars"), ("repo_forks", forks, "forks"))
    ]


def program_tx_signal(program: str, count: float, window_hours: float | None = 4.7,
                      category: Category = Category.DEFI) -> Signal:
    metadata = {"program": program}
    if window_hours is not None:
        metadata["window_hours"] = window_hours
    return Signal(
        source=SignalSource.SOLANA_RPC,
        category=category,
        metric_name=f"{program}_tx",
        value=count,
        unit="txs",
        timestamp=FIXED_TIME,
        metadata=metadata,
    )


def standard_fetchers() -> list[Fetcher]:
    """GitHub and Solana RPC succeed; Blog and DeFiLlama fail.

    Resulting store layout:
        0  repo_stars         GitHub
        1  repo_forks         GitHub
        2  jupiter_tx         SolanaRPC
        3  raydium_tx         SolanaRPC
        4  jupiter_tx_per_hour        Derived (2)
        5  raydium_tx_per_hour        Derived (3)
        6  jupiter_raydium_tx_ratio   Derived (4, 5)
        7-9  defi velocity            Derived (0, 1)
    """
    return [
        StaticFetcher("github", SignalSource.GITHUB, github_repo_signals()),
        StaticFetcher("solana_rpc", SignalSource.SOLANA_RPC, [
            program_tx_signal("jupiter", 1_000_000),
            program_tx_signal("raydium", 117_500),
        ]),
        FailingFetcher("blog", SignalSource.BLOG),
        FailingFetcher("defillama", SignalSource.DEFILLAMA),
    ]


def idea_proposal(title: str, narrative_id: int, description: str = "") -> dict:
    """A schema-complete idea dict as the synthesis transport would return it."""
    return {
        "title": title,
        "description": description or f"{title} description",
        "narrative_id": narrative_id,
        "target_user": "Active Solana traders",
        "mvp_scope": "Single dashboard page backed by public RPC data",
        "competitive_landscape": "Explorers exist but none focus on this view",
        "timing_rationale": "The supporting metric moved sharply this month",
    }
