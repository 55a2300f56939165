"""Narrative runtime: the top-level pipeline orchestrator.

NarrativeRuntime is the single entry point for the whole system. Callers
register fetchers once, then call execute() as many times as needed. Each
call is fully independent: fresh store, fresh aggregates, fresh results.

Pipeline order inside execute():
    1. Fetch all sources in parallel via FetchExecutor
    2. Insert results into a fresh SignalStore in registration order
    3. Derive second-order metrics via MetricDeriver, then freeze the store
    4. Aggregate by category via CategoryAggregator
    5. Narrative synthesis (retried) and NarrativeValidator
    6. Idea synthesis (retried) and IdeaValidator
    7. Return RunResult

Cancellation is cooperative: the optional cancel event is checked at every
phase boundary. In-flight fetches are bounded by their own timeouts.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, TypeVar

from aggregation.aggregator import CategoryAggregator
from config import RunConfig
from core.errors import MalformedProposal, RunCancelled, SynthesisFailed, TransportError
from core.executor import FetchExecutor
from core.registry import FetcherRegistry
from core.store import SignalStore
from derivation.deriver import MetricDeriver
from fetchers.base import Fetcher
from judge.idea_judge import IdeaValidation, IdeaValidator
from judge.narrative_judge import NarrativeValidation, NarrativeValidator
from schemas.aggregate import CategoryAggregate
from schemas.result import RunResult, SourceStatus
from synthesis.context import build_idea_context, build_narrative_context
from synthesis.transport import SynthesisTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Collection:
    """Output of the collect phases (fetch, derive, aggregate). No LLM.

    Attributes:
        store: The frozen signal store.
        aggregates: Category aggregates in ranking order.
        source_status: One entry per fetcher, registration order.
        notes: Diagnostics produced so far.
    """

    store: SignalStore
    aggregates: list[CategoryAggregate]
    source_status: list[SourceStatus]
    notes: list[str] = field(default_factory=list)


class NarrativeRuntime:
    """Orchestrates the full pipeline for one run.

    Holds a registry of fetchers and a fixed set of pipeline components.
    These are created once at construction time and reused across all
    execute() calls. Each call creates its own SignalStore, so runs are
    fully isolated.

    Attributes:
        config: Immutable run configuration.
        _registry: Fetchers in storage order.
        _executor: Runs fetchers concurrently via asyncio.TaskGroup.
        _deriver: Computes Derived signals.
        _aggregator: Groups and scores categories.
        _narrative_validator: Grounds narrative proposals.
        _idea_validator: Grounds idea proposals.
        _transport: Synthesis transport. Required by execute() only.
    """

    def __init__(self, config: RunConfig, transport: SynthesisTransport | None = None) -> None:
        self.config = config
        self._registry = FetcherRegistry()
        self._executor = FetchExecutor()
        self._deriver = MetricDeriver(
            ratio_pairs=config.ratio_pairs,
            velocity_window_days=config.velocity_window_days,
        )
        self._aggregator = CategoryAggregator()
        self._narrative_validator = NarrativeValidator()
        self._idea_validator = IdeaValidator()
        self._transport = transport

    def set_transport(self, transport: SynthesisTransport) -> None:
        """Inject the synthesis transport."""
        self._transport = transport

    def register(self, fetcher: Fetcher) -> None:
        """Register a fetcher to run in every collect() and execute() call.

        Raises:
            ValueError: If a fetcher with the same name is already registered.
        """
        self._registry.register(fetcher)
        logger.debug("Registered fetcher '%s'. Total fetchers: %d.", fetcher.name, len(self._registry))

    @property
    def source_names(self) -> list[str]:
        return self._registry.names()

    async def collect(
        self,
        event_queue: asyncio.Queue | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Collection:
        """Run fetch, derivation and aggregation without any LLM call.

        Args:
            event_queue: Optional queue for live fetch events.
            cancel_event: Optional event; when set, the run stops at the
                next phase boundary.

        Returns:
            The frozen store, aggregates and per-source status.

        Raises:
            RunCancelled: If cancel_event was set at a phase boundary.
        """
        self._check_cancelled(cancel_event, "fetch")

        # Step 1: parallel fetch.
        # Every fetcher gets an outcome, failed ones included.
        fetchers = self._registry.get_all()
        outcomes = await self._executor.execute(fetchers, self.config, event_queue)
        ok_count = sum(1 for o in outcomes if o.status.ok)
        logger.info("%d/%d sources returned signals.", ok_count, len(outcomes))

        self._check_cancelled(cancel_event, "derive")

        # Step 2: store in registration order, not completion order.
        store = SignalStore()
        for outcome in outcomes:
            store.extend(outcome.signals)
        raw_count = len(store)

        # Step 3: derive, then freeze. Nothing is inserted after this point.
        self._deriver.derive(store)
        store.freeze()
        logger.info(
            "Signal store frozen with %d signals (%d raw, %d derived).",
            len(store),
            raw_count,
            len(store) - raw_count,
        )

        self._check_cancelled(cancel_event, "aggregate")

        # Step 4: aggregate.
        aggregates = list(self._aggregator.aggregate(store.all()).values())
        logger.info("Aggregation complete. %d categories.", len(aggregates))

        notes = [
            f"Source '{o.status.source}' unavailable: {o.status.error}"
            for o in outcomes
            if not o.status.ok
        ]
        return Collection(
            store=store,
            aggregates=aggregates,
            source_status=[o.status for o in outcomes],
            notes=notes,
        )

    async def execute(
        self,
        event_queue: asyncio.Queue | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RunResult:
        """Run the full pipeline and return grounded narratives and ideas.

        Args:
            event_queue: Optional queue for live fetch events.
            cancel_event: Optional event checked at each phase boundary.

        Returns:
            A RunResult. Narratives and ideas may be empty; the notes and
            rejections explain why.

        Raises:
            ValueError: If no synthesis transport has been set.
            SynthesisFailed: If a synthesis stage exhausted its retries.
            RunCancelled: If cancel_event was set at a phase boundary.
        """
        if self._transport is None:
            raise ValueError("No synthesis transport configured. Call set_transport() first.")

        started_at = datetime.now(timezone.utc)
        logger.info("Starting run with %d registered fetchers.", len(self._registry))

        collection = await self.collect(event_queue, cancel_event)
        store = collection.store
        result = RunResult(
            started_at=started_at,
            signals=store.all(),
            aggregates=collection.aggregates,
            source_status=collection.source_status,
            notes=list(collection.notes),
        )

        # Nothing to ground a narrative on; do not ask the model to invent one.
        if len(store) == 0:
            result.notes.append("No signals collected from any source; synthesis skipped.")
            logger.warning("No signals collected. Skipping synthesis.")
            return self._finish(result)

        self._check_cancelled(cancel_event, "narrative synthesis")

        # Step 5: narrative synthesis and grounding.
        # The context string is built once, so every retry sends it unchanged.
        narrative_context = build_narrative_context(collection.aggregates, store.all())

        async def propose_narratives() -> NarrativeValidation:
            raw = await self._transport.synthesize_narratives(narrative_context)
            return self._narrative_validator.validate(raw, store)

        narratives = await self._with_retries("narrative", propose_narratives)
        result.narratives = narratives.narratives
        result.rejections.extend(narratives.rejections)
        result.notes.extend(narratives.notes)

        if not narratives.narratives:
            result.notes.append("No narrative passed validation; idea synthesis skipped.")
            logger.warning("No accepted narratives. Skipping idea synthesis.")
            return self._finish(result)

        self._check_cancelled(cancel_event, "idea synthesis")

        # Step 6: idea synthesis against accepted narratives only.
        idea_context = build_idea_context(narratives.narratives)

        async def propose_ideas() -> IdeaValidation:
            raw = await self._transport.synthesize_ideas(idea_context)
            return self._idea_validator.validate(raw, narratives.narratives)

        ideas = await self._with_retries("idea", propose_ideas)
        result.ideas = ideas.ideas
        result.rejections.extend(ideas.rejections)

        return self._finish(result)

    # ── Private helpers ───────────────────────────────────────────────────────

    async def _with_retries(self, stage: str, attempt: Callable[[], Awaitable[T]]) -> T:
        """Call attempt until it succeeds or retries are exhausted.

        Only MalformedProposal and TransportError are retried. Anything else
        propagates immediately.

        Raises:
            SynthesisFailed: After 1 + synthesis_retries failed attempts.
        """
        attempts = self.config.synthesis_retries + 1
        last_error: Exception | None = None

        for number in range(1, attempts + 1):
            try:
                return await attempt()
            except (MalformedProposal, TransportError) as exc:
                last_error = exc
                details = f" {exc.errors}" if isinstance(exc, MalformedProposal) and exc.errors else ""
                logger.warning(
                    "%s synthesis attempt %d/%d failed: %s%s",
                    stage.capitalize(),
                    number,
                    attempts,
                    exc,
                    details,
                )

        logger.error("%s synthesis failed after %d attempts.", stage.capitalize(), attempts)
        raise SynthesisFailed(stage, attempts, last_error) from last_error

    def _check_cancelled(self, cancel_event: asyncio.Event | None, phase: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Run cancelled before %s.", phase)
            raise RunCancelled(phase)

    def _finish(self, result: RunResult) -> RunResult:
        result.finished_at = datetime.now(timezone.utc)
        logger.info(
            "Run %s finished: %d narratives, %d ideas, %d rejections.",
            result.run_id,
            len(result.narratives),
            len(result.ideas),
            len(result.rejections),
        )
        return result
