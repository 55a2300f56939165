"""Parallel fetch executor.

FetchExecutor runs every registered fetcher concurrently and collects what
each one returned. It handles timeouts and fault isolation so the runtime
does not have to.

The key guarantee: one source failing never causes other sources to be
skipped. Each fetcher runs in its own task with its own timeout and its own
exception boundary, and the phase ends only when every task has finished or
timed out.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from config import RunConfig
from fetchers.base import Fetcher
from schemas.events import EventType, FetchEvent
from schemas.result import SourceStatus
from schemas.signal import Signal

logger = logging.getLogger(__name__)


@dataclass
class FetchOutcome:
    """What one fetcher produced. Internal to a single run.

    Attributes:
        status: Recorded outcome for the run result.
        signals: Raw signals returned. Empty unless status.ok.
    """

    status: SourceStatus
    signals: list[Signal] = field(default_factory=list)


class FetchExecutor:
    """Runs a list of fetchers concurrently and returns one outcome each.

    Uses asyncio.TaskGroup to schedule all fetchers at once. Timeouts come
    from the run configuration: a per-source override when one is set,
    otherwise the default fetch timeout.

    The executor also owns timing. It measures wall-clock time for each
    fetcher and writes it into the SourceStatus.
    """

    async def execute(
        self,
        fetchers: list[Fetcher],
        config: RunConfig,
        event_queue: asyncio.Queue | None = None,
    ) -> list[FetchOutcome]:
        """Run all fetchers concurrently and return their outcomes.

        Args:
            fetchers: Fetchers in registration order.
            config: The run configuration, passed to every fetcher.
            event_queue: Optional asyncio.Queue to emit FetchEvents into.
                If None, events are silently skipped; the runtime is
                unaffected by whether anything is listening.

        Returns:
            One FetchOutcome per fetcher, in the same order as fetchers,
            regardless of completion order. Failed and timed-out sources
            are included with ok=False and no signals.
        """
        if not fetchers:
            return []

        exec_start = time.perf_counter()

        async with asyncio.TaskGroup() as tg:
            tasks = [
                tg.create_task(
                    self._run_fetcher_safely(fetcher, config, event_queue, exec_start),
                    name=fetcher.name,
                )
                for fetcher in fetchers
            ]

        return [t.result() for t in tasks]

    async def _run_fetcher_safely(
        self,
        fetcher: Fetcher,
        config: RunConfig,
        event_queue: asyncio.Queue | None,
        exec_start: float,
    ) -> FetchOutcome:
        """Run a single fetcher with timeout and exception handling.

        This method never raises. All failures are caught, logged, and
        returned as an outcome with ok=False, which keeps a single failing
        source from propagating into the TaskGroup and cancelling the others.

        Args:
            fetcher: The fetcher to run.
            config: The run configuration.
            event_queue: Queue to emit events into. None means no events.
            exec_start: perf_counter() value from when execute() was called.
                Used to compute relative timestamps for events.

        Returns:
            The fetcher's outcome with elapsed_ms filled in.
        """
        timeout = config.timeout_for(fetcher.name)
        fetcher_start = time.perf_counter()

        async def emit(event_type: EventType, message: str) -> None:
            if event_queue is not None:
                ts_ms = (time.perf_counter() - exec_start) * 1000
                await event_queue.put(FetchEvent(
                    source=fetcher.name,
                    event_type=event_type,
                    message=message,
                    timestamp_ms=ts_ms,
                ))

        def failed(message: str) -> FetchOutcome:
            elapsed_ms = (time.perf_counter() - fetcher_start) * 1000
            return FetchOutcome(status=SourceStatus(
                source=fetcher.name,
                ok=False,
                elapsed_ms=elapsed_ms,
                error=message,
            ))

        await emit(EventType.STARTED, "fetching...")

        try:
            signals = await asyncio.wait_for(fetcher.fetch(config), timeout=timeout)

        except asyncio.TimeoutError:
            outcome = failed(f"timed out after {timeout:.1f}s")
            await emit(EventType.TIMEOUT, outcome.status.error)
            logger.error(
                "Fetcher '%s' timed out after %.1fs (limit: %.1fs). Contributing no signals.",
                fetcher.name,
                outcome.status.elapsed_ms / 1000,
                timeout,
            )
            return outcome

        except Exception as exc:
            outcome = failed(str(exc) or type(exc).__name__)
            await emit(EventType.ERROR, outcome.status.error)
            logger.error(
                "Fetcher '%s' raised after %.0fms. Contributing no signals. Error: %s",
                fetcher.name,
                outcome.status.elapsed_ms,
                exc,
            )
            return outcome

        elapsed_ms = (time.perf_counter() - fetcher_start) * 1000
        noun = "signal" if len(signals) == 1 else "signals"
        await emit(EventType.COMPLETE, f"{len(signals)} {noun} collected")
        logger.info("Fetcher '%s' returned %d %s in %.0fms.", fetcher.name, len(signals), noun, elapsed_ms)

        return FetchOutcome(
            status=SourceStatus(
                source=fetcher.name,
                ok=True,
                signal_count=len(signals),
                elapsed_ms=elapsed_ms,
            ),
            signals=list(signals),
        )
