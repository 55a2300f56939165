"""Solana RPC fetcher: network throughput and per-program activity.

Signals emitted:
    avg_tps, avg_non_vote_tps   from getRecentPerformanceSamples
    epoch_progress              from getEpochInfo
    circulating_pct             from getSupply
    <program>_tx                per tracked program, from paginated
                                getSignaturesForAddress, with the block-time
                                span of the page walk as metadata.window_hours

Each call is independent: a failing call or program is logged and skipped.
The fetcher raises only when nothing at all could be read.
"""

import logging
from datetime import datetime, timezone
from functools import partial

import httpx

from config import RunConfig, TrackedProgram
from core.errors import FetchError
from fetchers.base import Fetcher
from schemas.signal import Category, Signal, SignalSource

logger = logging.getLogger(__name__)

EXPLORER_URL = "https://explorer.solana.com"


class SolanaRPCFetcher(Fetcher):
    """Collects onchain signals over JSON-RPC."""

    name = "solana_rpc"
    source = SignalSource.SOLANA_RPC

    async def fetch(self, config: RunConfig) -> list[Signal]:
        """Query the RPC endpoint and return onchain signals.

        Raises:
            FetchError: If every RPC call failed.
        """
        settings = config.solana
        collected_at = datetime.now(timezone.utc)
        signals: list[Signal] = []
        failures = 0

        async with self._session() as client:
            steps = [
                ("performance samples", partial(self._performance, client, settings.rpc_url, settings.sample_count, collected_at)),
                ("epoch info", partial(self._epoch, client, settings.rpc_url, collected_at)),
                ("supply", partial(self._supply, client, settings.rpc_url, collected_at)),
            ]
            steps.extend(
                (f"program {program.name}", partial(self._program_activity, client, config, program, collected_at))
                for program in settings.tracked_programs
            )

            for label, step in steps:
                try:
                    signals.extend(await step())
                except FetchError as exc:
                    failures += 1
                    logger.warning("Solana RPC %s failed: %s", label, exc)

        if failures == len(steps):
            raise FetchError(self.name, f"all {failures} RPC calls failed")

        logger.info("Solana RPC: %d signals (%d calls failed).", len(signals), failures)
        return signals

    # ── Private ───────────────────────────────────────────────────────────────

    async def _rpc(self, client: httpx.AsyncClient, rpc_url: str, method: str, params: list):
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        data = await self._post_json(client, rpc_url, payload)
        if not isinstance(data, dict):
            raise FetchError(self.name, f"{method} returned a non-object response")
        if data.get("error"):
            message = data["error"].get("message", data["error"]) if isinstance(data["error"], dict) else data["error"]
            raise FetchError(self.name, f"{method} error: {message}")
        if "result" not in data:
            raise FetchError(self.name, f"{method} response missing result")
        return data["result"]

    def _records(self, method: str, result) -> list[dict]:
        if result is None:
            return []
        if not isinstance(result, list) or not all(isinstance(item, dict) for item in result):
            raise FetchError(self.name, f"{method} returned an unexpected result shape")
        return result

    def _record(self, method: str, result) -> dict:
        if not isinstance(result, dict):
            raise FetchError(self.name, f"{method} returned an unexpected result shape")
        return result

    async def _performance(self, client, rpc_url: str, count: int, collected_at: datetime) -> list[Signal]:
        method = "getRecentPerformanceSamples"
        samples = self._records(method, await self._rpc(client, rpc_url, method, [count]))
        usable = [s for s in samples if s.get("samplePeriodSecs")]
        if not usable:
            raise FetchError(self.name, "no performance samples returned")

        try:
            avg_tps = sum(s.get("numTransactions", 0) / s["samplePeriodSecs"] for s in usable) / len(usable)
            avg_non_vote = sum(
                s.get("numNonVoteTransactions", 0) / s["samplePeriodSecs"] for s in usable
            ) / len(usable)
        except TypeError as exc:
            raise FetchError(self.name, f"{method} returned non-numeric sample fields") from exc
        meta = {"samples": len(usable)}

        return [
            self._signal("avg_tps", avg_tps, "tx/s", Category.INFRASTRUCTURE, collected_at, EXPLORER_URL, meta),
            self._signal("avg_non_vote_tps", avg_non_vote, "tx/s", Category.INFRASTRUCTURE, collected_at, EXPLORER_URL, meta),
        ]

    async def _epoch(self, client, rpc_url: str, collected_at: datetime) -> list[Signal]:
        epoch = self._record("getEpochInfo", await self._rpc(client, rpc_url, "getEpochInfo", []))
        slots = epoch.get("slotsInEpoch") or 0
        slot_index = epoch.get("slotIndex", 0)
        if not isinstance(slots, (int, float)) or not isinstance(slot_index, (int, float)):
            raise FetchError(self.name, "getEpochInfo returned non-numeric slot fields")
        if not slots:
            raise FetchError(self.name, "getEpochInfo returned no slotsInEpoch")
        progress = slot_index / slots * 100
        return [self._signal(
            "epoch_progress", progress, "%", Category.INFRASTRUCTURE, collected_at, EXPLORER_URL,
            {"epoch": epoch.get("epoch"), "absolute_slot": epoch.get("absoluteSlot")},
        )]

    async def _supply(self, client, rpc_url: str, collected_at: datetime) -> list[Signal]:
        supply = self._record("getSupply", await self._rpc(client, rpc_url, "getSupply", []))
        value = self._record("getSupply", supply.get("value", supply))
        total = value.get("total") or 0
        circulating = value.get("circulating", 0)
        if not isinstance(total, (int, float)) or not isinstance(circulating, (int, float)):
            raise FetchError(self.name, "getSupply returned non-numeric amounts")
        if not total:
            raise FetchError(self.name, "getSupply returned no total")
        circulating_pct = circulating / total * 100
        return [self._signal(
            "circulating_pct", circulating_pct, "%", Category.INFRASTRUCTURE, collected_at, EXPLORER_URL,
            {"total_lamports": total},
        )]

    async def _program_activity(
        self,
        client,
        config: RunConfig,
        program: TrackedProgram,
        collected_at: datetime,
    ) -> list[Signal]:
        """Page through recent signatures for one program and count them."""
        settings = config.solana
        count = 0
        block_times: list[int] = []
        before: str | None = None

        for _ in range(settings.max_pages):
            options: dict = {"limit": settings.page_limit}
            if before:
                options["before"] = before
            page = self._records(
                "getSignaturesForAddress",
                await self._rpc(client, settings.rpc_url, "getSignaturesForAddress", [program.address, options]),
            )
            if not page:
                break

            count += len(page)
            block_times.extend(s["blockTime"] for s in page if s.get("blockTime"))
            before = page[-1].get("signature")
            if len(page) < settings.page_limit or not before:
                break

        window_hours = (max(block_times) - min(block_times)) / 3600 if len(block_times) >= 2 else 0.0
        return [self._signal(
            f"{program.name}_tx",
            float(count),
            "txs",
            program.category,
            collected_at,
            f"{EXPLORER_URL}/address/{program.address}",
            {"program": program.name, "address": program.address, "window_hours": window_hours},
        )]

    def _signal(self, metric, value, unit, category, collected_at, url, metadata) -> Signal:
        return Signal(
            source=self.source,
            category=category,
            metric_name=metric,
            value=float(value),
            unit=unit,
            timestamp=collected_at,
            url=url,
            metadata=metadata,
        )
