"""DeFiLlama fetcher: Solana protocol TVL.

One call to ``/protocols``. Protocols deployed on Solana with Solana TVL at
or above the configured floor become ``<slug>_tvl`` signals, largest first,
capped at ``max_protocols``.
"""

import logging
from datetime import datetime, timezone

from config import RunConfig
from core.errors import FetchError
from fetchers.base import Fetcher
from schemas.signal import Signal, SignalSource
from utils.categories import normalize_category

logger = logging.getLogger(__name__)


class DeFiLlamaFetcher(Fetcher):
    """Collects Solana TVL per protocol."""

    name = "defillama"
    source = SignalSource.DEFILLAMA

    async def fetch(self, config: RunConfig) -> list[Signal]:
        """Return TVL signals for the largest Solana protocols.

        Raises:
            FetchError: If the protocol list cannot be read.
        """
        settings = config.defillama
        collected_at = datetime.now(timezone.utc)

        async with self._session() as client:
            protocols = await self._get_json(client, f"{settings.api_url}/protocols")

        if not isinstance(protocols, list):
            raise FetchError(self.name, "/protocols did not return a list")

        candidates = []
        for protocol in protocols:
            if not isinstance(protocol, dict) or "Solana" not in (protocol.get("chains") or []):
                continue
            tvl = (protocol.get("chainTvls") or {}).get("Solana", protocol.get("tvl"))
            if isinstance(tvl, (int, float)) and tvl >= settings.min_tvl_usd:
                candidates.append((float(tvl), protocol))

        candidates.sort(key=lambda pair: pair[0], reverse=True)
        signals = [
            self._tvl_signal(tvl, protocol, collected_at)
            for tvl, protocol in candidates[: settings.max_protocols]
        ]

        logger.info("DeFiLlama: %d Solana protocols above $%.0f TVL.", len(signals), settings.min_tvl_usd)
        return signals

    def _tvl_signal(self, tvl: float, protocol: dict, collected_at: datetime) -> Signal:
        slug = protocol.get("slug") or protocol.get("name", "unknown").lower().replace(" ", "-")
        return Signal(
            source=self.source,
            category=normalize_category(protocol.get("category") or ""),
            metric_name=f"{slug.replace('-', '_')}_tvl",
            value=tvl,
            unit="USD",
            timestamp=collected_at,
            url=f"https://defillama.com/protocol/{slug}",
            metadata={
                "protocol": protocol.get("name"),
                "defillama_category": protocol.get("category"),
                "change_1d": protocol.get("change_1d"),
                "change_7d": protocol.get("change_7d"),
            },
        )
