"""Signal schema.

Signals are the normalized facts every later phase reasons over. Fetchers
produce raw signals, the metric deriver produces Derived signals from them,
and the signal store stamps each one with the integer index that narratives
later cite as evidence. Once stored, a signal is never modified.
"""

import copy
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


class SignalSource(str, Enum):
    """Where a signal came from.

    Extends str so values serialize to plain strings ("GitHub") rather than
    "SignalSource.GITHUB" in JSON output and log lines.

    Values:
        GITHUB: Repository search results.
        SOLANA_RPC: Onchain data from a Solana JSON-RPC endpoint.
        BLOG: Article titles scraped from ecosystem blogs.
        DEFILLAMA: Protocol TVL data from DeFiLlama.
        DERIVED: Computed by the metric deriver from other signals.
    """

    GITHUB = "GitHub"
    SOLANA_RPC = "SolanaRPC"
    BLOG = "Blog"
    DEFILLAMA = "DeFiLlama"
    DERIVED = "Derived"


class Category(str, Enum):
    """Ecosystem sector a signal is attributed to."""

    DEFI = "DeFi"
    DEPIN = "DePIN"
    AI = "AI"
    NFT = "NFT"
    PAYFI = "PayFi"
    INFRASTRUCTURE = "Infrastructure"
    PRIVACY = "Privacy"
    OTHER = "Other"


Derivation = Literal["rate", "ratio", "velocity"]


class Signal(BaseModel):
    """A single observed or derived data point.

    Signals are frozen. The store assigns ``index`` by copying the signal at
    insertion time, so the object a fetcher built is never the one that gets
    cited.

    Attributes:
        index: Citation handle assigned by SignalStore.insert(). None until
            the signal has been stored.
        source: Which collaborator produced the signal.
        category: Sector the signal belongs to.
        metric_name: Short identifier (e.g. "jupiter_tx_per_hour").
        value: Numeric measurement or free text.
        unit: Unit of a numeric value (e.g. "tx/hr", "USD"). Optional.
        timestamp: Collection time in UTC.
        url: Link back to where the value was observed. Optional.
        metadata: Free-form extra context. Never consulted by validation.
            Held as a read-only copy of whatever mapping was passed in.
        provenance: Indices this signal was computed from. Derived only.
        derivation: Kind of derivation ("rate", "ratio", "velocity").
            Derived only.
    """

    model_config = ConfigDict(frozen=True)

    index: int | None = None
    source: SignalSource
    category: Category
    metric_name: str = Field(min_length=1)
    value: float | str
    unit: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    url: str | None = None
    metadata: Mapping[str, Any] = Field(default_factory=dict, validate_default=True)
    provenance: tuple[int, ...] = ()
    derivation: Derivation | None = None

    @field_validator("metadata", mode="after")
    @classmethod
    def _read_only_metadata(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(copy.deepcopy(dict(value)))

    @field_serializer("metadata")
    def _serialize_metadata(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    @model_validator(mode="after")
    def _check_derivation_fields(self) -> "Signal":
        if self.source == SignalSource.DERIVED:
            if not self.provenance:
                raise ValueError("Derived signals must record a non-empty provenance.")
            if self.derivation is None:
                raise ValueError("Derived signals must name their derivation.")
        elif self.provenance or self.derivation is not None:
            raise ValueError(
                f"Raw {self.source.value} signals cannot carry provenance or a derivation."
            )
        return self

    @property
    def is_derived(self) -> bool:
        return self.source == SignalSource.DERIVED

    def numeric_value(self) -> float | None:
        """Return the value as a float, or None for text signals."""
        if isinstance(self.value, bool):
            return None
        if isinstance(self.value, (int, float)):
            return float(self.value)
        return None
