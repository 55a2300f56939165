"""Result schemas.

Defines the per-source fetch outcome (SourceStatus), the diagnostics record
for a dropped proposal (Rejection), and the full pipeline output
(RunResult). RunResult is the only object that crosses the runtime boundary
to the CLI, the HTTP API and the JSON emitter.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from schemas.aggregate import CategoryAggregate
from schemas.idea import Idea
from schemas.narrative import Narrative
from schemas.signal import Signal


class RejectionReason(str, Enum):
    """Why a proposal was dropped. Recorded, never raised out of a run.

    Values:
        DANGLING_CITATION: A narrative cites an index missing from the store.
        INSUFFICIENT_CORROBORATION: A narrative's citations reach fewer than
            two distinct raw sources.
        ORPHAN_IDEA: An idea references a narrative that was not accepted.
    """

    DANGLING_CITATION = "DanglingCitation"
    INSUFFICIENT_CORROBORATION = "InsufficientCorroboration"
    ORPHAN_IDEA = "OrphanIdea"


class Rejection(BaseModel):
    """One dropped narrative or idea proposal."""

    stage: Literal["narrative", "idea"]
    title: str
    reason: RejectionReason
    detail: str


class SourceStatus(BaseModel):
    """What actually happened to one fetcher during the fetch phase.

    Attributes:
        source: Fetcher name (e.g. "github", "solana_rpc").
        ok: True if the fetcher returned before its timeout without raising.
        signal_count: Number of signals it contributed. Zero when not ok.
        elapsed_ms: Wall-clock time measured by the executor.
        error: Failure description when not ok.
    """

    source: str
    ok: bool
    signal_count: int = 0
    elapsed_ms: float = 0.0
    error: str | None = None


class RunResult(BaseModel):
    """Final output of one NarrativeRuntime.execute() call.

    Attributes:
        run_id: Auto-generated UUID for this run.
        started_at: When the run began (UTC).
        finished_at: When the run returned (UTC).
        signals: Every signal in the frozen store, raw and Derived, in
            index order. Included so every citation can be audited.
        aggregates: Category aggregates, most corroborated first.
        narratives: Accepted narratives, ids ascending.
        ideas: Accepted ideas, ids ascending.
        rejections: Every proposal dropped during validation.
        source_status: One entry per registered fetcher, in registration
            order.
        notes: Free-text diagnostics (confidence clamps, skipped phases).
    """

    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    signals: list[Signal] = Field(default_factory=list)
    aggregates: list[CategoryAggregate] = Field(default_factory=list)
    narratives: list[Narrative] = Field(default_factory=list)
    ideas: list[Idea] = Field(default_factory=list)
    rejections: list[Rejection] = Field(default_factory=list)
    source_status: list[SourceStatus] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
