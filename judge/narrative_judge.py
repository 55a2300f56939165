"""Narrative validator.

The NarrativeValidator decides which LLM narrative proposals become
accepted narratives. All checks are deterministic. Same proposals and same
store always produce the same verdicts. No LLM is involved, ever.

Checks, in order, stopping at the first failure:
    1. Schema         every proposal in the batch parses, else the whole
                      batch raises MalformedProposal (the runtime retries)
    2. Citations      every cited index exists, else DanglingCitation
    3. Diversity      citations reach >= 2 raw sources, else
                      InsufficientCorroboration
    4. Confidence     clamped into [0, 100]; above 90 only with >= 3 raw
                      sources or a cited ratio metric, else clamped to 90

Steps 2-4 are per proposal. A rejected proposal is recorded and excluded;
it never blocks the others.
"""

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from core.errors import MalformedProposal
from core.provenance import raw_sources, sorted_sources
from core.store import SignalStore
from schemas.narrative import Narrative, NarrativeProposal
from schemas.result import Rejection, RejectionReason
from schemas.signal import SignalSource

logger = logging.getLogger(__name__)

MIN_RAW_SOURCES = 2
HIGH_CONFIDENCE_THRESHOLD = 90.0
HIGH_CONFIDENCE_MIN_SOURCES = 3
CONFIDENCE_MIN = 0.0
CONFIDENCE_MAX = 100.0


@dataclass
class NarrativeVerdict:
    """The verdict for a single narrative proposal.

    Internal to one run: flows from judge_narrative() to the validator and
    is never serialized.

    Attributes:
        accepted: True if every grounding check passed.
        proposal: The proposal that was judged.
        raw_sources: Raw sources reached from the citations. Empty when the
            proposal was rejected for a dangling citation.
        confidence: Final confidence after clamping.
        adjusted_from: Claimed confidence when it was clamped, else None.
        rejection: Why the proposal was rejected. None when accepted.
        note: Human-readable description of any confidence adjustment.
    """

    accepted: bool
    proposal: NarrativeProposal
    raw_sources: list[SignalSource] = field(default_factory=list)
    confidence: float = 0.0
    adjusted_from: float | None = None
    rejection: Rejection | None = None
    note: str | None = None


@dataclass
class NarrativeValidation:
    """Everything the validator produced for one batch."""

    narratives: list[Narrative] = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


def parse_narrative_proposals(raw: list[dict], response: str = "") -> list[NarrativeProposal]:
    """Schema-check a batch of raw narrative dicts.

    Every violation in the batch is collected before raising, so the log
    shows the full picture of what the model got wrong.

    Args:
        raw: Proposal dicts as parsed from the model output.
        response: Raw model text, attached to the error for debugging.

    Returns:
        One NarrativeProposal per input dict, same order.

    Raises:
        MalformedProposal: If any proposal fails schema validation.
    """
    proposals: list[NarrativeProposal] = []
    errors: list[str] = []

    for position, item in enumerate(raw):
        if not isinstance(item, dict):
            errors.append(f"proposal {position}: expected an object, got {type(item).__name__}")
            continue
        try:
            proposals.append(NarrativeProposal.model_validate(item))
        except ValidationError as exc:
            for err in exc.errors():
                location = ".".join(str(part) for part in err["loc"]) or "<root>"
                errors.append(f"proposal {position}: {location}: {err['msg']}")

    if errors:
        raise MalformedProposal(
            f"{len(errors)} schema violation(s) in narrative proposals.",
            raw=response,
            errors=errors,
        )
    return proposals


def judge_narrative(proposal: NarrativeProposal, store: SignalStore) -> NarrativeVerdict:
    """Run the grounding checks on one schema-valid proposal.

    Pure with respect to the store: reads only, never writes.

    Args:
        proposal: A proposal that already passed the schema check.
        store: The frozen signal store of the run.

    Returns:
        A NarrativeVerdict, accepted or carrying its Rejection.
    """

    # Check 2: every cited index must resolve.
    # One unknown index rejects the whole narrative, never a subset of it.
    missing = [i for i in proposal.cited_signal_indices if store.get(i) is None]
    if missing:
        return _reject(
            proposal,
            RejectionReason.DANGLING_CITATION,
            f"cites unknown signal index(es) {missing}; store holds {len(store)} signals.",
        )

    # Check 3: at least two independent raw sources.
    # Derived signals are followed back to what they were computed from, so
    # a ratio of two RPC rates still counts only as SolanaRPC.
    sources = sorted_sources(raw_sources(proposal.cited_signal_indices, store.get))
    if len(sources) < MIN_RAW_SOURCES:
        found = ", ".join(s.value for s in sources) or "none"
        return _reject(
            proposal,
            RejectionReason.INSUFFICIENT_CORROBORATION,
            f"citations reach {len(sources)} raw source(s) ({found}); need {MIN_RAW_SOURCES}.",
        )

    # Check 4: confidence sanity. Soft: clamp and note, never reject.
    claimed = proposal.confidence
    confidence = min(CONFIDENCE_MAX, max(CONFIDENCE_MIN, claimed))
    note = None
    if confidence != claimed:
        note = f"'{proposal.title}': confidence {claimed:g} outside [0, 100], clamped to {confidence:g}."

    if confidence > HIGH_CONFIDENCE_THRESHOLD:
        cites_ratio = any(
            store.get(i).derivation == "ratio" for i in proposal.cited_signal_indices
        )
        if len(sources) < HIGH_CONFIDENCE_MIN_SOURCES and not cites_ratio:
            note = (
                f"'{proposal.title}': confidence {claimed:g} needs {HIGH_CONFIDENCE_MIN_SOURCES} "
                f"raw sources or a cited ratio metric; clamped to {HIGH_CONFIDENCE_THRESHOLD:g}."
            )
            confidence = HIGH_CONFIDENCE_THRESHOLD

    return NarrativeVerdict(
        accepted=True,
        proposal=proposal,
        raw_sources=sources,
        confidence=confidence,
        adjusted_from=claimed if confidence != claimed else None,
        note=note,
    )


class NarrativeValidator:
    """Turns a batch of raw narrative proposals into accepted narratives.

    Accepted narratives are numbered 1, 2, 3... in proposal order. Ids are
    assigned only to accepted proposals, so ideas can reference them
    without gaps.
    """

    def validate(self, raw: list[dict], store: SignalStore, response: str = "") -> NarrativeValidation:
        """Validate a batch of proposals against the store.

        Args:
            raw: Proposal dicts from the synthesis transport.
            store: The frozen signal store of the run.
            response: Raw model text, attached to MalformedProposal.

        Returns:
            Accepted narratives, rejections and confidence notes.

        Raises:
            MalformedProposal: If any proposal fails the schema check.
        """
        proposals = parse_narrative_proposals(raw, response)
        outcome = NarrativeValidation()

        for proposal in proposals:
            verdict = judge_narrative(proposal, store)

            if not verdict.accepted:
                logger.warning(
                    "Narrative '%s' rejected (%s): %s",
                    proposal.title,
                    verdict.rejection.reason.value,
                    verdict.rejection.detail,
                )
                outcome.rejections.append(verdict.rejection)
                continue

            if verdict.note:
                logger.info("Confidence adjusted. %s", verdict.note)
                outcome.notes.append(verdict.note)

            outcome.narratives.append(Narrative(
                id=len(outcome.narratives) + 1,
                title=proposal.title,
                categories=proposal.categories,
                confidence=verdict.confidence,
                trend=proposal.trend,
                cited_signal_indices=proposal.cited_signal_indices,
                rationale=proposal.rationale,
                accepted=True,
                raw_sources=verdict.raw_sources,
                confidence_adjusted_from=verdict.adjusted_from,
                key_metrics=proposal.key_metrics,
            ))

        logger.info(
            "%d/%d narrative proposals accepted.",
            len(outcome.narratives),
            len(proposals),
        )
        return outcome


def _reject(proposal: NarrativeProposal, reason: RejectionReason, detail: str) -> NarrativeVerdict:
    return NarrativeVerdict(
        accepted=False,
        proposal=proposal,
        confidence=proposal.confidence,
        rejection=Rejection(stage="narrative", title=proposal.title, reason=reason, detail=detail),
    )
