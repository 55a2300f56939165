"""Idea validator.

Same contract as the narrative validator, with one grounding rule: an idea
must build on a narrative that was accepted in this run. Ideas pointing at
a rejected or invented narrative are recorded as OrphanIdea and dropped.
"""

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from core.errors import MalformedProposal
from schemas.idea import Idea, IdeaProposal
from schemas.narrative import Narrative
from schemas.result import Rejection, RejectionReason

logger = logging.getLogger(__name__)


@dataclass
class IdeaValidation:
    """Accepted ideas and the rejections recorded along the way."""

    ideas: list[Idea] = field(default_factory=list)
    rejections: list[Rejection] = field(default_factory=list)


def parse_idea_proposals(raw: list[dict], response: str = "") -> list[IdeaProposal]:
    """Schema-check a batch of raw idea dicts.

    Raises:
        MalformedProposal: If any proposal fails schema validation.
    """
    proposals: list[IdeaProposal] = []
    errors: list[str] = []

    for position, item in enumerate(raw):
        if not isinstance(item, dict):
            errors.append(f"idea {position}: expected an object, got {type(item).__name__}")
            continue
        try:
            proposals.append(IdeaProposal.model_validate(item))
        except ValidationError as exc:
            for err in exc.errors():
                location = ".".join(str(part) for part in err["loc"]) or "<root>"
                errors.append(f"idea {position}: {location}: {err['msg']}")

    if errors:
        raise MalformedProposal(
            f"{len(errors)} schema violation(s) in idea proposals.",
            raw=response,
            errors=errors,
        )
    return proposals


def judge_idea(proposal: IdeaProposal, accepted_ids: set[int]) -> Rejection | None:
    """Return a Rejection if the idea is orphaned, else None."""
    if proposal.narrative_id in accepted_ids:
        return None
    return Rejection(
        stage="idea",
        title=proposal.title,
        reason=RejectionReason.ORPHAN_IDEA,
        detail=(
            f"references narrative {proposal.narrative_id}; "
            f"accepted narratives are {sorted(accepted_ids)}."
        ),
    )


class IdeaValidator:
    """Turns a batch of raw idea proposals into accepted ideas."""

    def validate(self, raw: list[dict], narratives: list[Narrative], response: str = "") -> IdeaValidation:
        """Validate idea proposals against the accepted narratives.

        Args:
            raw: Idea dicts from the synthesis transport.
            narratives: Accepted narratives of this run.
            response: Raw model text, attached to MalformedProposal.

        Returns:
            Accepted ideas (ids 1, 2, 3... in proposal order) and rejections.

        Raises:
            MalformedProposal: If any proposal fails the schema check.
        """
        proposals = parse_idea_proposals(raw, response)
        accepted_ids = {n.id for n in narratives if n.accepted}
        outcome = IdeaValidation()

        for proposal in proposals:
            rejection = judge_idea(proposal, accepted_ids)
            if rejection is not None:
                logger.warning("Idea '%s' rejected: %s", proposal.title, rejection.detail)
                outcome.rejections.append(rejection)
                continue

            outcome.ideas.append(Idea(
                id=len(outcome.ideas) + 1,
                **proposal.model_dump(),
            ))

        logger.info("%d/%d idea proposals accepted.", len(outcome.ideas), len(proposals))
        return outcome
