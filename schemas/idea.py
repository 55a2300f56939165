"""Build idea schemas."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class IdeaProposal(BaseModel):
    """An untrusted build idea as returned by the LLM.

    ``narrative_index`` is accepted as an alias for ``narrative_id``. Every
    descriptive field is required: an idea missing its MVP scope or timing
    rationale is malformed, not merely terse.
    """

    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    description: str
    narrative_id: int = Field(validation_alias=AliasChoices("narrative_id", "narrative_index"))
    target_user: str
    mvp_scope: str
    competitive_landscape: str
    timing_rationale: str

    @field_validator("narrative_id", mode="before")
    @classmethod
    def _reject_bool(cls, value):
        if isinstance(value, bool):
            raise ValueError("narrative_id must be an integer")
        return value


class Idea(BaseModel):
    """A build idea tied to an accepted narrative of the same run.

    Attributes:
        id: Sequential id within the run, starting at 1.
        narrative_id: Id of the accepted Narrative this idea builds on.
    """

    id: int = Field(ge=1)
    title: str
    description: str
    narrative_id: int
    target_user: str
    mvp_scope: str
    competitive_landscape: str
    timing_rationale: str
