"""LLM-backed synthesis transport.

Sends the grounding context to an LLMClient with a stage-specific system
prompt and recovers the proposal list from the reply. It never validates
proposal content; that belongs to the validators.
"""

import logging
import pathlib

from llm.base import LLMClient
from utils.parse import extract_json_list

logger = logging.getLogger(__name__)

_PROMPT_DIR = pathlib.Path(__file__).parent.parent / "prompts"
_NARRATIVE_PROMPT_FILE = _PROMPT_DIR / "narrative_synthesis.txt"
_IDEA_PROMPT_FILE = _PROMPT_DIR / "idea_synthesis.txt"


class LLMSynthesizer:
    """SynthesisTransport implementation over any LLMClient.

    Attributes:
        llm: The provider client used for both stages.
    """

    def __init__(self, llm: LLMClient) -> None:
        self.llm = llm
        self._narrative_prompt = _NARRATIVE_PROMPT_FILE.read_text(encoding="utf-8")
        self._idea_prompt = _IDEA_PROMPT_FILE.read_text(encoding="utf-8")

    async def synthesize_narratives(self, context: str) -> list[dict]:
        """Ask the model for narrative proposals over the signal context."""
        user = (
            "Analyze these aggregated, indexed signals from the Solana ecosystem "
            f"and identify emerging narratives:\n\n{context}"
        )
        response = await self.llm.complete(system=self._narrative_prompt, user=user)
        proposals = extract_json_list(response, "narratives")
        logger.info("Model proposed %d narratives.", len(proposals))
        return proposals

    async def synthesize_ideas(self, context: str) -> list[dict]:
        """Ask the model for build ideas over the accepted narratives."""
        user = f"Generate build ideas for these Solana ecosystem narratives:\n\n{context}"
        response = await self.llm.complete(system=self._idea_prompt, user=user)
        proposals = extract_json_list(response, "ideas")
        logger.info("Model proposed %d ideas.", len(proposals))
        return proposals
