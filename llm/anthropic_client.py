"""Anthropic LLM client.

Required environment variable:
    ANTHROPIC_API_KEY: Your Anthropic API key. Add to .env and never commit.
"""

import os

import anthropic
from dotenv import load_dotenv

from core.errors import TransportError
from llm.base import LLMClient

load_dotenv()


class AnthropicClient(LLMClient):
    """LLMClient implementation backed by the Anthropic Messages API.

    Attributes:
        model: Anthropic model id (e.g. "claude-sonnet-4-5").
        max_tokens: Completion budget per call. Required by the API.
        client: The underlying async Anthropic client.
    """

    def __init__(self, model: str, max_tokens: int = 8192):
        """Initialize the client for a specific Anthropic model.

        Raises:
            KeyError: If ANTHROPIC_API_KEY is not set in the environment.
        """
        self.model = model
        self.max_tokens = max_tokens
        self.client = anthropic.AsyncAnthropic(api_key=os.environ["ANTHROPIC_API_KEY"])

    async def complete(self, system: str, user: str) -> str:
        """Send a prompt to the configured model and join the text blocks.

        Raises:
            TransportError: If the API call fails or returns no text.
        """
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except anthropic.AnthropicError as exc:
            raise TransportError(f"anthropic request failed: {exc}") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise TransportError("anthropic returned an empty completion.")
        return text
