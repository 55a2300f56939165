"""OpenAI LLM client.

Required environment variable:
    OPENAI_API_KEY: Your OpenAI API key. Add to .env and never commit.
"""

import os

import openai
from dotenv import load_dotenv

from core.errors import TransportError
from llm.base import LLMClient

load_dotenv()


async def chat_complete(
    client: openai.AsyncOpenAI,
    model: str,
    max_tokens: int,
    system: str,
    user: str,
    provider: str,
) -> str:
    """Run one chat completion and return its text.

    Shared by every provider that speaks the OpenAI chat API.

    Raises:
        TransportError: On any SDK error, or when the response has no text.
    """
    try:
        response = await client.chat.completions.create(
            model=model,
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
    except openai.OpenAIError as exc:
        raise TransportError(f"{provider} request failed: {exc}") from exc

    if not response.choices or not response.choices[0].message.content:
        raise TransportError(f"{provider} returned an empty completion.")
    return response.choices[0].message.content


class OpenAIClient(LLMClient):
    """LLMClient implementation backed by the OpenAI API directly."""

    def __init__(self, model: str, max_tokens: int = 8192):
        """Initialize the client for a specific OpenAI model.

        Raises:
            KeyError: If OPENAI_API_KEY is not set in the environment.
        """
        self.model = model
        self.max_tokens = max_tokens
        self.client = openai.AsyncOpenAI(api_key=os.environ["OPENAI_API_KEY"])

    async def complete(self, system: str, user: str) -> str:
        """Send a prompt to the configured OpenAI model."""
        return await chat_complete(self.client, self.model, self.max_tokens, system, user, "openai")
