"""OpenRouter LLM client.

OpenRouter is a unified proxy that provides access to models from Anthropic,
Google, OpenAI and others through a single OpenAI-compatible API and one
API key. Switching models is just changing the model string.

Required environment variable:
    OPENROUTER_API_KEY: Your OpenRouter API key. Add to .env and never commit.
"""

import os

import openai
from dotenv import load_dotenv

from llm.base import LLMClient
from llm.openai_client import chat_complete

load_dotenv()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterClient(LLMClient):
    """LLMClient implementation backed by OpenRouter.

    Uses the openai SDK pointed at the OpenRouter base URL, which makes it
    compatible with any model OpenRouter proxies.

    Example usage:
        llm = OpenRouterClient("anthropic/claude-sonnet-4.5")
        synthesizer = LLMSynthesizer(llm)

    Attributes:
        model: The OpenRouter model identifier string.
        max_tokens: Completion budget per call.
        client: The underlying async OpenAI client configured for OpenRouter.
    """

    def __init__(self, model: str, max_tokens: int = 8192):
        """Initialize the client for a specific model.

        Args:
            model: OpenRouter model ID string. No default; always be explicit
                about which model a run is using.
            max_tokens: Completion budget per call.

        Raises:
            KeyError: If OPENROUTER_API_KEY is not set in the environment
                or .env file. Fails immediately at construction rather than
                at the first API call.
        """
        self.model = model
        self.max_tokens = max_tokens
        self.client = openai.AsyncOpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=os.environ["OPENROUTER_API_KEY"],
        )

    async def complete(self, system: str, user: str) -> str:
        """Send a prompt to the configured model via OpenRouter.

        Raises:
            TransportError: If the OpenRouter API call fails.
        """
        return await chat_complete(self.client, self.model, self.max_tokens, system, user, "openrouter")
