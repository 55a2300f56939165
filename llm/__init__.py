"""LLM provider clients."""

from llm.anthropic_client import AnthropicClient
from llm.base import LLMClient
from llm.factory import create_llm_client
from llm.openai_client import OpenAIClient
from llm.openrouter import OpenRouterClient

__all__ = ["LLMClient", "OpenRouterClient", "OpenAIClient", "AnthropicClient", "create_llm_client"]
