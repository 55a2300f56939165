"""Provider selection from configuration."""

from config import LLMConfig
from core.errors import ConfigError
from llm.anthropic_client import AnthropicClient
from llm.base import LLMClient
from llm.openai_client import OpenAIClient
from llm.openrouter import OpenRouterClient

_PROVIDERS: dict[str, type[LLMClient]] = {
    "anthropic": AnthropicClient,
    "openrouter": OpenRouterClient,
    "openai": OpenAIClient,
}


def create_llm_client(llm_config: LLMConfig) -> LLMClient:
    """Build the LLMClient named by the configuration.

    Raises:
        ConfigError: If the provider is unknown or its API key is not set.
    """
    client_cls = _PROVIDERS.get(llm_config.provider)
    if client_cls is None:
        raise ConfigError(f"Unknown LLM provider '{llm_config.provider}'.")
    try:
        return client_cls(llm_config.model, max_tokens=llm_config.max_tokens)
    except KeyError as exc:
        raise ConfigError(
            f"Missing API key {exc} for provider '{llm_config.provider}'. Add it to .env."
        ) from exc
