"""LLMClient abstract base class.

The one seam between the synthesis layer and a model provider. LLMSynthesizer
holds an LLMClient and nothing more specific; create_llm_client() decides
which concrete provider backs it for a given run.
"""

from abc import ABC, abstractmethod


class LLMClient(ABC):
    """A text-in, text-out chat model.

    Implementations wrap one provider SDK. Whatever that SDK raises must
    surface as core.errors.TransportError, so the runtime retries provider
    outages and malformed output under one policy.
    """

    @abstractmethod
    async def complete(self, system: str, user: str) -> str:
        """Run one completion.

        Args:
            system: Stage prompt: analyst role plus the JSON shape to return.
            user: Grounding context (indexed signals or accepted narratives).

        Returns:
            The completion text, never an SDK response object.

        Raises:
            TransportError: If the provider call fails or returns no text.
        """
        ...
