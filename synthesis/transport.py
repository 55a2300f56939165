"""Synthesis transport protocol.

The runtime talks to the reasoning step only through this protocol. The
production implementation is LLMSynthesizer; tests pass scripted stubs.
"""

from typing import Protocol


class SynthesisTransport(Protocol):
    """Turns grounding context into untrusted proposal dicts."""

    async def synthesize_narratives(self, context: str) -> list[dict]:
        """Return raw narrative proposals for the given context.

        Raises:
            TransportError: If the provider call fails.
            MalformedProposal: If the response holds no proposal list.
        """
        ...

    async def synthesize_ideas(self, context: str) -> list[dict]:
        """Return raw idea proposals for the given narrative context.

        Raises:
            TransportError: If the provider call fails.
            MalformedProposal: If the response holds no proposal list.
        """
        ...
