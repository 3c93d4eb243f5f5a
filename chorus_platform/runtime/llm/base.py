"""
Abstract base class and response type for the LLM abstraction layer.

All backend-specific clients must implement the ``LLMClient`` interface.
``LLMResponse`` gives a uniform structure regardless of backend.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional


@dataclass
class LLMResponse:
    """Response from a plain text LLM call."""

    text: str
    truncated: bool = False
    model_name: str | None = None
    response_id: str | None = None


class LLMClient(ABC):
    """Backend-agnostic async LLM client.

    Every concrete implementation (Anthropic, OpenAI, …) must provide
    two capabilities:

    1. **create_message** send messages, get text back.
    2. **stream_message** async generator that yields text chunks as they
       arrive, followed by one final ``LLMResponse``.
    """

    @abstractmethod
    async def create_message(
        self,
        model: str,
        max_tokens: int,
        messages: list[dict],
        system: Optional[str] = None,
    ) -> LLMResponse:
        """Send a list of messages and return the assistant's text reply.

        Args:
            model:      Backend-specific model identifier (e.g. ``"claude-sonnet-4-5-20250929"``).
            max_tokens: Maximum tokens to generate.
            messages:   Conversation turns, ``[{"role": "user"|"assistant", "content": "..."}]``.
            system:     Optional system prompt (separate from the messages list).
        """

    @abstractmethod
    async def stream_message(
        self,
        model: str,
        max_tokens: int,
        messages: list[dict],
        system: Optional[str] = None,
    ) -> AsyncIterator[str | LLMResponse]:
        """Stream assistant text token-by-token.

        This is an async generator that yields:
            - ``str`` a text chunk as it arrives from the API.
            - ``LLMResponse`` a single final item with the full text and
              truncation flag, emitted after all text chunks.
        """
        # Never reached; marks this abstract method as an async generator.
        yield  # type: ignore[misc]
