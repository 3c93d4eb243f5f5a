"""
Anthropic (Claude) implementation of the LLM client interface.

Wraps the ``anthropic.AsyncAnthropic`` SDK, translating between the
backend-agnostic ``LLMClient`` interface and Anthropic's messages API.
"""

import logging
from typing import AsyncIterator, Optional

from anthropic import AsyncAnthropic

from .base import LLMClient, LLMResponse

logger = logging.getLogger(__name__)


def _text_of(message) -> str:
    return "".join(
        getattr(block, "text", "") for block in (message.content or []) if getattr(block, "type", "text") == "text"
    )


class AnthropicClient(LLMClient):
    """LLMClient backed by the Anthropic messages API."""

    def __init__(self, api_key: str):
        self._client = AsyncAnthropic(api_key=api_key)

    async def create_message(
        self,
        model: str,
        max_tokens: int,
        messages: list[dict],
        system: Optional[str] = None,
    ) -> LLMResponse:
        kwargs: dict = dict(
            model=model,
            max_tokens=max_tokens,
            messages=messages,
        )
        if system is not None:
            kwargs["system"] = system

        response = await self._client.messages.create(**kwargs)

        return LLMResponse(
            text=_text_of(response),
            truncated=getattr(response, "stop_reason", None) == "max_tokens",
            model_name=getattr(response, "model", None) or model,
            response_id=getattr(response, "id", None),
        )

    async def stream_message(
        self,
        model: str,
        max_tokens: int,
        messages: list[dict],
        system: Optional[str] = None,
    ) -> AsyncIterator[str | LLMResponse]:
        kwargs: dict = dict(
            model=model,
            max_tokens=max_tokens,
            messages=messages,
        )
        if system is not None:
            kwargs["system"] = system

        async with self._client.messages.stream(**kwargs) as stream:
            async for text in stream.text_stream:
                yield text
            final_message = await stream.get_final_message()

        yield LLMResponse(
            text=_text_of(final_message),
            truncated=getattr(final_message, "stop_reason", None) == "max_tokens",
            model_name=getattr(final_message, "model", None) or model,
            response_id=getattr(final_message, "id", None),
        )
