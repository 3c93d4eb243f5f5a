"""
OpenAI implementation of the LLM client interface.

Wraps the ``openai.AsyncOpenAI`` SDK behind ``LLMClient`` using the chat
completions API. The system prompt travels as a leading ``system`` message,
and the output token limit is sent as ``max_completion_tokens`` because the
reasoning models (``o3``) reject ``max_tokens``.
"""

import logging
from typing import AsyncIterator, Optional

from openai import AsyncOpenAI

from .base import LLMClient, LLMResponse

logger = logging.getLogger(__name__)


def _request_kwargs(model: str, max_tokens: int, messages: list[dict], system: Optional[str]) -> dict:
    chat = [{"role": "system", "content": system}] if system else []
    chat.extend(messages)
    return {"model": model, "max_completion_tokens": max_tokens, "messages": chat}


class OpenAIClient(LLMClient):
    """LLMClient backed by the OpenAI chat completions API."""

    def __init__(self, api_key: str):
        self._client = AsyncOpenAI(api_key=api_key)

    async def create_message(
        self,
        model: str,
        max_tokens: int,
        messages: list[dict],
        system: Optional[str] = None,
    ) -> LLMResponse:
        response = await self._client.chat.completions.create(
            **_request_kwargs(model, max_tokens, messages, system)
        )
        choice = response.choices[0]
        return LLMResponse(
            text=choice.message.content or "",
            truncated=choice.finish_reason == "length",
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
        stream = await self._client.chat.completions.create(
            **_request_kwargs(model, max_tokens, messages, system),
            stream=True,
        )

        parts: list[str] = []
        finish_reason = None
        model_name = None
        response_id = None
        async for chunk in stream:
            # Every chunk repeats the completion id and model.
            model_name = model_name or getattr(chunk, "model", None)
            response_id = response_id or getattr(chunk, "id", None)
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            if choice.delta and choice.delta.content:
                parts.append(choice.delta.content)
                yield choice.delta.content
            finish_reason = choice.finish_reason or finish_reason

        if finish_reason == "length":
            logger.debug("OpenAI stream for %s stopped at the token limit", model)
        yield LLMResponse(
            text="".join(parts),
            truncated=finish_reason == "length",
            model_name=model_name or model,
            response_id=response_id,
        )
