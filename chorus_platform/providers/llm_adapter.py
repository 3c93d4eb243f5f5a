"""
API-backed provider adapter over the Anthropic/OpenAI SDK clients.

The chat APIs are stateless, so continuation is emulated: every successful
exchange stores the full transcript under a fresh cursor, and a later
continuation with that cursor replays it. An unknown cursor (for example
after a restart, or once the transcript was evicted) degrades to a fresh
conversation instead of failing.

Callers that pass no chunk callback (the refiner) get a single
non-streaming ``create_message`` call instead of a stream.
"""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from typing import Any

from core.domain import ProviderCapabilities
from core.errors import MalformedResponseError
from core.signals import AbortSignal

from chorus_platform.runtime.config import TRANSCRIPT_CACHE_SIZE, resolve_model
from chorus_platform.runtime.llm.base import LLMClient, LLMResponse

from .base import DeltaCallback, ExchangeResult, ProviderAdapter

logger = logging.getLogger(__name__)


class LLMProviderAdapter(ProviderAdapter):
    """Streaming adapter backed by an ``LLMClient``.

    At most ``max_transcripts`` transcripts are kept; the least recently
    used one is evicted first.
    """

    capabilities = ProviderCapabilities(
        needs_dnr=False,
        needs_offscreen=False,
        supports_streaming=True,
        supports_continuation=True,
        synthesis=True,
        supports_model_selection=True,
    )

    def __init__(
        self,
        provider_id: str,
        client: LLMClient,
        *,
        backend: str,
        default_model: str,
        system: str | None = None,
        max_transcripts: int = TRANSCRIPT_CACHE_SIZE,
    ):
        super().__init__(default_model=default_model)
        self.provider_id = provider_id
        self.kind = f"{backend}-api"
        self.backend = backend
        self.client = client
        self.system = system
        self.max_transcripts = max(1, max_transcripts)
        self._transcripts: OrderedDict[str, list[dict[str, str]]] = OrderedDict()

    def _model_config(self, model: str | None) -> dict:
        if model:
            try:
                cfg = resolve_model(model)
            except ValueError:
                cfg = None
            if cfg and cfg["provider"] == self.backend:
                return cfg
            logger.debug("Model %r is not a %s model; using %s", model, self.backend, self.default_model)
        return resolve_model(self.default_model)

    def _history(self, cursor: Any) -> list[dict[str, str]]:
        if not cursor:
            return []
        if cursor not in self._transcripts:
            logger.info("Unknown cursor for %s; starting a fresh conversation", self.provider_id)
            return []
        self._transcripts.move_to_end(cursor)
        return list(self._transcripts[cursor])

    def _remember(self, transcript: list[dict[str, str]]) -> str:
        cursor = uuid.uuid4().hex
        self._transcripts[cursor] = transcript
        while len(self._transcripts) > self.max_transcripts:
            evicted, _ = self._transcripts.popitem(last=False)
            logger.debug("Evicted transcript %s for %s", evicted, self.provider_id)
        return cursor

    async def _complete(
        self,
        cfg: dict,
        messages: list[dict[str, str]],
        emit: DeltaCallback | None,
    ) -> LLMResponse:
        request = dict(model=cfg["id"], max_tokens=cfg["max_tokens"], messages=messages, system=self.system)
        if emit is None:
            return await self.client.create_message(**request)

        final: LLMResponse | None = None
        async for item in self.client.stream_message(**request):
            if isinstance(item, LLMResponse):
                final = item
            elif item:
                emit(item)
        if final is None:
            raise MalformedResponseError(f"{self.provider_id} stream ended without a final response")
        return final

    async def _exchange(
        self,
        prompt: str,
        cursor: Any,
        model: str | None,
        emit: DeltaCallback | None,
        signal: AbortSignal | None,
    ) -> ExchangeResult:
        cfg = self._model_config(model)
        messages = self._history(cursor) + [{"role": "user", "content": prompt}]

        final = await self._complete(cfg, messages, emit)
        if not isinstance(final, LLMResponse):
            raise MalformedResponseError(f"{self.provider_id} returned {type(final).__name__}, not a response")
        if final.truncated:
            logger.info("%s response truncated at %d tokens", self.provider_id, cfg["max_tokens"])

        new_cursor = self._remember(messages + [{"role": "assistant", "content": final.text}])
        return ExchangeResult(
            payload=final,
            cursor=new_cursor,
            token=final.response_id,
            model_name=final.model_name or cfg["id"],
            model=model or self.default_model,
        )
