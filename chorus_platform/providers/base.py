"""
Shared provider adapter behaviour.

``ProviderAdapter`` implements the uniform adapter contract once (envelopes,
dispatch between fresh prompts and continuations, text normalization, error
classification, abort handling); concrete adapters only supply
``_exchange`` (one round trip with the external service) and optionally
``_setup`` / ``_check_health``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from core.domain import (
    ProviderCapabilities,
    ProviderEnvelope,
    PromptRequest,
    find_cursor,
    normalize_provider_context,
)
from core.error_classifier import classify
from core.ports import StreamChunkCallback
from core.signals import AbortSignal, run_abortable

logger = logging.getLogger(__name__)


@dataclass
class ExchangeResult:
    """Raw outcome of one round trip, before normalization into an envelope."""

    payload: Any
    cursor: Any = None
    token: Any = None
    model_name: str | None = None
    model: str | None = None


DeltaCallback = Callable[[str], None]


def payload_field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def normalize_text(payload: Any) -> str:
    """Extract output text from a provider payload.

    Precedence: explicit ``text`` field, then the first candidate's
    ``content``, then the payload itself when it is a string, then a JSON
    rendering of whatever came back.
    """
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload

    text = payload_field(payload, "text")
    if isinstance(text, str):
        return text

    candidates = payload_field(payload, "candidates")
    if isinstance(candidates, (list, tuple)) and candidates:
        content = payload_field(candidates[0], "content")
        if content is not None:
            return normalize_text(content)

    try:
        return json.dumps(payload, default=str)
    except (TypeError, ValueError):
        return str(payload)


class ProviderAdapter(ABC):
    """Base class for provider adapters.

    Subclasses set ``provider_id``, ``kind`` (used by the error classifier,
    e.g. ``"gemini-session"``) and ``capabilities``.
    """

    provider_id: str = ""
    kind: str = ""
    capabilities: ProviderCapabilities = ProviderCapabilities()

    def __init__(self, *, default_model: str | None = None):
        self.default_model = default_model
        self._initialized = False

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    async def _setup(self) -> None:
        """One-time setup run by ``init``."""

    async def _check_health(self) -> bool:
        return True

    @abstractmethod
    async def _exchange(
        self,
        prompt: str,
        cursor: Any,
        model: str | None,
        emit: DeltaCallback | None,
        signal: AbortSignal | None,
    ) -> ExchangeResult:
        """Perform one round trip. Streaming adapters call *emit* with each text delta."""

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def init(self) -> None:
        if self._initialized:
            return
        await self._setup()
        self._initialized = True

    async def health_check(self) -> bool:
        try:
            return bool(await self._check_health())
        except Exception as e:
            logger.debug("Health check for %s failed: %s", self.provider_id, e)
            return False

    async def send_prompt(
        self,
        request: PromptRequest,
        on_chunk: StreamChunkCallback | None = None,
        signal: AbortSignal | None = None,
    ) -> ProviderEnvelope:
        """Start a new provider-side conversation."""
        model = (request.meta or {}).get("model") or self.default_model
        return await self._run(request.original_prompt, None, model, on_chunk, signal)

    async def send_continuation(
        self,
        prompt: str,
        provider_context: Optional[dict[str, Any]],
        session_id: str | None = None,
        on_chunk: StreamChunkCallback | None = None,
        signal: AbortSignal | None = None,
    ) -> ProviderEnvelope:
        """Continue the conversation addressed by the context's cursor.

        Without a cursor this is exactly ``send_prompt`` with the same prompt.
        """
        cursor = find_cursor(provider_context)
        model = self._context_model(provider_context)
        if not cursor:
            request = PromptRequest(
                original_prompt=prompt,
                session_id=session_id,
                meta={"model": model} if model else {},
            )
            return await self.send_prompt(request, on_chunk, signal)

        model = model or self.default_model
        return await self._run(
            prompt, cursor, model, on_chunk, signal,
            failure_meta={"cursor": cursor, "model": model},
        )

    async def ask(
        self,
        prompt: str,
        provider_context: Optional[dict[str, Any]] = None,
        session_id: str | None = None,
        on_chunk: StreamChunkCallback | None = None,
        signal: AbortSignal | None = None,
    ) -> ProviderEnvelope:
        """Single entry point: continue when a cursor is present, else start fresh."""
        cursor = find_cursor(provider_context)
        logger.debug("ASK_STARTED provider=%s has_cursor=%s", self.provider_id, bool(cursor))
        try:
            if cursor:
                envelope = await self.send_continuation(
                    prompt, provider_context, session_id, on_chunk, signal
                )
            else:
                model = self._context_model(provider_context)
                request = PromptRequest(
                    original_prompt=prompt,
                    session_id=session_id,
                    meta={"model": model} if model else {},
                )
                envelope = await self.send_prompt(request, on_chunk, signal)
        except Exception as e:
            logger.warning("ASK_FAILED provider=%s: %s", self.provider_id, e)
            raise

        logger.debug(
            "ASK_COMPLETED provider=%s ok=%s chars=%d",
            self.provider_id, envelope.ok, len(envelope.text or ""),
        )
        return envelope

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _context_model(provider_context: Optional[dict[str, Any]]) -> str | None:
        flat = normalize_provider_context(provider_context)
        return flat.get("model") if flat else None

    async def _run(
        self,
        prompt: str,
        cursor: Any,
        model: str | None,
        on_chunk: StreamChunkCallback | None,
        signal: AbortSignal | None,
        *,
        failure_meta: dict[str, Any] | None = None,
    ) -> ProviderEnvelope:
        started = time.perf_counter()

        def _latency() -> int:
            return int((time.perf_counter() - started) * 1000)

        emit: DeltaCallback | None = None
        if on_chunk is not None and self.capabilities.supports_streaming:
            def emit(delta: str) -> None:
                on_chunk(ProviderEnvelope(
                    provider_id=self.provider_id,
                    ok=True,
                    text=delta,
                    partial=True,
                    latency_ms=_latency(),
                ))

        try:
            await self.init()
            result = await run_abortable(self._exchange(prompt, cursor, model, emit, signal), signal)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return self._failure(e, _latency(), failure_meta)

        text = normalize_text(result.payload)
        meta = {
            "cursor": result.cursor,
            "token": result.token,
            "model_name": result.model_name,
            "model": result.model or model,
        }
        if on_chunk is not None and not self.capabilities.supports_streaming:
            on_chunk(ProviderEnvelope(
                provider_id=self.provider_id,
                ok=True,
                text=text,
                partial=True,
                latency_ms=_latency(),
                meta=dict(meta),
            ))
        return ProviderEnvelope(
            provider_id=self.provider_id,
            ok=True,
            text=text,
            partial=False,
            latency_ms=_latency(),
            meta=meta,
        )

    def _failure(
        self,
        error: Exception,
        latency_ms: int,
        extra_meta: dict[str, Any] | None = None,
    ) -> ProviderEnvelope:
        classification = classify(self.kind or self.provider_id, error)
        log = logger.info if classification.suppressed else logger.warning
        log("Provider %s failed (%s): %s", self.provider_id, classification.type, error)

        meta: dict[str, Any] = {
            "error": str(error),
            "details": getattr(error, "details", None),
            "suppressed": classification.suppressed,
        }
        if extra_meta:
            meta.update(extra_meta)
        return ProviderEnvelope(
            provider_id=self.provider_id,
            ok=False,
            text=None,
            latency_ms=latency_ms,
            meta=meta,
            error_code=classification.type,
        )
