"""
Session-backed provider adapter.

Wraps a provider reached through an already-authenticated web session (for
example a browser session driven by a controller object). The controller
exposes::

    controller.is_available()                       -> bool (sync or async)
    controller.session.ask(prompt, signal, cursor, model) -> payload

The payload may be a string, a mapping, or an object; its text is extracted
with ``normalize_text`` and ``cursor``/``conversation_id``, ``token`` and
``model_name`` are read from it when present. Calls are single-shot, so the
base class emits one synthetic partial chunk per call.
"""

from __future__ import annotations

import inspect
from typing import Any

from core.domain import ProviderCapabilities
from core.signals import AbortSignal

from .base import DeltaCallback, ExchangeResult, ProviderAdapter, payload_field


class SessionProviderAdapter(ProviderAdapter):
    """Non-streaming adapter over a session controller with cursor continuation."""

    capabilities = ProviderCapabilities(
        needs_dnr=True,
        needs_offscreen=False,
        supports_streaming=False,
        supports_continuation=True,
        synthesis=True,
        supports_model_selection=False,
    )

    def __init__(self, provider_id: str, controller: Any, *, model: str | None = None, kind: str | None = None):
        super().__init__(default_model=model)
        self.provider_id = provider_id
        self.kind = kind or f"{provider_id}-session"
        self.controller = controller

    async def _check_health(self) -> bool:
        available = self.controller.is_available()
        if inspect.isawaitable(available):
            available = await available
        return bool(available)

    async def _exchange(
        self,
        prompt: str,
        cursor: Any,
        model: str | None,
        emit: DeltaCallback | None,
        signal: AbortSignal | None,
    ) -> ExchangeResult:
        # The session serves one fixed model; a requested model is ignored.
        payload = await self.controller.session.ask(prompt, signal, cursor, self.default_model)
        return ExchangeResult(
            payload=payload,
            cursor=payload_field(payload, "cursor") or payload_field(payload, "conversation_id"),
            token=payload_field(payload, "token"),
            model_name=payload_field(payload, "model_name"),
            model=self.default_model,
        )
