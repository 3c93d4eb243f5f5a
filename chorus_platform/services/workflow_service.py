"""Platform-owned workflow orchestration: resolve, fan out, apply, persist."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Callable, Iterable

from core.context_resolver import SESSIONS, TURNS, ContextResolver
from core.domain import (
    STATUS_COMPLETED,
    STATUS_ERROR,
    STATUS_PENDING,
    STATUS_STREAMING,
    AiTurn,
    ProviderEnvelope,
    ProviderResponse,
    ResolvedContext,
    is_new_joiner,
)
from core.errors import InvalidRequestError, TurnNotFoundError
from core.ports import ProviderRegistryPort, WritableSessionStorePort
from core.signals import AbortSignal
from core.streaming import StreamingUpdate, apply_streaming_updates, create_optimistic_turn

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[StreamingUpdate], None]

_CONTEXT_KEYS = ("cursor", "token", "model_name", "model")


def _context_from_envelope(envelope: ProviderEnvelope) -> dict[str, Any] | None:
    """Continuation state worth storing from a successful envelope."""
    context = {key: envelope.meta.get(key) for key in _CONTEXT_KEYS if envelope.meta.get(key) is not None}
    return context or None


class WorkflowOrchestrator:
    """Runs one workflow request against every resolved provider concurrently.

    A failing provider is marked ``error`` without affecting its siblings; a
    failing ``resolve`` aborts the turn before any provider is called.
    """

    def __init__(
        self,
        store: WritableSessionStorePort,
        registry: ProviderRegistryPort,
        *,
        streaming_provider_ids: Iterable[str] = (),
        id_factory: Callable[[], str] | None = None,
    ):
        self.store = store
        self.registry = registry
        self.resolver = ContextResolver(store)
        self.streaming_provider_ids = tuple(streaming_provider_ids)
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)

    async def run(
        self,
        request: Any,
        prompt: str | None = None,
        *,
        signal: AbortSignal | None = None,
        on_update: UpdateCallback | None = None,
    ) -> AiTurn:
        """Resolve *request*, dispatch *prompt* and return the persisted turn."""
        resolved = await self.resolver.resolve(request)
        if resolved.type == "recompute":
            return await self._recompute(resolved, prompt, signal, on_update)
        if not prompt:
            raise InvalidRequestError(f"{resolved.type} requires a prompt")

        session_id = resolved.session_id or self._new_id()
        providers = list(resolved.provider_contexts)
        turn = create_optimistic_turn(
            self._new_id(),
            session_id,
            prompt,
            providers,
            streaming_provider_ids=self.streaming_provider_ids,
        )
        if resolved.last_turn_id:
            turn.meta["parent_turn_id"] = resolved.last_turn_id

        envelopes = await asyncio.gather(*(
            self._dispatch(turn, pid, "batch", prompt, resolved.context_for(pid), session_id, signal, on_update)
            for pid in providers
        ))
        for pid, envelope in zip(providers, envelopes):
            self._record_context(turn, pid, envelope, resolved)

        turn.meta.pop("is_optimistic", None)
        await self.store.put(TURNS, turn.id, turn.to_record())
        session = await self.store.get(SESSIONS, session_id) or {"id": session_id}
        session["last_turn_id"] = turn.id
        await self.store.put(SESSIONS, session_id, session)

        logger.info(
            "Turn %s (%s) completed: %d/%d providers ok",
            turn.id, resolved.type, sum(1 for e in envelopes if e is not None and e.ok), len(providers),
        )
        return turn

    async def _recompute(
        self,
        resolved: ResolvedContext,
        prompt: str | None,
        signal: AbortSignal | None,
        on_update: UpdateCallback | None,
    ) -> AiTurn:
        record = await self.store.get(TURNS, resolved.source_turn_id)
        if not record:
            raise TurnNotFoundError(f"Source turn {resolved.source_turn_id} not found")
        turn = AiTurn.from_record(record)
        pid = resolved.target_provider
        step = resolved.step_type or "batch"
        status = STATUS_STREAMING if pid in self.streaming_provider_ids else STATUS_PENDING

        # Only the target's slot is replaced; sibling responses stay untouched.
        fresh = ProviderResponse(provider_id=pid, status=status)
        if step == "batch":
            turn.batch_responses[pid] = fresh
        else:
            bucket = turn.synthesis_responses if step == "synthesis" else turn.mapping_responses
            bucket.setdefault(pid, []).append(fresh)

        envelope = await self._dispatch(
            turn, pid, step, prompt or turn.user_prompt,
            resolved.context_for(pid), turn.session_id, signal, on_update,
        )
        self._record_context(turn, pid, envelope, resolved)
        await self.store.put(TURNS, turn.id, turn.to_record())
        logger.info("Recomputed %s/%s in turn %s", pid, step, turn.id)
        return turn

    async def _dispatch(
        self,
        turn: AiTurn,
        provider_id: str,
        step: str,
        prompt: str,
        context: dict[str, Any] | None,
        session_id: str | None,
        signal: AbortSignal | None,
        on_update: UpdateCallback | None,
    ) -> ProviderEnvelope | None:
        def apply(text: str, status: str) -> None:
            update = StreamingUpdate(provider_id, text, status, step)
            apply_streaming_updates(turn, [update], streaming_provider_ids=self.streaming_provider_ids)
            if on_update is not None:
                on_update(update)

        adapter = self.registry.get_adapter(provider_id)
        if adapter is None or not self.registry.is_available(provider_id):
            logger.warning("Provider %s is not available", provider_id)
            apply("", STATUS_ERROR)
            self._response(turn, provider_id, step).meta = {"error_code": "unavailable"}
            return None

        try:
            envelope = await adapter.ask(
                prompt, context, session_id,
                lambda chunk: apply(chunk.text or "", STATUS_STREAMING),
                signal,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            apply("", STATUS_ERROR)
            self._response(turn, provider_id, step).meta = {"error_code": "unknown", "error": str(e)}
            return None

        response = self._response(turn, provider_id, step)
        if envelope.ok:
            # Whatever the chunks did not deliver is appended before completing.
            text = envelope.text or ""
            remainder = text[len(response.text):] if text.startswith(response.text) else ""
            apply(remainder, STATUS_COMPLETED)
            response.meta = {k: v for k, v in envelope.meta.items() if v is not None} or None
        else:
            apply("", STATUS_ERROR)
            response.meta = {
                "error_code": envelope.error_code,
                "error": envelope.meta.get("error"),
                "suppressed": envelope.meta.get("suppressed", False),
            }
        return envelope

    @staticmethod
    def _response(turn: AiTurn, provider_id: str, step: str) -> ProviderResponse:
        if step == "batch":
            return turn.batch_responses[provider_id]
        bucket = turn.synthesis_responses if step == "synthesis" else turn.mapping_responses
        return bucket[provider_id][-1]

    @staticmethod
    def _record_context(
        turn: AiTurn,
        provider_id: str,
        envelope: ProviderEnvelope | None,
        resolved: ResolvedContext,
    ) -> None:
        """Store the provider's new context, or keep the previous one on failure.

        A successful envelope is merged over the previous context, so a
        provider that omits ``cursor`` on a continuation keeps the old one.
        """
        previous = resolved.provider_contexts.get(provider_id)
        if previous and is_new_joiner(previous):
            previous = None
        if envelope is not None and envelope.ok:
            context = _context_from_envelope(envelope)
            if context:
                turn.provider_contexts[provider_id] = {**(previous or {}), **context}
                return
        if previous:
            turn.provider_contexts[provider_id] = dict(previous)
        elif resolved.type != "recompute":
            turn.provider_contexts.pop(provider_id, None)
