"""
Context resolver.

Decides, per provider, which stored conversational state a turn continues
from. Three request types are understood:

- ``initialize``: every provider starts fresh; the store is not touched.
- ``extend``: continue the session's last turn. Providers with stored
  context carry it forward; providers without it (or listed in
  ``forced_context_reset``) join as new joiners. Resolution is per provider,
  so one turn can mix continuing and fresh providers.
- ``recompute``: re-derive context for a single provider of an existing turn
  so that one output can be regenerated in place.

All failures are raised synchronously with a stable ``kind``; store errors are
logged with the failing lookup and re-raised unchanged. No retries here.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from .domain import ResolvedContext, new_joiner_context, normalize_provider_context
from .errors import InvalidRequestError, MissingSessionIdError, NoPriorTurnError, TurnNotFoundError
from .ports import SessionStorePort

logger = logging.getLogger(__name__)

SESSIONS = "sessions"
TURNS = "turns"

REQUEST_TYPES = ("initialize", "extend", "recompute")
STEP_TYPES = ("batch", "synthesis", "mapping")


def _as_mapping(request: Any) -> Mapping[str, Any]:
    """Accept plain mappings as well as pydantic request contracts."""
    if request is None:
        raise InvalidRequestError("request is required")
    if isinstance(request, Mapping):
        return request
    model_dump = getattr(request, "model_dump", None)
    if callable(model_dump):
        return model_dump()
    raise InvalidRequestError(f"Unsupported request object: {type(request).__name__}")


def _provider_list(raw: Any) -> list[str]:
    """Deduplicate provider ids while keeping first-seen order."""
    seen: dict[str, None] = {}
    for pid in raw or []:
        if pid:
            seen.setdefault(str(pid), None)
    return list(seen)


def normalize_turn_contexts(turn: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Normalize every stored provider context of *turn* to the flat shape."""
    normalized: dict[str, dict[str, Any]] = {}
    for pid, stored in (turn.get("provider_contexts") or {}).items():
        flat = normalize_provider_context(stored)
        if flat is not None:
            normalized[pid] = flat
    return normalized


class ContextResolver:
    """Resolve a workflow request into per-provider contexts.

    The store is injected and only ever read through ``get(collection, id)``.
    """

    def __init__(self, store: SessionStorePort):
        self.store = store

    async def resolve(self, request: Any) -> ResolvedContext:
        payload = _as_mapping(request)
        request_type = payload.get("type")
        if not request_type:
            raise InvalidRequestError("request.type is required")

        if request_type == "initialize":
            return self._resolve_initialize(payload)
        if request_type == "extend":
            return await self._resolve_extend(payload)
        if request_type == "recompute":
            return await self._resolve_recompute(payload)
        raise InvalidRequestError(f"Unknown request type: {request_type!r}")

    # ------------------------------------------------------------------
    # Request types
    # ------------------------------------------------------------------

    def _resolve_initialize(self, payload: Mapping[str, Any]) -> ResolvedContext:
        return ResolvedContext(
            type="initialize",
            provider_contexts={
                pid: new_joiner_context() for pid in _provider_list(payload.get("providers"))
            },
        )

    async def _resolve_extend(self, payload: Mapping[str, Any]) -> ResolvedContext:
        session_id = payload.get("session_id")
        if not session_id:
            raise MissingSessionIdError("extend requires session_id")

        session = await self._get(SESSIONS, session_id)
        if not session or not session.get("last_turn_id"):
            raise NoPriorTurnError(f"Cannot extend: no last_turn_id for session {session_id}")

        last_turn_id = session["last_turn_id"]
        last_turn = await self._get(TURNS, last_turn_id)
        if not last_turn:
            raise TurnNotFoundError(f"Last turn {last_turn_id} not found")

        stored = normalize_turn_contexts(last_turn)
        forced_reset = set(payload.get("forced_context_reset") or [])

        resolved: dict[str, dict[str, Any]] = {}
        continuing: list[str] = []
        for pid in _provider_list(payload.get("providers")):
            if pid in forced_reset:
                resolved[pid] = new_joiner_context()
            elif pid in stored:
                resolved[pid] = stored[pid]
                continuing.append(pid)
            else:
                resolved[pid] = new_joiner_context()

        logger.debug(
            "Resolved extend for session %s: %d continuing %s, %d new",
            session_id, len(continuing), continuing, len(resolved) - len(continuing),
        )
        return ResolvedContext(
            type="extend",
            session_id=session_id,
            last_turn_id=last_turn.get("id", last_turn_id),
            provider_contexts=resolved,
        )

    async def _resolve_recompute(self, payload: Mapping[str, Any]) -> ResolvedContext:
        session_id = payload.get("session_id")
        if not session_id:
            raise MissingSessionIdError("recompute requires session_id")

        source_turn_id = payload.get("source_turn_id")
        target_provider = payload.get("target_provider")
        step_type = payload.get("step_type") or "batch"
        if not source_turn_id:
            raise InvalidRequestError("recompute requires source_turn_id")
        if not target_provider:
            raise InvalidRequestError("recompute requires target_provider")
        if step_type not in STEP_TYPES:
            raise InvalidRequestError(f"Unknown step_type: {step_type!r}")

        source_turn = await self._get(TURNS, source_turn_id)
        if not source_turn:
            raise TurnNotFoundError(f"Source turn {source_turn_id} not found")

        stored = normalize_turn_contexts(source_turn)
        context = stored.get(target_provider) or new_joiner_context()
        return ResolvedContext(
            type="recompute",
            session_id=session_id,
            source_turn_id=source_turn_id,
            step_type=step_type,
            target_provider=target_provider,
            provider_contexts={target_provider: context},
        )

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    async def _get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        try:
            return await self.store.get(collection, record_id)
        except Exception:
            logger.warning("Store lookup failed: %s/%s", collection, record_id)
            raise
