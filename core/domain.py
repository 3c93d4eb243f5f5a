"""Core-native data model shared by the resolver, adapters, refiner and orchestrator."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Any, Mapping


NEW_JOINER_KEY = "is_new_joiner"

STATUS_PENDING = "pending"
STATUS_STREAMING = "streaming"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"

_STATUS_RANK = {STATUS_PENDING: 0, STATUS_STREAMING: 1, STATUS_COMPLETED: 2}
TERMINAL_STATUSES = {STATUS_COMPLETED, STATUS_ERROR}

# Upper bound on refiner variants carried by a RefinerResult.
MAX_REFINER_VARIANTS = 3


def now_ms() -> int:
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Provider contexts
# ---------------------------------------------------------------------------

def new_joiner_context() -> dict[str, Any]:
    """Marker for a provider joining a turn without prior conversational state."""
    return {NEW_JOINER_KEY: True}


def is_new_joiner(context: Mapping[str, Any] | None) -> bool:
    return bool(context) and context.get(NEW_JOINER_KEY) is True


def normalize_provider_context(context: Any) -> dict[str, Any] | None:
    """Collapse the nested (``{"meta": {...}}``) and flat stored shapes into the flat one.

    The nested ``meta`` mapping wins when present. Returns ``None`` for empty
    or non-mapping values so callers can treat them as "no stored context".
    """
    if not isinstance(context, Mapping) or not context:
        return None
    meta = context.get("meta")
    if isinstance(meta, Mapping) and meta:
        return copy.deepcopy(dict(meta))
    return copy.deepcopy(dict(context))


def find_cursor(context: Mapping[str, Any] | None) -> Any:
    """Return the continuation cursor from either stored shape, or ``None``."""
    if not context:
        return None
    cursor = context.get("cursor")
    if cursor:
        return cursor
    meta = context.get("meta")
    if isinstance(meta, Mapping) and meta.get("cursor"):
        return meta["cursor"]
    return None


@dataclass(slots=True)
class ResolvedContext:
    """Per-provider conversational context to use for one turn."""

    type: str
    provider_contexts: dict[str, dict[str, Any]] = field(default_factory=dict)
    session_id: str | None = None
    last_turn_id: str | None = None
    source_turn_id: str | None = None
    step_type: str | None = None
    target_provider: str | None = None

    def context_for(self, provider_id: str) -> dict[str, Any] | None:
        """Context to hand to an adapter, or ``None`` for a fresh start."""
        context = self.provider_contexts.get(provider_id)
        if context is None or is_new_joiner(context):
            return None
        return context

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "provider_contexts": copy.deepcopy(self.provider_contexts),
        }
        for key in ("session_id", "last_turn_id", "source_turn_id", "step_type", "target_provider"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


# ---------------------------------------------------------------------------
# Adapter contract payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ProviderCapabilities:
    """Static capability descriptor published by every adapter.

    ``needs_dnr`` and ``needs_offscreen`` are placement hints for the host
    environment and carry no meaning for the core logic.
    """

    needs_dnr: bool = False
    needs_offscreen: bool = False
    supports_streaming: bool = False
    supports_continuation: bool = False
    synthesis: bool = False
    supports_model_selection: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "needs_dnr": self.needs_dnr,
            "needs_offscreen": self.needs_offscreen,
            "supports_streaming": self.supports_streaming,
            "supports_continuation": self.supports_continuation,
            "synthesis": self.synthesis,
            "supports_model_selection": self.supports_model_selection,
        }


@dataclass(slots=True)
class PromptRequest:
    """Input to ``send_prompt``: literal prompt text plus an optional meta bag."""

    original_prompt: str
    session_id: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ProviderEnvelope:
    """Uniform result of ``ask``/``send_prompt``/``send_continuation`` and of chunks."""

    provider_id: str
    ok: bool
    text: str | None
    partial: bool = False
    latency_ms: int = 0
    meta: dict[str, Any] = field(default_factory=dict)
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "provider_id": self.provider_id,
            "ok": self.ok,
            "text": self.text,
            "latency_ms": self.latency_ms,
            "meta": dict(self.meta),
        }
        if self.ok:
            payload["partial"] = self.partial
        else:
            payload["error_code"] = self.error_code
        return payload


@dataclass(frozen=True, slots=True)
class ErrorClassification:
    type: str
    suppressed: bool = False


# ---------------------------------------------------------------------------
# Turn state
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class ProviderResponse:
    """One provider's (possibly still streaming) output inside a turn."""

    provider_id: str
    text: str = ""
    status: str = STATUS_PENDING
    created_at: int = field(default_factory=now_ms)
    updated_at: int | None = None
    meta: dict[str, Any] | None = None

    def advance(self, status: str | None) -> None:
        """Move status forward only; ``error`` is reachable from any live state."""
        if not status or status == self.status or self.status in TERMINAL_STATUSES:
            return
        if status == STATUS_ERROR or _STATUS_RANK.get(status, -1) > _STATUS_RANK.get(self.status, -1):
            self.status = status

    def append(self, delta: str | None, status: str | None = None) -> None:
        if delta:
            self.text += delta
        self.advance(status)
        self.updated_at = now_ms()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "provider_id": self.provider_id,
            "text": self.text,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.meta:
            payload["meta"] = dict(self.meta)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProviderResponse":
        return cls(
            provider_id=data.get("provider_id", ""),
            text=data.get("text") or "",
            status=data.get("status", STATUS_PENDING),
            created_at=data.get("created_at") or now_ms(),
            updated_at=data.get("updated_at"),
            meta=dict(data["meta"]) if data.get("meta") else None,
        )


@dataclass(slots=True)
class AiTurn:
    """A turn as written by the orchestrator and read back by the resolver."""

    id: str
    session_id: str | None
    user_prompt: str = ""
    batch_responses: dict[str, ProviderResponse] = field(default_factory=dict)
    synthesis_responses: dict[str, list[ProviderResponse]] = field(default_factory=dict)
    mapping_responses: dict[str, list[ProviderResponse]] = field(default_factory=dict)
    provider_contexts: dict[str, dict[str, Any]] = field(default_factory=dict)
    created_at: int = field(default_factory=now_ms)
    meta: dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_prompt": self.user_prompt,
            "batch_responses": {pid: r.to_dict() for pid, r in self.batch_responses.items()},
            "synthesis_responses": {
                pid: [r.to_dict() for r in items] for pid, items in self.synthesis_responses.items()
            },
            "mapping_responses": {
                pid: [r.to_dict() for r in items] for pid, items in self.mapping_responses.items()
            },
            "provider_contexts": copy.deepcopy(self.provider_contexts),
            "created_at": self.created_at,
            "meta": copy.deepcopy(self.meta),
        }

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> "AiTurn":
        def _response_lists(raw: Any) -> dict[str, list[ProviderResponse]]:
            result: dict[str, list[ProviderResponse]] = {}
            for pid, items in (raw or {}).items():
                if isinstance(items, Mapping):
                    items = [items]
                result[pid] = [ProviderResponse.from_dict(item) for item in items or []]
            return result

        return cls(
            id=data["id"],
            session_id=data.get("session_id"),
            user_prompt=data.get("user_prompt", ""),
            batch_responses={
                pid: ProviderResponse.from_dict(item)
                for pid, item in (data.get("batch_responses") or {}).items()
            },
            synthesis_responses=_response_lists(data.get("synthesis_responses")),
            mapping_responses=_response_lists(data.get("mapping_responses")),
            provider_contexts=copy.deepcopy(dict(data.get("provider_contexts") or {})),
            created_at=data.get("created_at") or now_ms(),
            meta=copy.deepcopy(dict(data.get("meta") or {})),
        )


# ---------------------------------------------------------------------------
# Refiner payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class TurnContext:
    """Prior-turn material the refiner may weave into its prompts."""

    user_prompt: str = ""
    synthesis_text: str = ""
    mapping_text: str = ""
    batch_text: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "TurnContext | None":
        if not data:
            return None
        return cls(
            user_prompt=data.get("user_prompt") or "",
            synthesis_text=data.get("synthesis_text") or "",
            mapping_text=data.get("mapping_text") or "",
            batch_text=data.get("batch_text") or "",
        )

    def is_empty(self) -> bool:
        return not (self.user_prompt or self.synthesis_text or self.mapping_text or self.batch_text)


@dataclass(frozen=True, slots=True)
class RefinerResult:
    """Outcome of one refinement call; immutable once returned."""

    authored: str
    explanation: str = ""
    audit: str = ""
    variants: tuple[str, ...] = ()
    raw_author: str = ""
    raw_analyst: str | None = None
    author_provider: str | None = None
    analyst_provider: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "authored": self.authored,
            "explanation": self.explanation,
            "audit": self.audit,
            "variants": list(self.variants),
            "raw_author": self.raw_author,
            "raw_analyst": self.raw_analyst,
            "author_provider": self.author_provider,
            "analyst_provider": self.analyst_provider,
        }


@dataclass(frozen=True, slots=True)
class LegacyRefinerResult:
    """Two-field shape kept for callers written against the single-stage refiner."""

    refined_prompt: str
    explanation: str
