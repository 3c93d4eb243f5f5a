"""Chunk application helpers for in-flight turns.

Text is only ever appended in arrival order and statuses only move forward.
Responses that do not exist yet are created from their first chunk.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from .domain import (
    STATUS_PENDING,
    STATUS_STREAMING,
    AiTurn,
    ProviderResponse,
    now_ms,
)


RESPONSE_TYPES = ("batch", "synthesis", "mapping")


@dataclass(frozen=True, slots=True)
class StreamingUpdate:
    provider_id: str
    text: str
    status: str
    response_type: str = "batch"


def _initial_status(provider_id: str, streaming_provider_ids: Iterable[str]) -> str:
    return STATUS_STREAMING if provider_id in set(streaming_provider_ids) else STATUS_PENDING


def create_optimistic_turn(
    turn_id: str,
    session_id: str | None,
    user_prompt: str,
    providers: Sequence[str],
    *,
    streaming_provider_ids: Iterable[str] = (),
    synthesis_provider: str | None = None,
    mapping_provider: str | None = None,
    timestamp: int | None = None,
) -> AiTurn:
    """Build a turn with empty placeholder responses for every active provider."""
    now = timestamp or now_ms()
    streaming = tuple(streaming_provider_ids)

    def _placeholder(pid: str) -> ProviderResponse:
        return ProviderResponse(
            provider_id=pid,
            status=_initial_status(pid, streaming),
            created_at=now,
            updated_at=now,
        )

    turn = AiTurn(
        id=turn_id,
        session_id=session_id,
        user_prompt=user_prompt,
        batch_responses={pid: _placeholder(pid) for pid in providers},
        created_at=now,
        meta={"is_optimistic": True, "expected_providers": list(providers)},
    )
    if synthesis_provider:
        turn.synthesis_responses[synthesis_provider] = [_placeholder(synthesis_provider)]
        turn.meta["synthesizer"] = synthesis_provider
    if mapping_provider:
        turn.mapping_responses[mapping_provider] = [_placeholder(mapping_provider)]
        turn.meta["mapper"] = mapping_provider
    return turn


def apply_streaming_updates(
    turn: AiTurn,
    updates: Iterable[StreamingUpdate],
    *,
    streaming_provider_ids: Iterable[str] = (),
) -> None:
    """Apply streamed deltas to *turn* in order.

    ``batch`` keeps one response per provider; ``synthesis`` and ``mapping``
    keep a list per provider and extend its latest entry.
    """
    streaming = tuple(streaming_provider_ids)
    for update in updates:
        if update.response_type == "batch":
            response = turn.batch_responses.get(update.provider_id)
            if response is None:
                response = ProviderResponse(
                    provider_id=update.provider_id,
                    status=_initial_status(update.provider_id, streaming),
                )
                turn.batch_responses[update.provider_id] = response
            response.append(update.text, update.status)
        elif update.response_type in ("synthesis", "mapping"):
            bucket = (
                turn.synthesis_responses
                if update.response_type == "synthesis"
                else turn.mapping_responses
            )
            responses = bucket.setdefault(update.provider_id, [])
            if responses:
                responses[-1].append(update.text, update.status)
            else:
                response = ProviderResponse(provider_id=update.provider_id, status=STATUS_PENDING)
                response.append(update.text, update.status)
                responses.append(response)
        else:
            raise ValueError(f"Unknown response type: {update.response_type!r}")
