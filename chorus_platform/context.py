"""Turn-context condensation helpers for Platform -> refiner calls."""

from __future__ import annotations

from typing import Any, Mapping

from core.domain import AiTurn, ProviderResponse, TurnContext


def _latest_text(responses: Mapping[str, list[ProviderResponse]]) -> str:
    """Text of the most recent non-empty response across providers."""
    latest: ProviderResponse | None = None
    for items in responses.values():
        for response in items:
            if not response.text.strip():
                continue
            if latest is None or (response.updated_at or response.created_at) >= (
                latest.updated_at or latest.created_at
            ):
                latest = response
    return latest.text.strip() if latest else ""


def build_turn_context(turn: AiTurn | Mapping[str, Any] | None) -> TurnContext | None:
    """Derive the refiner's prior-turn context from a stored turn.

    Batch responses are concatenated as ``[provider]`` headed blocks; failed
    and empty responses are left out. Returns ``None`` when nothing is usable.
    """
    if turn is None:
        return None
    if not isinstance(turn, AiTurn):
        turn = AiTurn.from_record(turn)

    batch_blocks = [
        f"[{pid}]\n{response.text.strip()}"
        for pid, response in turn.batch_responses.items()
        if response.status != "error" and response.text.strip()
    ]
    context = TurnContext(
        user_prompt=turn.user_prompt.strip(),
        synthesis_text=_latest_text(turn.synthesis_responses),
        mapping_text=_latest_text(turn.mapping_responses),
        batch_text="\n\n".join(batch_blocks),
    )
    return None if context.is_empty() else context


async def load_session_turn_context(store, session_id: str | None) -> TurnContext | None:
    """Build the turn context for the session's last turn, if there is one."""
    if not session_id:
        return None
    session = await store.get("sessions", session_id)
    if not session or not session.get("last_turn_id"):
        return None
    return build_turn_context(await store.get("turns", session["last_turn_id"]))
