"""Adapters between core dataclasses and v1 contracts."""

from __future__ import annotations

from core.domain import AiTurn, LegacyRefinerResult, RefinerResult, ResolvedContext, TurnContext

from .schemas import (
    LegacyRefineResponse,
    MetaContract,
    ResolvedContextContract,
    RefineResponse,
    TurnContextContract,
    TurnContract,
)


def adapt_turn_context_contract(contract: TurnContextContract | None) -> TurnContext | None:
    """Convert an optional request turn context into the core shape (``None`` when empty)."""
    if contract is None:
        return None
    context = TurnContext(**contract.model_dump())
    return None if context.is_empty() else context


def adapt_resolved_context_to_response(resolved: ResolvedContext) -> ResolvedContextContract:
    return ResolvedContextContract.model_validate(resolved.to_dict())


def adapt_turn_to_response(turn: AiTurn) -> TurnContract:
    return TurnContract.model_validate(turn.to_record())


def adapt_refiner_result_to_response(
    result: RefinerResult,
    *,
    model_used: str | None = None,
    timings: dict[str, float] | None = None,
) -> RefineResponse:
    """Adapt a refiner result to the v1 refine response contract."""
    return RefineResponse(
        **result.to_dict(),
        meta=MetaContract(model_used=model_used or result.author_provider, timings=timings),
    )


def adapt_legacy_result_to_response(result: LegacyRefinerResult) -> LegacyRefineResponse:
    return LegacyRefineResponse(refined_prompt=result.refined_prompt, explanation=result.explanation)
