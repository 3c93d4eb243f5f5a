"""Stateless core service functions (contract in, contract out)."""

from __future__ import annotations

import time

from contracts.v1.adapters import (
    adapt_legacy_result_to_response,
    adapt_refiner_result_to_response,
    adapt_resolved_context_to_response,
    adapt_turn_context_contract,
)
from contracts.v1.schemas import (
    ExtendWorkflowRequest,
    InitializeWorkflowRequest,
    LegacyRefineRequest,
    LegacyRefineResponse,
    RecomputeWorkflowRequest,
    RefineRequest,
    RefineResponse,
    ResolvedContextContract,
)

from .context_resolver import ContextResolver
from .domain import TurnContext
from .ports import SessionStorePort
from .refiner import PromptRefiner
from .signals import AbortSignal


async def resolve_workflow(
    request: InitializeWorkflowRequest | ExtendWorkflowRequest | RecomputeWorkflowRequest,
    *,
    store: SessionStorePort,
) -> ResolvedContextContract:
    """Resolve per-provider contexts for a workflow request."""
    resolved = await ContextResolver(store).resolve(request)
    return adapt_resolved_context_to_response(resolved)


async def refine(
    request: RefineRequest,
    *,
    refiner: PromptRefiner,
    turn_context: TurnContext | None = None,
    signal: AbortSignal | None = None,
) -> RefineResponse | None:
    """Run the refiner pipeline; ``None`` when the Author stage produced nothing.

    An explicit ``turn_context`` on the request takes precedence over the one
    passed in by the caller (usually derived from the session's last turn).
    """
    started = time.perf_counter()
    context = adapt_turn_context_contract(request.turn_context) or turn_context
    result = await refiner.refine(
        request.fragment,
        context,
        author_model_id=request.author_model_id,
        analyst_model_id=request.analyst_model_id,
        is_initialize=request.is_initialize,
        signal=signal,
    )
    if result is None:
        return None
    elapsed = time.perf_counter() - started
    return adapt_refiner_result_to_response(result, timings={"total_seconds": elapsed})


async def refine_legacy(
    request: LegacyRefineRequest,
    *,
    refiner: PromptRefiner,
    turn_context: TurnContext | None = None,
    signal: AbortSignal | None = None,
) -> LegacyRefineResponse | None:
    """Serve the older two-field refine contract."""
    context = adapt_turn_context_contract(request.turn_context) or turn_context
    result = await refiner.refine_prompt(request.draft_prompt, context, signal=signal)
    if result is None:
        return None
    return adapt_legacy_result_to_response(result)
