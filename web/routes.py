"""
REST API routes for the chorus web service.
"""

import logging

from fastapi import APIRouter, Body, HTTPException
from pydantic import ValidationError

from chorus_platform.context import load_session_turn_context
from contracts.v1 import (
    LegacyRefineRequest,
    LegacyRefineResponse,
    RefineRequest,
    RefineResponse,
    ResolvedContextContract,
    TurnContract,
    WORKFLOW_REQUEST_ADAPTER,
    WorkflowRunRequest,
    adapt_turn_to_response,
)
from core import service as core_service
from core.errors import ContextResolutionError, NoProviderAvailableError, TurnNotFoundError

from .session_manager import WebSessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# Single shared runtime (single-process local service)
session_mgr = WebSessionManager()


def _resolution_error(e: ContextResolutionError) -> HTTPException:
    status = 404 if isinstance(e, TurnNotFoundError) else 400
    return HTTPException(status_code=status, detail={"kind": e.kind, "detail": e.message})


def _no_provider_error(e: NoProviderAvailableError) -> HTTPException:
    return HTTPException(status_code=503, detail={"kind": e.kind, "detail": str(e)})


@router.get("/providers")
async def list_providers():
    """List registered providers with their capabilities and availability."""
    registry = session_mgr.registry
    availability = await registry.refresh_availability()
    providers = []
    for pid in registry.provider_ids():
        adapter = registry.get_adapter(pid)
        providers.append({
            "id": pid,
            "capabilities": adapter.capabilities.to_dict(),
            "available": availability.get(pid, False),
        })
    return {"providers": providers}


@router.post("/workflow/resolve", response_model=ResolvedContextContract)
async def resolve_workflow(payload: dict = Body(...)):
    """Resolve per-provider contexts without calling any provider."""
    try:
        req = WORKFLOW_REQUEST_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={"kind": "invalid_request", "detail": str(e)}) from e
    try:
        return await core_service.resolve_workflow(req, store=session_mgr.store)
    except ContextResolutionError as e:
        raise _resolution_error(e) from e


@router.post("/workflow/run", response_model=TurnContract)
async def run_workflow(req: WorkflowRunRequest):
    """Run a workflow turn and return the persisted turn."""
    logger.info("Workflow %s requested", req.workflow.type)
    try:
        turn = await session_mgr.orchestrator().run(req.workflow, req.prompt)
    except ContextResolutionError as e:
        raise _resolution_error(e) from e
    return adapt_turn_to_response(turn)


@router.post("/refine", response_model=RefineResponse)
async def refine(req: RefineRequest):
    """Refine a draft fragment (Author → Analyst, or initialize mode)."""
    logger.info("Refine requested (initialize=%s)", req.is_initialize)
    turn_context = None
    if req.turn_context is None:
        turn_context = await load_session_turn_context(session_mgr.store, req.session_id)
    try:
        result = await core_service.refine(req, refiner=session_mgr.refiner(), turn_context=turn_context)
    except NoProviderAvailableError as e:
        raise _no_provider_error(e) from e
    if result is None:
        raise HTTPException(
            status_code=422,
            detail={"kind": "refine_failed", "detail": "Refinement produced no result", "fragment": req.fragment},
        )
    return result


@router.post("/refine/legacy", response_model=LegacyRefineResponse)
async def refine_legacy(req: LegacyRefineRequest):
    """Older two-field refine contract (refined_prompt, explanation)."""
    turn_context = None
    if req.turn_context is None:
        turn_context = await load_session_turn_context(session_mgr.store, req.session_id)
    try:
        result = await core_service.refine_legacy(req, refiner=session_mgr.refiner(), turn_context=turn_context)
    except NoProviderAvailableError as e:
        raise _no_provider_error(e) from e
    if result is None:
        raise HTTPException(
            status_code=422,
            detail={"kind": "refine_failed", "detail": "Refinement produced no result", "fragment": req.draft_prompt},
        )
    return result
