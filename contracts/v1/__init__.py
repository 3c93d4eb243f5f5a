"""v1 contract schemas and core adapters."""

__version__ = "1.0.0"

from .adapters import (
    adapt_legacy_result_to_response,
    adapt_refiner_result_to_response,
    adapt_resolved_context_to_response,
    adapt_turn_context_contract,
    adapt_turn_to_response,
)
from .schemas import (
    ExtendWorkflowRequest,
    InitializeWorkflowRequest,
    LegacyRefineRequest,
    LegacyRefineResponse,
    MetaContract,
    ProviderResponseContract,
    RecomputeWorkflowRequest,
    RefineRequest,
    RefineResponse,
    ResolvedContextContract,
    TurnContextContract,
    TurnContract,
    WORKFLOW_REQUEST_ADAPTER,
    WorkflowRequest,
    WorkflowRunRequest,
)

__all__ = [
    "__version__",
    "ExtendWorkflowRequest",
    "InitializeWorkflowRequest",
    "LegacyRefineRequest",
    "LegacyRefineResponse",
    "MetaContract",
    "ProviderResponseContract",
    "RecomputeWorkflowRequest",
    "RefineRequest",
    "RefineResponse",
    "ResolvedContextContract",
    "TurnContextContract",
    "TurnContract",
    "WORKFLOW_REQUEST_ADAPTER",
    "WorkflowRequest",
    "WorkflowRunRequest",
    "adapt_legacy_result_to_response",
    "adapt_refiner_result_to_response",
    "adapt_resolved_context_to_response",
    "adapt_turn_context_contract",
    "adapt_turn_to_response",
]
