"""Pydantic contracts for the v1 workflow and refine API."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from core.domain import MAX_REFINER_VARIANTS


class _StrictModel(BaseModel):
    """Base model that rejects unknown fields."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class MetaContract(_StrictModel):
    model_used: str | None = None
    timings: dict[str, float] | None = None


# ---------------------------------------------------------------------------
# Workflow requests
# ---------------------------------------------------------------------------

class InitializeWorkflowRequest(_StrictModel):
    type: Literal["initialize"] = "initialize"
    providers: list[str] = Field(min_length=1)


class ExtendWorkflowRequest(_StrictModel):
    type: Literal["extend"] = "extend"
    session_id: str = Field(min_length=1)
    providers: list[str] = Field(min_length=1)
    forced_context_reset: list[str] = Field(default_factory=list)


class RecomputeWorkflowRequest(_StrictModel):
    type: Literal["recompute"] = "recompute"
    session_id: str = Field(min_length=1)
    source_turn_id: str = Field(min_length=1)
    step_type: Literal["batch", "synthesis", "mapping"] = "batch"
    target_provider: str = Field(min_length=1)


WorkflowRequest = Annotated[
    Union[InitializeWorkflowRequest, ExtendWorkflowRequest, RecomputeWorkflowRequest],
    Field(discriminator="type"),
]


WORKFLOW_REQUEST_ADAPTER: TypeAdapter = TypeAdapter(WorkflowRequest)


class WorkflowRunRequest(_StrictModel):
    workflow: WorkflowRequest
    # Optional for recompute, which reuses the source turn's prompt.
    prompt: str | None = None


# ---------------------------------------------------------------------------
# Workflow responses
# ---------------------------------------------------------------------------

class ResolvedContextContract(_StrictModel):
    type: Literal["initialize", "extend", "recompute"]
    provider_contexts: dict[str, dict[str, Any]]
    session_id: str | None = None
    last_turn_id: str | None = None
    source_turn_id: str | None = None
    step_type: str | None = None
    target_provider: str | None = None


class ProviderResponseContract(_StrictModel):
    provider_id: str
    text: str = ""
    status: Literal["pending", "streaming", "completed", "error"]
    created_at: int
    updated_at: int | None = None
    meta: dict[str, Any] | None = None


class TurnContract(_StrictModel):
    id: str
    session_id: str | None = None
    user_prompt: str
    batch_responses: dict[str, ProviderResponseContract] = Field(default_factory=dict)
    synthesis_responses: dict[str, list[ProviderResponseContract]] = Field(default_factory=dict)
    mapping_responses: dict[str, list[ProviderResponseContract]] = Field(default_factory=dict)
    provider_contexts: dict[str, dict[str, Any]] = Field(default_factory=dict)
    created_at: int
    meta: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Refine
# ---------------------------------------------------------------------------

class TurnContextContract(_StrictModel):
    user_prompt: str = ""
    synthesis_text: str = ""
    mapping_text: str = ""
    batch_text: str = ""


class RefineRequest(_StrictModel):
    fragment: str = Field(min_length=1)
    turn_context: TurnContextContract | None = None
    session_id: str | None = None
    author_model_id: str | None = None
    analyst_model_id: str | None = None
    is_initialize: bool = False


class RefineResponse(_StrictModel):
    authored: str
    explanation: str = ""
    audit: str = ""
    variants: list[str] = Field(default_factory=list, max_length=MAX_REFINER_VARIANTS)
    raw_author: str = ""
    raw_analyst: str | None = None
    author_provider: str | None = None
    analyst_provider: str | None = None
    meta: MetaContract


class LegacyRefineRequest(_StrictModel):
    draft_prompt: str = Field(min_length=1)
    turn_context: TurnContextContract | None = None
    session_id: str | None = None


class LegacyRefineResponse(_StrictModel):
    refined_prompt: str
    explanation: str
