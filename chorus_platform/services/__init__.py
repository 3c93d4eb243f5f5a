"""Platform services built on the stateless core."""

from .workflow_service import WorkflowOrchestrator

__all__ = ["WorkflowOrchestrator"]
