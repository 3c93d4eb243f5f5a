"""Platform layer: providers, storage and orchestration over the stateless core."""

__version__ = "1.0.0"

from .context import build_turn_context, load_session_turn_context
from .persistence import InMemorySessionStore
from .providers import (
    LLMProviderAdapter,
    ProviderAdapter,
    ProviderRegistry,
    SessionProviderAdapter,
    build_default_registry,
)
from .services import WorkflowOrchestrator

__all__ = [
    "__version__",
    "InMemorySessionStore",
    "LLMProviderAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "SessionProviderAdapter",
    "WorkflowOrchestrator",
    "build_default_registry",
    "build_turn_context",
    "load_session_turn_context",
]
