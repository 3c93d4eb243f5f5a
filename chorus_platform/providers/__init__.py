"""Provider adapters and the registry that looks them up."""

from .base import ExchangeResult, ProviderAdapter, normalize_text
from .llm_adapter import LLMProviderAdapter
from .registry import ProviderRegistry, build_default_registry
from .session_adapter import SessionProviderAdapter

__all__ = [
    "ExchangeResult",
    "LLMProviderAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "SessionProviderAdapter",
    "build_default_registry",
    "normalize_text",
]
