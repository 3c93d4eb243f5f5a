"""
Server-side runtime for the web layer.

Holds the single shared store, provider registry, refiner and orchestrator
(single-process local service). Collaborators are built lazily on first use
and can be swapped with ``configure`` (tests do this).
"""

from __future__ import annotations

from typing import Optional

from chorus_platform.persistence import InMemorySessionStore
from chorus_platform.providers import ProviderRegistry, build_default_registry
from chorus_platform.runtime.config import (
    PRIMARY_STREAMING_PROVIDER_IDS,
    REFINER_FALLBACK_PROVIDERS,
    REFINER_MAX_VARIANTS,
    REFINER_PREFERRED_MODELS,
    REFINER_TIMEOUT_SECONDS,
)
from chorus_platform.services import WorkflowOrchestrator
from core.refiner import PromptRefiner


class WebSessionManager:
    """Owns the collaborators shared by every request."""

    def __init__(self):
        self._store: Optional[InMemorySessionStore] = None
        self._registry: Optional[ProviderRegistry] = None

    def configure(
        self,
        *,
        store: Optional[InMemorySessionStore] = None,
        registry: Optional[ProviderRegistry] = None,
    ) -> None:
        """Replace the store and/or registry (``None`` resets to lazy defaults)."""
        self._store = store
        self._registry = registry

    @property
    def store(self) -> InMemorySessionStore:
        if self._store is None:
            self._store = InMemorySessionStore()
        return self._store

    @property
    def registry(self) -> ProviderRegistry:
        if self._registry is None:
            self._registry = build_default_registry()
        return self._registry

    def refiner(self) -> PromptRefiner:
        return PromptRefiner(
            self.registry,
            fallback_providers=REFINER_FALLBACK_PROVIDERS,
            preferred_models=REFINER_PREFERRED_MODELS,
            timeout_seconds=REFINER_TIMEOUT_SECONDS,
            max_variants=REFINER_MAX_VARIANTS,
        )

    def orchestrator(self) -> WorkflowOrchestrator:
        return WorkflowOrchestrator(
            self.store,
            self.registry,
            streaming_provider_ids=PRIMARY_STREAMING_PROVIDER_IDS,
        )
