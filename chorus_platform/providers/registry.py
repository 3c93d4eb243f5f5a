"""
Provider registry: adapter lookup and availability by provider id.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Mapping

from chorus_platform.runtime.config import PROVIDER_BACKENDS, resolve_api_key
from chorus_platform.runtime.llm.base import LLMClient
from chorus_platform.runtime.llm.factory import create_client

from .base import ProviderAdapter
from .llm_adapter import LLMProviderAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Holds the registered adapters and the result of their last health check.

    A registered provider counts as available until a health check says
    otherwise.
    """

    def __init__(self):
        self._adapters: dict[str, ProviderAdapter] = {}
        self._health: dict[str, bool] = {}

    def register(self, adapter: ProviderAdapter) -> None:
        self._adapters[adapter.provider_id] = adapter
        self._health.pop(adapter.provider_id, None)

    def get_adapter(self, provider_id: str) -> ProviderAdapter | None:
        return self._adapters.get(provider_id)

    def is_available(self, provider_id: str) -> bool:
        return provider_id in self._adapters and self._health.get(provider_id) is not False

    def provider_ids(self) -> list[str]:
        return list(self._adapters)

    async def refresh_availability(self) -> dict[str, bool]:
        """Run every adapter's health check concurrently and record the results."""
        ids = list(self._adapters)
        results = await asyncio.gather(*(self._adapters[pid].health_check() for pid in ids))
        self._health.update(zip(ids, results))
        logger.debug("Provider availability: %s", self._health)
        return dict(self._health)


def build_default_registry(
    api_keys: Mapping[str, str] | None = None,
    *,
    client_factory: Callable[[str, str], LLMClient] = create_client,
) -> ProviderRegistry:
    """Register an API-backed adapter for every backend with a configured key."""
    api_keys = api_keys or {}
    registry = ProviderRegistry()
    for provider_id, cfg in PROVIDER_BACKENDS.items():
        backend = cfg["backend"]
        try:
            api_key = resolve_api_key(backend, api_keys.get(backend))
        except ValueError:
            logger.debug("No API key for %s; %s not registered", backend, provider_id)
            continue
        registry.register(LLMProviderAdapter(
            provider_id,
            client_factory(backend, api_key),
            backend=backend,
            default_model=cfg["default_model"],
        ))
    logger.info("Registered providers: %s", registry.provider_ids())
    return registry
