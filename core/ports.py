"""Core ports: the narrow collaborator interfaces the core depends on."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

from .domain import ProviderCapabilities, ProviderEnvelope, PromptRequest
from .signals import AbortSignal


StreamChunkCallback = Callable[[ProviderEnvelope], None]


class SessionStorePort(Protocol):
    """Read-only lookup into the external turn/session store."""

    async def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        ...


class WritableSessionStorePort(SessionStorePort, Protocol):
    """Store surface used by the orchestrator to write turns back."""

    async def put(self, collection: str, record_id: str, record: dict[str, Any]) -> None:
        ...


class ProviderAdapterPort(Protocol):
    """Uniform contract every provider adapter satisfies."""

    provider_id: str
    capabilities: ProviderCapabilities

    async def init(self) -> None:
        ...

    async def health_check(self) -> bool:
        ...

    async def send_prompt(
        self,
        request: PromptRequest,
        on_chunk: StreamChunkCallback | None = None,
        signal: AbortSignal | None = None,
    ) -> ProviderEnvelope:
        ...

    async def send_continuation(
        self,
        prompt: str,
        provider_context: dict[str, Any] | None,
        session_id: str | None = None,
        on_chunk: StreamChunkCallback | None = None,
        signal: AbortSignal | None = None,
    ) -> ProviderEnvelope:
        ...

    async def ask(
        self,
        prompt: str,
        provider_context: dict[str, Any] | None = None,
        session_id: str | None = None,
        on_chunk: StreamChunkCallback | None = None,
        signal: AbortSignal | None = None,
    ) -> ProviderEnvelope:
        ...


class ProviderRegistryPort(Protocol):
    """Adapter lookup and availability by provider identifier."""

    def get_adapter(self, provider_id: str) -> Optional[ProviderAdapterPort]:
        ...

    def is_available(self, provider_id: str) -> bool:
        ...
