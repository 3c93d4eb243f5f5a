"""
Shared fixtures for chorus tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from chorus_platform.persistence import InMemorySessionStore
from chorus_platform.providers import ProviderAdapter, ProviderRegistry
from chorus_platform.providers.base import ExchangeResult
from chorus_platform.runtime.llm.base import LLMResponse
from core.domain import ProviderCapabilities, ProviderEnvelope


@pytest.fixture
def mock_llm_client():
    """Create a mock LLMClient.

    Provides both abstract methods as mocks:
    - create_message → AsyncMock returning LLMResponse
    - stream_message → async generator (override per-test)
    """
    client = AsyncMock()
    client.create_message = AsyncMock()
    client.stream_message = MagicMock()
    return client


@pytest.fixture
def mock_streaming_response():
    """Create an async generator factory that simulates client.stream_message().

    Yields str chunks followed by a final LLMResponse.

    Usage:
        client.stream_message = mock_streaming_response("Hello world.", ["Hello ", "world."])
    """
    def _make_stream(full_text: str, chunks: list[str] = None, **response_kwargs):
        if chunks is None:
            words = full_text.split(" ")
            chunks = [w + " " for w in words[:-1]] + [words[-1]]
        calls = []

        async def _stream(**kwargs):
            calls.append(kwargs)
            for chunk in chunks:
                yield chunk
            yield LLMResponse(text=full_text, **response_kwargs)

        _stream.calls = calls
        return _stream

    return _make_stream


@pytest.fixture
def make_envelope():
    """Build a ProviderEnvelope.

    Usage:
        adapter.ask = AsyncMock(return_value=make_envelope("claude", "text"))
        make_envelope("claude", ok=False, error_code="transport")
    """
    def _make(provider_id: str = "claude", text: str | None = "", ok: bool = True, **kwargs):
        if not ok:
            kwargs.setdefault("error_code", "unknown")
            kwargs.setdefault("meta", {"error": "boom"})
            text = None
        return ProviderEnvelope(provider_id=provider_id, ok=ok, text=text, **kwargs)

    return _make


class ScriptedAdapter(ProviderAdapter):
    """Adapter whose round trips are served from a list of scripted payloads.

    Each item is either a payload, an ``ExchangeResult`` or an exception to raise.
    Every call is recorded in ``calls`` as ``(prompt, cursor, model)``.
    """

    def __init__(self, provider_id, script, *, streaming=False, kind=None, chunks=None):
        super().__init__(default_model="default-model")
        self.provider_id = provider_id
        self.kind = kind or f"{provider_id}-api"
        self.capabilities = ProviderCapabilities(
            supports_streaming=streaming, supports_continuation=True
        )
        self.script = list(script)
        self.chunks = chunks or []
        self.calls = []
        self.healthy = True

    async def _check_health(self):
        if isinstance(self.healthy, Exception):
            raise self.healthy
        return self.healthy

    async def _exchange(self, prompt, cursor, model, emit, signal):
        self.calls.append((prompt, cursor, model))
        item = self.script.pop(0) if self.script else ""
        if isinstance(item, Exception):
            raise item
        if emit is not None:
            for chunk in self.chunks:
                emit(chunk)
        if isinstance(item, ExchangeResult):
            return item
        return ExchangeResult(payload=item, cursor=f"{self.provider_id}-cursor-{len(self.calls)}")


@pytest.fixture
def scripted_adapter():
    """Factory for ``ScriptedAdapter`` instances."""
    return ScriptedAdapter


@pytest.fixture
def registry_with():
    """Build a ProviderRegistry from adapters."""
    def _make(*adapters):
        registry = ProviderRegistry()
        for adapter in adapters:
            registry.register(adapter)
        return registry

    return _make


@pytest.fixture
def seeded_store():
    """A store holding session ``s1`` whose last turn ``t1`` has a nested claude context."""
    return InMemorySessionStore({
        "sessions": {"s1": {"id": "s1", "last_turn_id": "t1"}},
        "turns": {
            "t1": {
                "id": "t1",
                "session_id": "s1",
                "user_prompt": "How do CRDTs merge?",
                "provider_contexts": {"claude": {"meta": {"conversation_id": "c1"}}},
            }
        },
    })
