"""Tests for the provider adapter base class and the concrete adapters."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from chorus_platform.providers import LLMProviderAdapter, SessionProviderAdapter
from chorus_platform.providers.base import ExchangeResult, normalize_text
from chorus_platform.runtime.llm.base import LLMResponse
from core.domain import PromptRequest
from core.signals import AbortSignal


def _strip_latency(envelope):
    payload = envelope.to_dict()
    payload.pop("latency_ms")
    return payload


# ---------------------------------------------------------------------------
# normalize_text
# ---------------------------------------------------------------------------

class _Obj:
    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)


@pytest.mark.parametrize("payload, expected", [
    (None, ""),
    ("plain", "plain"),
    ({"text": "from text"}, "from text"),
    (_Obj(text="attr text"), "attr text"),
    ({"candidates": [{"content": "first"}, {"content": "second"}]}, "first"),
    ({"candidates": [{"content": {"text": "nested"}}]}, "nested"),
    ({"text": "wins", "candidates": [{"content": "loses"}]}, "wins"),
    ({"answer": 42}, '{"answer": 42}'),
])
def test_normalize_text(payload, expected):
    assert normalize_text(payload) == expected


# ---------------------------------------------------------------------------
# Base contract
# ---------------------------------------------------------------------------

class TestDispatch:

    async def test_ask_without_context_starts_fresh(self, scripted_adapter):
        adapter = scripted_adapter("claude", ["hello"])
        envelope = await adapter.ask("hi")
        assert envelope.ok is True
        assert envelope.partial is False
        assert envelope.text == "hello"
        assert envelope.meta["cursor"] == "claude-cursor-1"
        assert envelope.meta["model"] == "default-model"
        assert adapter.calls == [("hi", None, "default-model")]

    @pytest.mark.parametrize("context", [
        {"cursor": "k1", "model": "sonnet"},
        {"meta": {"cursor": "k1", "model": "sonnet"}},
    ])
    async def test_ask_with_cursor_continues(self, scripted_adapter, context):
        adapter = scripted_adapter("claude", ["again"])
        envelope = await adapter.ask("next", context)
        assert envelope.ok is True
        assert adapter.calls == [("next", "k1", "sonnet")]

    async def test_context_without_cursor_passes_model(self, scripted_adapter):
        adapter = scripted_adapter("claude", ["x"])
        await adapter.ask("p", {"model": "haiku"})
        assert adapter.calls == [("p", None, "haiku")]

    async def test_send_prompt_model_from_meta(self, scripted_adapter):
        adapter = scripted_adapter("claude", ["x"])
        await adapter.send_prompt(PromptRequest("p", meta={"model": "opus"}))
        assert adapter.calls[0][2] == "opus"

    async def test_continuation_without_cursor_equals_send_prompt(self, scripted_adapter):
        a = scripted_adapter("claude", [ExchangeResult("same", cursor="c", token="t")])
        b = scripted_adapter("claude", [ExchangeResult("same", cursor="c", token="t")])

        via_continuation = await a.send_continuation("prompt", {"conversation_id": "ignored"}, "s1")
        via_prompt = await b.send_prompt(PromptRequest("prompt", session_id="s1"))

        assert _strip_latency(via_continuation) == _strip_latency(via_prompt)
        assert a.calls == b.calls

    async def test_exchange_result_meta(self, scripted_adapter):
        adapter = scripted_adapter("gemini", [
            ExchangeResult({"text": "ok"}, cursor="c9", token="tok", model_name="gemini-2.5", model="pro"),
        ])
        envelope = await adapter.ask("q")
        assert envelope.meta == {"cursor": "c9", "token": "tok", "model_name": "gemini-2.5", "model": "pro"}

    async def test_init_runs_setup_once(self, scripted_adapter):
        adapter = scripted_adapter("claude", ["a", "b"])
        adapter._setup = AsyncMock()
        await adapter.ask("1")
        await adapter.ask("2")
        adapter._setup.assert_awaited_once()


class TestFailures:

    async def test_exchange_error_becomes_error_envelope(self, scripted_adapter):
        adapter = scripted_adapter("claude", [ConnectionResetError("peer reset")])
        envelope = await adapter.ask("hi")
        assert envelope.ok is False
        assert envelope.text is None
        assert envelope.error_code == "transport"
        assert envelope.meta["error"] == "peer reset"
        assert envelope.meta["suppressed"] is False
        assert "partial" not in envelope.to_dict()

    async def test_continuation_failure_echoes_cursor_and_model(self, scripted_adapter):
        adapter = scripted_adapter("claude", [RuntimeError("boom")])
        envelope = await adapter.send_continuation("p", {"cursor": "k1", "model": "sonnet"})
        assert envelope.ok is False
        assert envelope.meta["cursor"] == "k1"
        assert envelope.meta["model"] == "sonnet"
        assert envelope.error_code == "unknown"

    async def test_auth_error_suppressed_for_session_kind(self, scripted_adapter):
        adapter = scripted_adapter("gemini", [RuntimeError("not logged in")], kind="gemini-session")
        envelope = await adapter.ask("hi")
        assert envelope.error_code == "auth"
        assert envelope.meta["suppressed"] is True

    async def test_already_aborted_signal(self, scripted_adapter):
        adapter = scripted_adapter("claude", ["never"])
        signal = AbortSignal()
        signal.abort()
        envelope = await adapter.ask("hi", signal=signal)
        assert envelope.ok is False
        assert envelope.error_code == "aborted"
        assert envelope.meta["suppressed"] is True

    async def test_abort_in_flight(self, scripted_adapter):
        adapter = scripted_adapter("claude", [])
        started = asyncio.Event()

        async def slow_exchange(prompt, cursor, model, emit, signal):
            started.set()
            await asyncio.sleep(10)

        adapter._exchange = slow_exchange
        signal = AbortSignal()
        task = asyncio.create_task(adapter.ask("hi", signal=signal))
        await started.wait()
        signal.abort("user")
        envelope = await asyncio.wait_for(task, 1)
        assert envelope.error_code == "aborted"
        assert envelope.meta["details"] == {"reason": "user"}


class TestChunks:

    async def test_non_streaming_emits_one_synthetic_chunk(self, scripted_adapter):
        adapter = scripted_adapter("gemini", ["full answer"])
        chunks = []
        envelope = await adapter.ask("q", on_chunk=chunks.append)
        assert [c.text for c in chunks] == ["full answer"]
        assert chunks[0].partial is True
        assert envelope.partial is False

    async def test_streaming_emits_deltas(self, scripted_adapter):
        adapter = scripted_adapter("claude", ["Hello world"], streaming=True, chunks=["Hello", " world"])
        chunks = []
        envelope = await adapter.ask("q", on_chunk=chunks.append)
        assert [c.text for c in chunks] == ["Hello", " world"]
        assert all(c.partial and c.ok for c in chunks)
        assert envelope.text == "Hello world"

    async def test_no_chunks_without_callback(self, scripted_adapter):
        adapter = scripted_adapter("claude", ["x"], streaming=True, chunks=["x"])
        assert (await adapter.ask("q")).text == "x"


class TestHealth:

    async def test_health_check_never_raises(self, scripted_adapter):
        adapter = scripted_adapter("claude", [])
        adapter.healthy = RuntimeError("probe crashed")
        assert await adapter.health_check() is False

    async def test_health_check_true(self, scripted_adapter):
        assert await scripted_adapter("claude", []).health_check() is True


# ---------------------------------------------------------------------------
# SessionProviderAdapter
# ---------------------------------------------------------------------------

class TestSessionProviderAdapter:

    def _controller(self, payload, available=True):
        controller = MagicMock()
        controller.is_available = MagicMock(return_value=available)
        controller.session.ask = AsyncMock(return_value=payload)
        return controller

    def test_capabilities(self):
        adapter = SessionProviderAdapter("gemini", self._controller("x"))
        assert adapter.capabilities.needs_dnr is True
        assert adapter.capabilities.supports_streaming is False
        assert adapter.kind == "gemini-session"

    async def test_reads_cursor_and_model_name(self):
        controller = self._controller(
            {"text": "answer", "conversation_id": "conv-1", "token": "tk", "model_name": "gemini-2.5-pro"}
        )
        adapter = SessionProviderAdapter("gemini", controller, model="pro")
        envelope = await adapter.ask("q")
        assert envelope.text == "answer"
        assert envelope.meta == {
            "cursor": "conv-1", "token": "tk", "model_name": "gemini-2.5-pro", "model": "pro",
        }
        prompt, signal, cursor, model = controller.session.ask.await_args.args
        assert (prompt, cursor, model) == ("q", None, "pro")

    async def test_continuation_passes_cursor(self):
        controller = self._controller("plain answer")
        adapter = SessionProviderAdapter("gemini", controller)
        envelope = await adapter.ask("q", {"meta": {"cursor": "conv-1"}})
        assert envelope.text == "plain answer"
        assert controller.session.ask.await_args.args[2] == "conv-1"

    async def test_login_error_is_suppressed(self):
        controller = self._controller(None)
        controller.session.ask.side_effect = RuntimeError("Please login to continue")
        envelope = await SessionProviderAdapter("gemini", controller).ask("q")
        assert envelope.error_code == "auth"
        assert envelope.meta["suppressed"] is True

    async def test_health_sync_and_async(self):
        assert await SessionProviderAdapter("g", self._controller("x", available=False)).health_check() is False
        controller = self._controller("x")
        controller.is_available = AsyncMock(return_value=True)
        assert await SessionProviderAdapter("g", controller).health_check() is True


# ---------------------------------------------------------------------------
# LLMProviderAdapter
# ---------------------------------------------------------------------------


def _ignore(chunk):
    pass


class TestLLMProviderAdapter:

    def _adapter(self, client, **kwargs):
        return LLMProviderAdapter("claude", client, backend="anthropic", default_model="sonnet", **kwargs)

    async def test_streams_deltas_and_returns_final(self, mock_llm_client, mock_streaming_response):
        stream = mock_streaming_response(
            "Hello world.", ["Hello ", "world."], model_name="claude-sonnet-x", response_id="msg_1"
        )
        mock_llm_client.stream_message = stream
        chunks = []
        envelope = await self._adapter(mock_llm_client).ask("hi", on_chunk=chunks.append)

        assert [c.text for c in chunks] == ["Hello ", "world."]
        assert envelope.text == "Hello world."
        assert envelope.meta["token"] == "msg_1"
        assert envelope.meta["model_name"] == "claude-sonnet-x"
        assert envelope.meta["cursor"]
        assert stream.calls[0]["model"] == "claude-sonnet-4-5-20250929"
        assert stream.calls[0]["messages"] == [{"role": "user", "content": "hi"}]
        mock_llm_client.create_message.assert_not_awaited()

    async def test_without_callback_uses_create_message(self, mock_llm_client):
        mock_llm_client.create_message.return_value = LLMResponse(text="Whole answer.", response_id="msg_2")
        envelope = await self._adapter(mock_llm_client).ask("hi")

        assert envelope.text == "Whole answer."
        assert envelope.meta["token"] == "msg_2"
        kwargs = mock_llm_client.create_message.await_args.kwargs
        assert kwargs["model"] == "claude-sonnet-4-5-20250929"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        mock_llm_client.stream_message.assert_not_called()

    async def test_continuation_replays_transcript(self, mock_llm_client):
        mock_llm_client.create_message.return_value = LLMResponse(text="Answer.")
        adapter = self._adapter(mock_llm_client)

        first = await adapter.ask("first")
        await adapter.ask("second", {"meta": {"cursor": first.meta["cursor"]}})

        assert mock_llm_client.create_message.await_args_list[1].kwargs["messages"] == [
            {"role": "user", "content": "first"},
            {"role": "assistant", "content": "Answer."},
            {"role": "user", "content": "second"},
        ]

    async def test_unknown_cursor_starts_fresh(self, mock_llm_client):
        mock_llm_client.create_message.return_value = LLMResponse(text="ok")
        envelope = await self._adapter(mock_llm_client).ask("q", {"cursor": "lost"})
        assert envelope.ok is True
        assert mock_llm_client.create_message.await_args.kwargs["messages"] == [{"role": "user", "content": "q"}]

    async def test_transcripts_are_bounded(self, mock_llm_client):
        mock_llm_client.create_message.return_value = LLMResponse(text="a")
        adapter = self._adapter(mock_llm_client, max_transcripts=2)

        envelope = await adapter.ask("turn 0")
        for i in range(1, 10):
            envelope = await adapter.ask(f"turn {i}", {"cursor": envelope.meta["cursor"]})

        assert len(adapter._transcripts) == 2
        await adapter.ask("turn 10", {"cursor": envelope.meta["cursor"]})
        messages = mock_llm_client.create_message.await_args.kwargs["messages"]
        assert len(messages) == 21
        assert messages[0] == {"role": "user", "content": "turn 0"}

    async def test_least_recently_used_transcript_is_evicted(self, mock_llm_client):
        mock_llm_client.create_message.return_value = LLMResponse(text="a")
        adapter = self._adapter(mock_llm_client, max_transcripts=2)

        old = await adapter.ask("old")
        other = await adapter.ask("other")
        # Continuing "old" marks it as recently used, so "other" goes first.
        await adapter.ask("again", {"cursor": old.meta["cursor"]})

        assert old.meta["cursor"] in adapter._transcripts
        assert other.meta["cursor"] not in adapter._transcripts

    @pytest.mark.parametrize("requested, expected_id", [
        ("haiku", "claude-haiku-4-5-20251001"),
        ("claude-opus-4-6", "claude-opus-4-6"),
        ("gpt-4o-mini", "claude-sonnet-4-5-20250929"),
        ("no-such-model", "claude-sonnet-4-5-20250929"),
    ])
    async def test_model_selection(self, mock_llm_client, requested, expected_id):
        mock_llm_client.create_message.return_value = LLMResponse(text="ok")
        await self._adapter(mock_llm_client).ask("q", {"model": requested})
        assert mock_llm_client.create_message.await_args.kwargs["model"] == expected_id

    async def test_stream_without_final_is_malformed(self, mock_llm_client):
        async def _stream(**kwargs):
            yield "partial"

        mock_llm_client.stream_message = _stream
        envelope = await self._adapter(mock_llm_client).ask("q", on_chunk=_ignore)
        assert envelope.ok is False
        assert envelope.error_code == "malformed"

    async def test_sdk_error_is_classified(self, mock_llm_client):
        class RateLimitError(Exception):
            pass

        mock_llm_client.create_message.side_effect = RateLimitError("429")
        envelope = await self._adapter(mock_llm_client).ask("q")
        assert envelope.error_code == "rate_limit"

    async def test_stream_with_only_final_response(self, mock_llm_client):
        async def _stream(**kwargs):
            yield LLMResponse(text="only final")

        mock_llm_client.stream_message = _stream
        envelope = await self._adapter(mock_llm_client).ask("q", on_chunk=_ignore)
        assert envelope.text == "only final"
        assert envelope.meta["model_name"] == "claude-sonnet-4-5-20250929"
