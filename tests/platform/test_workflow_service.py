"""Tests for chorus_platform.services.workflow_service.WorkflowOrchestrator."""

import pytest

from chorus_platform.persistence import InMemorySessionStore
from chorus_platform.providers.base import ExchangeResult
from chorus_platform.services import WorkflowOrchestrator
from core.errors import InvalidRequestError, MissingSessionIdError, TurnNotFoundError


def _ids(*values):
    it = iter(values)
    return lambda: next(it)


def _store_with_contexts(provider_contexts, **turn_fields):
    turn = {"id": "t1", "session_id": "s1", "user_prompt": "first question",
            "provider_contexts": provider_contexts, "created_at": 1}
    turn.update(turn_fields)
    return InMemorySessionStore({
        "sessions": {"s1": {"id": "s1", "last_turn_id": "t1"}},
        "turns": {"t1": turn},
    })


class TestInitialize:

    async def test_creates_session_and_turn(self, scripted_adapter, registry_with):
        claude = scripted_adapter("claude", ["Claude says hi"])
        gemini = scripted_adapter("gemini", ["Gemini says hi"])
        store = InMemorySessionStore()
        orchestrator = WorkflowOrchestrator(store, registry_with(claude, gemini), id_factory=_ids("s-new", "t-new"))

        turn = await orchestrator.run({"type": "initialize", "providers": ["claude", "gemini"]}, "hello")

        assert turn.id == "t-new"
        assert turn.session_id == "s-new"
        assert {pid: r.text for pid, r in turn.batch_responses.items()} == {
            "claude": "Claude says hi",
            "gemini": "Gemini says hi",
        }
        assert all(r.status == "completed" for r in turn.batch_responses.values())
        assert turn.provider_contexts["claude"] == {"cursor": "claude-cursor-1", "model": "default-model"}
        assert "is_optimistic" not in turn.meta
        assert claude.calls == [("hello", None, "default-model")]

        assert (await store.get("sessions", "s-new"))["last_turn_id"] == "t-new"
        assert (await store.get("turns", "t-new"))["user_prompt"] == "hello"

    async def test_prompt_required(self, registry_with):
        orchestrator = WorkflowOrchestrator(InMemorySessionStore(), registry_with())
        with pytest.raises(InvalidRequestError):
            await orchestrator.run({"type": "initialize", "providers": ["claude"]}, "")

    async def test_updates_are_reported_in_order(self, scripted_adapter, registry_with):
        claude = scripted_adapter("claude", ["Hello world"], streaming=True, chunks=["Hello", " world"])
        updates = []
        orchestrator = WorkflowOrchestrator(
            InMemorySessionStore(), registry_with(claude),
            streaming_provider_ids=["claude"], id_factory=_ids("s", "t"),
        )
        turn = await orchestrator.run(
            {"type": "initialize", "providers": ["claude"]}, "q", on_update=updates.append
        )
        assert [(u.text, u.status) for u in updates] == [
            ("Hello", "streaming"),
            (" world", "streaming"),
            ("", "completed"),
        ]
        assert turn.batch_responses["claude"].text == "Hello world"


class TestExtend:

    async def test_continues_and_joins(self, scripted_adapter, registry_with):
        store = _store_with_contexts({"claude": {"meta": {"cursor": "k1", "model": "sonnet"}}})
        claude = scripted_adapter("claude", [ExchangeResult("continued", cursor="k2")])
        gemini = scripted_adapter("gemini", ["fresh"])
        orchestrator = WorkflowOrchestrator(store, registry_with(claude, gemini), id_factory=_ids("t2"))

        turn = await orchestrator.run(
            {"type": "extend", "session_id": "s1", "providers": ["claude", "gemini"]}, "follow up"
        )

        assert claude.calls == [("follow up", "k1", "sonnet")]
        assert gemini.calls == [("follow up", None, "default-model")]
        assert turn.session_id == "s1"
        assert turn.meta["parent_turn_id"] == "t1"
        assert turn.provider_contexts["claude"] == {"cursor": "k2", "model": "sonnet"}
        assert (await store.get("sessions", "s1"))["last_turn_id"] == "t2"

    async def test_reply_without_cursor_keeps_previous_cursor(self, scripted_adapter, registry_with):
        gemini = scripted_adapter("gemini", [
            ExchangeResult("first", cursor="c1"),
            ExchangeResult("second"),
            ExchangeResult("third"),
        ], kind="gemini-session")
        store = InMemorySessionStore()
        orchestrator = WorkflowOrchestrator(store, registry_with(gemini), id_factory=_ids("s1", "t1", "t2", "t3"))

        await orchestrator.run({"type": "initialize", "providers": ["gemini"]}, "hello")
        second = await orchestrator.run({"type": "extend", "session_id": "s1", "providers": ["gemini"]}, "again")
        await orchestrator.run({"type": "extend", "session_id": "s1", "providers": ["gemini"]}, "more")

        assert second.provider_contexts["gemini"] == {"cursor": "c1", "model": "default-model"}
        assert [cursor for _, cursor, _ in gemini.calls] == [None, "c1", "c1"]

    async def test_failure_is_isolated_and_keeps_previous_context(self, scripted_adapter, registry_with):
        store = _store_with_contexts({"claude": {"cursor": "k1"}})
        claude = scripted_adapter("claude", [ConnectionResetError("reset")])
        gemini = scripted_adapter("gemini", [RuntimeError("not logged in")], kind="gemini-session")
        chatgpt = scripted_adapter("chatgpt", ["fine"])
        orchestrator = WorkflowOrchestrator(store, registry_with(claude, gemini, chatgpt), id_factory=_ids("t2"))

        turn = await orchestrator.run(
            {"type": "extend", "session_id": "s1", "providers": ["claude", "gemini", "chatgpt"]}, "q"
        )

        assert turn.batch_responses["chatgpt"].status == "completed"
        assert turn.batch_responses["claude"].status == "error"
        assert turn.batch_responses["claude"].meta["error_code"] == "transport"
        assert turn.batch_responses["gemini"].meta == {
            "error_code": "auth", "error": "not logged in", "suppressed": True,
        }
        assert turn.provider_contexts["claude"] == {"cursor": "k1"}
        assert "gemini" not in turn.provider_contexts
        assert "chatgpt" in turn.provider_contexts

    async def test_unavailable_provider(self, scripted_adapter, registry_with):
        store = _store_with_contexts({})
        orchestrator = WorkflowOrchestrator(
            store, registry_with(scripted_adapter("claude", ["ok"])), id_factory=_ids("t2")
        )
        turn = await orchestrator.run(
            {"type": "extend", "session_id": "s1", "providers": ["claude", "grok"]}, "q"
        )
        assert turn.batch_responses["grok"].status == "error"
        assert turn.batch_responses["grok"].meta == {"error_code": "unavailable"}
        assert turn.batch_responses["claude"].status == "completed"

    async def test_resolution_error_calls_no_provider(self, scripted_adapter, registry_with):
        claude = scripted_adapter("claude", ["never"])
        orchestrator = WorkflowOrchestrator(_store_with_contexts({}), registry_with(claude))
        with pytest.raises(MissingSessionIdError):
            await orchestrator.run({"type": "extend", "providers": ["claude"]}, "q")
        assert claude.calls == []


class TestRecompute:

    def _store(self):
        return _store_with_contexts(
            {"claude": {"cursor": "k1"}, "gemini": {"cursor": "g1"}},
            batch_responses={
                "claude": {"provider_id": "claude", "text": "old claude", "status": "completed", "created_at": 1},
                "gemini": {"provider_id": "gemini", "text": "gemini stays", "status": "completed", "created_at": 1},
            },
            synthesis_responses={
                "claude": [{"provider_id": "claude", "text": "first synthesis", "status": "completed", "created_at": 1}],
            },
        )

    def _request(self, **overrides):
        request = {"type": "recompute", "session_id": "s1", "source_turn_id": "t1",
                   "step_type": "batch", "target_provider": "claude"}
        request.update(overrides)
        return request

    async def test_batch_replaces_only_target(self, scripted_adapter, registry_with):
        store = self._store()
        claude = scripted_adapter("claude", [ExchangeResult("new claude", cursor="k9")])
        orchestrator = WorkflowOrchestrator(store, registry_with(claude), id_factory=_ids())

        turn = await orchestrator.run(self._request())

        assert turn.id == "t1"
        assert claude.calls == [("first question", "k1", "default-model")]
        assert turn.batch_responses["claude"].text == "new claude"
        assert turn.batch_responses["gemini"].text == "gemini stays"
        assert turn.provider_contexts == {"claude": {"cursor": "k9", "model": "default-model"}, "gemini": {"cursor": "g1"}}
        assert (await store.get("turns", "t1"))["batch_responses"]["claude"]["text"] == "new claude"
        assert (await store.get("sessions", "s1"))["last_turn_id"] == "t1"

    async def test_synthesis_appends_entry(self, scripted_adapter, registry_with):
        claude = scripted_adapter("claude", ["second synthesis"])
        orchestrator = WorkflowOrchestrator(self._store(), registry_with(claude))
        turn = await orchestrator.run(self._request(step_type="synthesis"), "synthesize")

        assert [r.text for r in turn.synthesis_responses["claude"]] == ["first synthesis", "second synthesis"]
        assert turn.batch_responses["claude"].text == "old claude"
        assert claude.calls[0][0] == "synthesize"

    async def test_failure_keeps_context(self, scripted_adapter, registry_with):
        claude = scripted_adapter("claude", [RuntimeError("boom")])
        orchestrator = WorkflowOrchestrator(self._store(), registry_with(claude))
        turn = await orchestrator.run(self._request())
        assert turn.batch_responses["claude"].status == "error"
        assert turn.provider_contexts["claude"] == {"cursor": "k1"}

    async def test_missing_source_turn(self, scripted_adapter, registry_with):
        orchestrator = WorkflowOrchestrator(self._store(), registry_with(scripted_adapter("claude", [])))
        with pytest.raises(TurnNotFoundError):
            await orchestrator.run(self._request(source_turn_id="t404"))


async def test_default_id_factory_generates_unique_ids(scripted_adapter, registry_with):
    orchestrator = WorkflowOrchestrator(InMemorySessionStore(), registry_with(scripted_adapter("claude", ["a", "b"])))
    first = await orchestrator.run({"type": "initialize", "providers": ["claude"]}, "1")
    second = await orchestrator.run({"type": "initialize", "providers": ["claude"]}, "2")
    assert len({first.id, first.session_id, second.id, second.session_id}) == 4
