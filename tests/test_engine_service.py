"""Tests for the shared execution engine and its lazy coordinator."""

import asyncio

import pytest

import agent_gateway.tools.mcp_client as mcp_client_module
from agent_gateway.exceptions import EngineInitError, ModelProviderError, StreamFailure
from agent_gateway.messages import AssistantMessage, SystemMessage, ToolExecutionResultMessage, UserMessage
from agent_gateway.server.services.engine_service import EngineCoordinator
from agent_gateway.tools.builtin_tools import CalculatorTool
from agent_gateway.tools.mcp_client import MCPClient

from conftest import (
    ModelStep,
    ScriptedModelClient,
    build_engine,
    coordinator_for,
    hanging_transport,
    text_step,
    tool_step,
)


class FakeToolConnection:
    """Stands in for a connected MCP client; flip ``is_connected`` to drop it."""

    def __init__(self):
        self.is_connected = True
        self.disconnects = 0

    async def disconnect(self):
        self.is_connected = False
        self.disconnects += 1


async def _collect(stream):
    return [snapshot async for snapshot in stream]


class TestEngineCoordinator:
    """The engine is built at most once, on demand."""

    async def test_concurrent_first_callers_share_one_construction(self, engine):
        calls = 0

        async def factory():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.02)
            return engine

        coordinator = EngineCoordinator(factory, init_timeout=1.0)
        results = await asyncio.gather(*(coordinator.ensure_engine() for _ in range(5)))

        assert calls == 1
        assert all(result is engine for result in results)
        assert coordinator.is_ready
        assert await coordinator.ensure_engine() is engine
        assert calls == 1

    async def test_failure_is_shared_then_retried(self, engine):
        calls = 0

        async def factory():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            if calls == 1:
                raise ConnectionError("tool provider unreachable")
            return engine

        coordinator = EngineCoordinator(factory, init_timeout=1.0)
        results = await asyncio.gather(
            *(coordinator.ensure_engine() for _ in range(3)), return_exceptions=True
        )

        assert calls == 1
        assert all(isinstance(r, EngineInitError) for r in results)
        assert "tool provider unreachable" in results[0].message
        assert not coordinator.is_ready

        assert await coordinator.ensure_engine() is engine
        assert calls == 2

    async def test_slow_construction_times_out(self, engine):
        async def factory():
            await asyncio.sleep(5)
            return engine

        coordinator = EngineCoordinator(factory, init_timeout=0.05)
        with pytest.raises(EngineInitError) as exc_info:
            await coordinator.ensure_engine()

        assert exc_info.value.details == {"timeout": 0.05}
        assert not coordinator.is_ready
        await coordinator.shutdown()

    async def test_shutdown_closes_constructed_engine(self, engine, model_client):
        coordinator = coordinator_for(engine)
        await coordinator.ensure_engine()

        await coordinator.shutdown()

        assert model_client.closed
        assert not coordinator.is_ready

    async def test_stream_invoke_reports_construction_failure(self):
        async def factory():
            raise RuntimeError("no credentials")

        coordinator = EngineCoordinator(factory, init_timeout=1.0)
        with pytest.raises(EngineInitError):
            await _collect(coordinator.stream_invoke("t1", "hi"))

    async def test_engine_with_dropped_tool_connection_is_rebuilt(self):
        built = []

        async def factory():
            engine = build_engine(ScriptedModelClient([text_step("ok")]))
            engine.mcp_client = FakeToolConnection()
            built.append(engine)
            return engine

        coordinator = EngineCoordinator(factory, init_timeout=1.0)
        first = await coordinator.ensure_engine()
        await _collect(first.stream_invoke("t1", "hello"))

        first.mcp_client.is_connected = False
        assert not coordinator.is_ready

        results = await asyncio.gather(coordinator.ensure_engine(), coordinator.ensure_engine())
        second = results[0]

        assert results[1] is second
        assert second is not first
        assert len(built) == 2
        assert first.mcp_client.disconnects == 1
        assert first.model_client.closed
        # histories carry over to the rebuilt engine
        assert second.memory_store is first.memory_store
        assert len(second.memory_store.get("t1")) == 3
        assert await coordinator.ensure_engine() is second
        assert coordinator.is_ready

    async def test_shutdown_during_tool_connect_leaves_no_connection_task(self, monkeypatch):
        entered, exited = asyncio.Event(), []
        monkeypatch.setattr(mcp_client_module, "streamablehttp_client", hanging_transport(entered, exited))
        clients = []

        async def factory():
            client = MCPClient()
            clients.append(client)
            await client.connect("http://tools.test/mcp")
            return build_engine(ScriptedModelClient([text_step("ok")]))

        coordinator = EngineCoordinator(factory, init_timeout=5.0)
        waiter = asyncio.create_task(coordinator.ensure_engine())
        await entered.wait()
        runner = clients[0]._runner

        await coordinator.shutdown()
        await asyncio.gather(waiter, return_exceptions=True)

        assert runner.done()
        assert exited == ["http://tools.test/mcp"]
        assert not coordinator.is_ready


class TestStreamInvoke:
    """Cumulative snapshots and per-thread history."""

    async def test_snapshots_are_cumulative(self, engine):
        snapshots = await _collect(engine.stream_invoke("t1", "hi"))
        assert snapshots == ["Hello", "Hello, ", "Hello, world"]

    async def test_snapshot_resets_on_new_model_step(self):
        model = ScriptedModelClient([
            tool_step("calculator", {"expression": "2 + 2"}, "Let me ", "check"),
            text_step("The answer", " is 4"),
        ])
        engine = build_engine(model, tools=[CalculatorTool()])

        snapshots = await _collect(engine.stream_invoke("t1", "what is 2 + 2?"))

        assert snapshots == ["Let me ", "Let me check", "The answer", "The answer is 4"]
        history = engine.memory_store.get("t1").get_messages()
        assert [type(m) for m in history] == [
            SystemMessage, UserMessage, AssistantMessage, ToolExecutionResultMessage, AssistantMessage,
        ]
        assert '"result": 4' in history[3].content[0]["text"]

    async def test_tool_only_step_yields_nothing_until_text(self):
        model = ScriptedModelClient([
            tool_step("calculator", {"expression": "1 + 1"}),
            text_step("2"),
        ])
        engine = build_engine(model, tools=[CalculatorTool()])

        assert await _collect(engine.stream_invoke("t1", "1 + 1?")) == ["2"]

    async def test_history_carries_across_turns(self, engine, model_client):
        await _collect(engine.stream_invoke("t1", "first"))
        await _collect(engine.stream_invoke("t1", "second"))

        second_call = model_client.seen_messages[1]
        assert [type(m) for m in second_call] == [SystemMessage, UserMessage, AssistantMessage, UserMessage]
        assert second_call[-1].text == "second"

    async def test_threads_are_isolated(self, engine, model_client):
        await _collect(engine.stream_invoke("t1", "for thread one"))
        await _collect(engine.stream_invoke("t2", "for thread two"))

        assert [m.text for m in model_client.seen_messages[1] if isinstance(m, UserMessage)] == ["for thread two"]
        assert len(engine.memory_store.get("t1")) == 3
        assert len(engine.memory_store.get("t2")) == 3

    async def test_turns_on_one_thread_run_one_at_a_time(self):
        model = ScriptedModelClient([text_step("a", "b", "c")], delay=0.01)
        engine = build_engine(model)

        await asyncio.gather(
            _collect(engine.stream_invoke("t1", "one")),
            _collect(engine.stream_invoke("t1", "two")),
        )

        # the second turn saw the whole first turn in its history
        assert [type(m) for m in model.seen_messages[1]] == [SystemMessage, UserMessage, AssistantMessage, UserMessage]

    async def test_model_failure_raises_stream_failure_and_rolls_back(self):
        model = ScriptedModelClient([
            ModelStep("Hel", "lo", error=ModelProviderError("rate limited"), error_after=1),
        ])
        engine = build_engine(model)

        snapshots = []
        with pytest.raises(StreamFailure) as exc_info:
            async for snapshot in engine.stream_invoke("t1", "hi"):
                snapshots.append(snapshot)

        assert snapshots == ["Hel"]
        assert "rate limited" in exc_info.value.message
        assert len(engine.memory_store.get("t1")) == 0
        assert model.streams_closed == model.streams_opened

    async def test_failed_turn_keeps_earlier_history(self):
        model = ScriptedModelClient([
            text_step("ok"),
            ModelStep(error=ModelProviderError("boom")),
        ])
        engine = build_engine(model)
        await _collect(engine.stream_invoke("t1", "first"))

        with pytest.raises(StreamFailure):
            await _collect(engine.stream_invoke("t1", "second"))

        assert [type(m) for m in engine.memory_store.get("t1").get_messages()] == [
            SystemMessage, UserMessage, AssistantMessage,
        ]

    async def test_abort_stops_model_and_rolls_back(self):
        model = ScriptedModelClient([text_step("a", "b", "c", "d")])
        engine = build_engine(model)

        stream = engine.stream_invoke("t1", "hi")
        assert await stream.__anext__() == "a"
        assert await stream.__anext__() == "ab"
        await stream.aclose()

        assert model.streams_opened == 1
        assert model.streams_closed == 1
        assert len(engine.memory_store.get("t1")) == 0

        # the thread is usable again after the abort
        assert (await _collect(engine.stream_invoke("t1", "again")))[-1] == "abcd"
