"""Tests for the chat streaming endpoint."""

import asyncio
import json
import re

import httpx

from agent_gateway.exceptions import EngineInitError, ModelProviderError
from agent_gateway.messages import TextDeltaChunk, UserMessage
from agent_gateway.server.app import create_app
from agent_gateway.server.routes.chat import chat_event_stream, new_thread_id
from agent_gateway.server.services.engine_service import EngineCoordinator
from agent_gateway.streaming.codec import SSEDecoder, decode
from agent_gateway.streaming.events import ChunkEvent, CompleteEvent, ConnectedEvent, ErrorEvent

from conftest import ModelStep, ScriptedModelClient, build_engine, coordinator_for, text_step

THREAD_ID_PATTERN = re.compile(r"^session-\d{13}-[0-9a-z]{9}$")


def _events(response: httpx.Response):
    decoder = SSEDecoder()
    return decoder.feed(response.content) + decoder.flush()


class StallingModelClient(ScriptedModelClient):
    """Sends one delta, then waits forever for the rest of the step."""

    async def generate_stream(self, messages, tools=None, **kwargs):
        self.calls += 1
        self.streams_opened += 1
        try:
            yield TextDeltaChunk("partial")
            await asyncio.Event().wait()
            yield TextDeltaChunk(" answer")
        finally:
            self.streams_closed += 1


def _chat_scope(path: str = "/api/chat/stream") -> dict:
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": [(b"host", b"testserver"), (b"content-type", b"application/json")],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }


class TestThreadIds:
    def test_generated_ids_have_expected_shape(self):
        assert THREAD_ID_PATTERN.match(new_thread_id())

    def test_generated_ids_are_unique(self):
        assert len({new_thread_id() for _ in range(200)}) == 200


class TestChatStream:
    """POST /api/chat/stream event sequences."""

    async def test_new_conversation_event_sequence(self, client):
        response = await client.post("/api/chat/stream", json={"message": "hi"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"

        events = _events(response)
        assert isinstance(events[0], ConnectedEvent)
        assert THREAD_ID_PATTERN.match(events[0].sessionId)
        assert [e.content for e in events[1:-1]] == ["Hello", "Hello, ", "Hello, world"]
        assert all(isinstance(e, ChunkEvent) for e in events[1:-1])
        assert isinstance(events[-1], CompleteEvent)
        assert events[-1].content == "Hello, world"
        assert events[-1].sessionId == events[0].sessionId

    async def test_existing_session_id_continues_thread(self, client, engine, model_client):
        await client.post("/api/chat/stream", json={"message": "first", "sessionId": "session-1-abc"})
        response = await client.post("/api/chat/stream", json={"message": "second", "sessionId": "session-1-abc"})

        events = _events(response)
        assert events[0].sessionId == "session-1-abc"
        assert events[-1].sessionId == "session-1-abc"
        user_turns = [m.text for m in model_client.seen_messages[1] if isinstance(m, UserMessage)]
        assert user_turns == ["first", "second"]
        assert "session-1-abc" in engine.memory_store

    async def test_empty_message_is_rejected(self, client):
        response = await client.post("/api/chat/stream", json={"message": ""})
        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}

    async def test_missing_message_is_rejected(self, client, model_client):
        response = await client.post("/api/chat/stream", json={"sessionId": "session-1-abc"})
        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}
        assert model_client.calls == 0

    async def test_model_failure_ends_with_error_event(self, settings, tool_server, registry):
        model = ScriptedModelClient([ModelStep("Par", "tial", error=ModelProviderError("upstream 503"), error_after=1)])
        engine = build_engine(model)
        app = create_app(settings, coordinator=coordinator_for(engine), tool_server=tool_server, registry=registry)

        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
            response = await client.post("/api/chat/stream", json={"message": "hi"})

        events = _events(response)
        assert response.status_code == 200
        assert [type(e) for e in events] == [ConnectedEvent, ChunkEvent, ErrorEvent]
        assert "upstream 503" in events[-1].error

    async def test_engine_init_failure_ends_with_error_event(self, settings, tool_server, registry):
        async def factory():
            raise RuntimeError("OPENAI_API_KEY is not set")

        app = create_app(
            settings,
            coordinator=EngineCoordinator(factory, init_timeout=1.0),
            tool_server=tool_server,
            registry=registry,
        )
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
            response = await client.post("/api/chat/stream", json={"message": "hi"})

        events = _events(response)
        assert [type(e) for e in events] == [ConnectedEvent, ErrorEvent]
        assert "OPENAI_API_KEY" in events[-1].error


class TestChatEventStream:
    """Frame generator driven directly, as the server does."""

    async def test_frames_are_encoded_events(self, coordinator):
        frames = [frame async for frame in chat_event_stream(coordinator, "t1", "hi")]

        assert all(frame.endswith("\n\n") for frame in frames)
        assert decode(frames[0]) == ConnectedEvent(sessionId="t1")
        assert isinstance(decode(frames[-1]), CompleteEvent)

    async def test_client_abort_stops_turn_and_rolls_back(self):
        model = ScriptedModelClient([text_step("a", "b", "c", "d")])
        engine = build_engine(model)
        frames = chat_event_stream(coordinator_for(engine), "t1", "hi")

        assert isinstance(decode(await frames.__anext__()), ConnectedEvent)
        assert decode(await frames.__anext__()).content == "a"
        assert decode(await frames.__anext__()).content == "ab"
        await frames.aclose()

        assert model.streams_closed == model.streams_opened == 1
        assert len(engine.memory_store.get("t1")) == 0

    async def test_construction_error_is_reported_not_raised(self):
        async def factory():
            raise EngineInitError("boom")

        coordinator = EngineCoordinator(factory, init_timeout=1.0)
        frames = [decode(f) async for f in chat_event_stream(coordinator, "t1", "hi")]

        assert [type(e) for e in frames] == [ConnectedEvent, ErrorEvent]
        assert "boom" in frames[-1].error


class TestClientDisconnect:
    """A client that goes away mid-answer, as seen by the ASGI server."""

    async def test_disconnect_stops_turn_and_releases_thread(self, settings, tool_server, registry):
        model = StallingModelClient([text_step("unused")])
        engine = build_engine(model)
        app = create_app(settings, coordinator=coordinator_for(engine), tool_server=tool_server, registry=registry)

        body = json.dumps({"message": "hi", "sessionId": "t1"}).encode()
        disconnected = asyncio.Event()
        request_sent = False
        frames = []

        async def receive():
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": body, "more_body": False}
            await disconnected.wait()
            return {"type": "http.disconnect"}

        async def send(message):
            if message["type"] == "http.response.body" and message.get("body"):
                frames.append(message["body"])
                if b'"type":"chunk"' in message["body"]:
                    disconnected.set()

        await asyncio.wait_for(app(_chat_scope(), receive, send), timeout=5.0)

        events = SSEDecoder().feed(b"".join(frames))
        assert [type(e) for e in events] == [ConnectedEvent, ChunkEvent]
        assert events[1].content == "partial"
        assert model.streams_closed == model.streams_opened == 1
        assert len(engine.memory_store.get("t1")) == 0
        assert not engine.memory_store.lock("t1").locked()
