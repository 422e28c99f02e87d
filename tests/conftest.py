"""Pytest configuration and shared fixtures for all tests.

This module provides:
- A scripted model client that replays canned model steps
- Small tools with controllable timing and failure
- Gateway application fixtures wired to in-memory collaborators
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx
import pytest

from agent_gateway.agents.react_agent import ReActAgent
from agent_gateway.configs.settings import Settings
from agent_gateway.memory.thread_store import ThreadMemoryStore
from agent_gateway.messages import AssistantMessage, CompletionChunk, TextDeltaChunk, ToolCallMessage
from agent_gateway.model_clients.base_client import BaseModelClient
from agent_gateway.protocol.registry import SessionRegistry
from agent_gateway.protocol.tool_server import ToolServer
from agent_gateway.resilience import RetryPolicy
from agent_gateway.server.app import create_app
from agent_gateway.server.services.engine_service import EngineCoordinator, ExecutionEngine
from agent_gateway.tools.base_tool import BaseTool, ToolResult
from agent_gateway.tools.builtin_tools import CalculatorTool, GetCurrentTimeTool


# ============================================================================
# MODEL CLIENT FAKES
# ============================================================================


class ModelStep:
    """One scripted model step: text deltas, then optional tool calls or an error."""

    def __init__(
        self,
        *deltas: str,
        tool_calls: Optional[List[ToolCallMessage]] = None,
        error: Optional[Exception] = None,
        error_after: int = 0,
    ):
        self.deltas = list(deltas)
        self.tool_calls = tool_calls
        self.error = error
        self.error_after = error_after


def text_step(*deltas: str) -> ModelStep:
    return ModelStep(*deltas)


def tool_step(name: str, arguments: Dict[str, Any], *deltas: str, call_id: str = "call_1") -> ModelStep:
    return ModelStep(*deltas, tool_calls=[ToolCallMessage(id=call_id, name=name, arguments=arguments)])


class ScriptedModelClient(BaseModelClient):
    """Replays ``steps`` in order, one per ``generate_stream`` call.

    The last step is reused once the script runs out.
    """

    def __init__(self, steps: List[ModelStep], delay: float = 0.0):
        super().__init__(model="scripted-model")
        self.steps = steps
        self.delay = delay
        self.calls = 0
        self.seen_messages: List[list] = []
        self.streams_opened = 0
        self.streams_closed = 0
        self.closed = False

    async def generate_stream(self, messages, tools=None, **kwargs):
        self.seen_messages.append(list(messages))
        step = self.steps[min(self.calls, len(self.steps) - 1)]
        self.calls += 1
        self.streams_opened += 1
        try:
            for index, delta in enumerate(step.deltas):
                if step.error is not None and index == step.error_after:
                    raise step.error
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield TextDeltaChunk(delta)
            if step.error is not None:
                raise step.error
            text = "".join(step.deltas)
            yield CompletionChunk(
                AssistantMessage(
                    content=[text] if text else None,
                    tool_calls=step.tool_calls,
                    finish_reason="tool_calls" if step.tool_calls else "stop",
                )
            )
        finally:
            self.streams_closed += 1

    async def aclose(self) -> None:
        self.closed = True


# ============================================================================
# TOOL FAKES
# ============================================================================


class SlowEchoTool(BaseTool):
    """Echoes its input after ``delay`` seconds and records start/end order."""

    def __init__(self, log: Optional[list] = None):
        super().__init__(
            name="slow_echo",
            description="Echo text after a delay",
            input_schema={
                "type": "object",
                "properties": {"text": {"type": "string"}, "delay": {"type": "number"}},
                "required": ["text"],
            },
        )
        self.log = log if log is not None else []

    async def execute(self, text: str, delay: float = 0.0) -> ToolResult:
        self.log.append(("start", text))
        await asyncio.sleep(delay)
        self.log.append(("end", text))
        return ToolResult.text(text)


class FailingTool(BaseTool):
    def __init__(self, exc: Exception):
        super().__init__(name="failing", description="Always raises")
        self.exc = exc
        self.calls = 0

    async def execute(self, **kwargs) -> ToolResult:
        self.calls += 1
        raise self.exc


class BrokenToolServer(ToolServer):
    """A tool server whose listing blows up, for unrecoverable-error paths."""

    def list_tools(self):
        raise RuntimeError("tool catalogue unavailable")


NO_RETRY = RetryPolicy(max_retries=0, base_delay=0.0, jitter=0.0)


def hanging_transport(entered: asyncio.Event, exited: list):
    """An MCP transport that never finishes opening, recording when it is torn down."""

    @asynccontextmanager
    async def open_transport(url, headers=None):
        entered.set()
        try:
            await asyncio.Event().wait()
            yield None
        finally:
            exited.append(url)

    return open_transport


# ============================================================================
# ENGINE / APP FIXTURES
# ============================================================================


def build_engine(model_client: BaseModelClient, tools: Optional[List[BaseTool]] = None) -> ExecutionEngine:
    agent = ReActAgent(
        name="TestAgent",
        description="Agent under test",
        model_client=model_client,
        tools=tools or [],
        system_instructions="You are a test assistant.",
        max_iterations=5,
        verbose=False,
        tool_retry_policy=NO_RETRY,
        tool_timeout=1.0,
    )
    return ExecutionEngine(agent=agent, memory_store=ThreadMemoryStore())


def coordinator_for(engine: ExecutionEngine, init_timeout: float = 2.0) -> EngineCoordinator:
    async def factory() -> ExecutionEngine:
        return engine

    return EngineCoordinator(factory, init_timeout=init_timeout)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        OPENAI_API_KEY="test-key",
        SERVER_URL="http://testserver",
        ENGINE_INIT_TIMEOUT=2.0,
        AUTHENTICATED=True,
        USER_EMAIL="user@example.com",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def tool_server() -> ToolServer:
    return ToolServer([CalculatorTool(), GetCurrentTimeTool(), SlowEchoTool()])


@pytest.fixture
def registry(tool_server: ToolServer) -> SessionRegistry:
    return SessionRegistry(tool_server)


@pytest.fixture
def model_client() -> ScriptedModelClient:
    return ScriptedModelClient([text_step("Hello", ", ", "world")])


@pytest.fixture
def engine(model_client: ScriptedModelClient) -> ExecutionEngine:
    return build_engine(model_client, tools=[CalculatorTool()])


@pytest.fixture
def coordinator(engine: ExecutionEngine) -> EngineCoordinator:
    return coordinator_for(engine)


@pytest.fixture
def app(settings, coordinator, tool_server, registry):
    return create_app(settings, coordinator=coordinator, tool_server=tool_server, registry=registry)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


def initialize_request(request_id: int = 1, protocol_version: str = "2025-06-18") -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "initialize",
        "params": {
            "protocolVersion": protocol_version,
            "capabilities": {},
            "clientInfo": {"name": "pytest", "version": "0.0.1"},
        },
    }
