"""Engine service: one shared execution engine for every chat thread.

Responsibilities:
  1. Construct the engine lazily, exactly once, on first demand
  2. Stream one turn of a thread as cumulative answer snapshots
  3. Keep per-thread histories isolated and consistent
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from agent_gateway.agents.react_agent import ReActAgent
from agent_gateway.configs.settings import Settings
from agent_gateway.exceptions import ConfigurationError, EngineInitError, StreamFailure
from agent_gateway.memory.thread_store import ThreadMemoryStore
from agent_gateway.messages import CompletionChunk, TextDeltaChunk
from agent_gateway.model_clients.base_client import BaseModelClient
from agent_gateway.model_clients.openai.openai_client import OpenAIClient
from agent_gateway.observability import global_metrics, global_tracer
from agent_gateway.resilience import MCP_CONNECT_RETRY_POLICY, retry_async
from agent_gateway.tools.mcp_client import MCPClient
from agent_gateway.tools.mcp_tool import MCPTool

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """Model client + tool bindings + per-thread memory, shared by all threads."""

    def __init__(
        self,
        agent: ReActAgent,
        memory_store: Optional[ThreadMemoryStore] = None,
        mcp_client: Optional[MCPClient] = None,
    ):
        self.agent = agent
        self.memory_store = memory_store if memory_store is not None else ThreadMemoryStore()
        self.mcp_client = mcp_client

    @property
    def model_client(self) -> BaseModelClient:
        return self.agent.model_client

    @property
    def tools(self):
        return self.agent.tools

    @property
    def is_healthy(self) -> bool:
        """False once the tool connection the agent was built with has dropped."""
        return self.mcp_client is None or self.mcp_client.is_connected

    async def stream_invoke(self, thread_id: str, text: str) -> AsyncIterator[str]:
        """Run one turn and yield the answer so far whenever it changes.

        Each yielded value is the complete current answer. When the model
        starts a new step after tool calls, that step's text replaces the
        previous snapshot. Turns on the same thread run one at a time.

        Closing the generator early stops the model stream and the tool loop.
        A turn that does not finish is removed from the thread's history.

        Raises:
            StreamFailure: If the model or the tool loop fails
        """
        async with self.memory_store.lock(thread_id):
            memory = self.memory_store.get(thread_id)
            checkpoint = len(memory)
            completed = False
            snapshot = ""
            step_text = ""
            new_step = False

            stream = self.agent.run_stream(text, memory=memory)
            with global_tracer.start_span("chat_turn", {"thread_id": thread_id}):
                try:
                    async for item in stream:
                        if isinstance(item, TextDeltaChunk):
                            if new_step:
                                step_text = ""
                                new_step = False
                            step_text += item.text
                        elif isinstance(item, CompletionChunk):
                            if item.message.text:
                                step_text = item.message.text
                            new_step = True
                        else:
                            # tool results are not part of the answer text
                            continue

                        if step_text and step_text != snapshot:
                            snapshot = step_text
                            yield snapshot
                    completed = True
                except StreamFailure:
                    raise
                except Exception as e:
                    logger.error(f"Turn failed for thread {thread_id}: {e}")
                    raise StreamFailure(str(e) or type(e).__name__, {"thread_id": thread_id}) from e
                finally:
                    await stream.aclose()
                    if not completed:
                        memory.truncate(checkpoint)
                        logger.info(f"Rolled back incomplete turn for thread {thread_id}")

    async def aclose(self) -> None:
        if self.mcp_client is not None:
            await self.mcp_client.disconnect()
        await self.model_client.aclose()


EngineFactory = Callable[[], Awaitable[ExecutionEngine]]


class EngineCoordinator:
    """Lazily constructs the shared ``ExecutionEngine`` exactly once.

    Concurrent first callers all wait on the same construction future. A
    failed construction is reported to every waiter and then forgotten, so
    the next call starts a fresh attempt. An engine whose tool connection
    has dropped is closed and rebuilt on the next call, keeping the thread
    histories.
    """

    def __init__(self, factory: EngineFactory, init_timeout: float = 30.0):
        self._factory = factory
        self._init_timeout = init_timeout
        self._engine: Optional[ExecutionEngine] = None
        self._pending: Optional[asyncio.Future] = None
        # histories outlive a rebuilt engine
        self._carried_memory: Optional[ThreadMemoryStore] = None

    @property
    def is_ready(self) -> bool:
        return self._engine is not None and self._engine.is_healthy

    @property
    def engine(self) -> Optional[ExecutionEngine]:
        return self._engine

    async def ensure_engine(self) -> ExecutionEngine:
        """Return the engine, constructing it on first use.

        Raises:
            EngineInitError: If construction fails or exceeds ``init_timeout``
        """
        engine = self._engine
        if engine is not None:
            if engine.is_healthy:
                return engine
            await self._retire(engine)

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._construct())
            self._pending.add_done_callback(self._on_constructed)
        pending = self._pending

        try:
            # shield: a waiter giving up must not cancel construction for the others
            return await asyncio.wait_for(asyncio.shield(pending), timeout=self._init_timeout)
        except asyncio.TimeoutError as e:
            raise EngineInitError(
                f"Execution engine not ready after {self._init_timeout}s",
                {"timeout": self._init_timeout},
            ) from e

    async def _construct(self) -> ExecutionEngine:
        with global_tracer.start_span("engine_construct"):
            logger.info("Initializing execution engine")
            try:
                engine = await self._factory()
            except Exception as e:
                global_metrics.increment_counter("engine_init_failures")
                logger.error(f"Failed to initialize execution engine: {e}")
                raise EngineInitError(f"Failed to initialize execution engine: {e}") from e
        if self._carried_memory is not None:
            engine.memory_store, self._carried_memory = self._carried_memory, None
        self._engine = engine
        logger.info("Execution engine initialized successfully")
        return engine

    async def _retire(self, engine: ExecutionEngine) -> None:
        """Drop an engine whose tool connection is gone so the next call rebuilds it."""
        if self._engine is not engine:
            return
        self._engine = None
        self._pending = None
        self._carried_memory = engine.memory_store
        global_metrics.increment_counter("engine_rebuilds")
        logger.warning("Tool connection lost; rebuilding execution engine")
        try:
            await engine.aclose()
        except Exception as e:
            logger.warning(f"Error closing stale execution engine: {e}")

    def _on_constructed(self, future: asyncio.Future) -> None:
        if future.cancelled() or future.exception() is not None:
            if self._pending is future:
                self._pending = None

    async def stream_invoke(self, thread_id: str, text: str) -> AsyncIterator[str]:
        """``ensure_engine`` then stream the turn; see ``ExecutionEngine.stream_invoke``."""
        engine = await self.ensure_engine()
        stream = engine.stream_invoke(thread_id, text)
        try:
            async for snapshot in stream:
                yield snapshot
        finally:
            await stream.aclose()

    async def shutdown(self) -> None:
        """Abandon a pending construction and close a constructed engine."""
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done():
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)
        engine, self._engine = self._engine, None
        self._carried_memory = None
        if engine is not None:
            await engine.aclose()
            logger.info("Execution engine closed")


# ── Default engine factory ───────────────────────────────────────────────────

@retry_async(MCP_CONNECT_RETRY_POLICY)
async def _connect_tool_provider(client: MCPClient, url: str, transport: str) -> None:
    await client.connect(url, transport=transport)


def engine_factory(settings: Settings) -> EngineFactory:
    """Build the production factory: OpenAI model + tools from the MCP endpoint."""

    async def build() -> ExecutionEngine:
        if not settings.OPENAI_API_KEY:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        model_client = OpenAIClient(model=settings.LLM_MODEL, api_key=settings.OPENAI_API_KEY)

        mcp_client = MCPClient()
        try:
            await _connect_tool_provider(mcp_client, settings.MCP_SERVER_URL, settings.MCP_TRANSPORT)
            tools = await MCPTool.from_mcp_client(mcp_client)
        except BaseException:
            await mcp_client.disconnect()
            await model_client.aclose()
            raise
        logger.info(f"Loaded {len(tools)} tools from {settings.MCP_SERVER_URL}")

        agent = ReActAgent(
            name="EmailAssistant",
            description="Helps with email management using the gateway's tools.",
            model_client=model_client,
            tools=tools,
            system_instructions=settings.SYSTEM_INSTRUCTIONS,
            max_iterations=settings.MAX_ITERATIONS,
            tool_timeout=settings.TOOL_TIMEOUT,
        )
        return ExecutionEngine(agent=agent, memory_store=ThreadMemoryStore(), mcp_client=mcp_client)

    return build
