"""ReAct (Reasoning + Acting) agent implementation.

One turn runs as a sequence of model steps over the thread's memory:
  1. THINK  : stream one model step and record the assistant message
  2. ACT    : run every tool call the step requested
  3. OBSERVE: record each tool result so the next step can see it
  4. Stop once a step requests no tools, or after max_iterations steps

Everything is yielded as it happens so the caller can build live output.
A tool that fails, times out or does not exist never ends the turn; the
model receives the failure as that tool's result.
"""
from __future__ import annotations

import asyncio
import json
import time
from typing import Any, AsyncIterator, List, Optional

from opentelemetry.trace import Status, StatusCode

from agent_gateway.agents.base_agent import BaseAgent
from agent_gateway.memory.base_memory import BaseMemory
from agent_gateway.messages._types import CompletionChunk
from agent_gateway.messages.client_messages import (
    AssistantMessage,
    SystemMessage,
    ToolCallMessage,
    ToolExecutionResultMessage,
    UserMessage,
)
from agent_gateway.model_clients.base_client import BaseModelClient
from agent_gateway.observability import global_metrics, global_tracer, logger
from agent_gateway.resilience import TOOL_RETRY_POLICY, RetryPolicy
from agent_gateway.tools.base_tool import BaseTool, ToolResult


class ReActAgent(BaseAgent):
    """Tool-calling agent shared by every chat thread.

    Usage::

        agent = ReActAgent(
            name="EmailAssistant",
            description="Email assistant",
            model_client=openai_client,
            tools=mcp_tools,
        )
        async for item in agent.run_stream("Summarise my inbox", memory=memory):
            ...
    """

    def __init__(
        self,
        name: str,
        description: str,
        *,
        model_client: BaseModelClient,
        tools: Optional[List[BaseTool]] = None,
        system_instructions: str = (
            "You are a helpful AI assistant. Use the provided tools to solve "
            "the user's request. Think step-by-step."
        ),
        max_iterations: int = 10,
        verbose: bool = True,
        tool_retry_policy: Optional[RetryPolicy] = None,
        tool_timeout: Optional[float] = 30.0,
    ):
        super().__init__(
            name=name,
            description=description,
            model_client=model_client,
            tools=tools or [],
            system_instructions=system_instructions,
        )
        self.max_iterations = max_iterations
        self.verbose = verbose
        self.tool_retry_policy = tool_retry_policy or TOOL_RETRY_POLICY
        self.tool_timeout = tool_timeout

    async def run_stream(self, input_text: str, *, memory: BaseMemory, **kwargs) -> AsyncIterator[Any]:
        """Run one turn against ``memory``.

        Yields ``TextDeltaChunk`` and ``CompletionChunk`` items from every
        model step and one ``ToolExecutionResultMessage`` per tool call.
        Each message is appended to ``memory`` as soon as it is complete.
        """
        with global_tracer.start_span("agent_run_stream", {"agent_name": self.name, "input_length": len(input_text)}):
            global_metrics.increment_counter("agent_runs", tags={"name": self.name})
            if self.verbose:
                logger.info(f"[{self.name}] New turn: {input_text[:80]}")

            if len(memory) == 0:
                memory.add_message(SystemMessage(content=self.system_instructions))
            memory.add_message(UserMessage(content=[input_text]))

            for step in range(1, self.max_iterations + 1):
                with global_tracer.start_span("agent_step", {"step": step}):
                    response: Optional[AssistantMessage] = None
                    thinking = self._think(memory, **kwargs)
                    try:
                        async for chunk in thinking:
                            if isinstance(chunk, CompletionChunk):
                                response = chunk.message
                            yield chunk
                    finally:
                        await thinking.aclose()

                    response = response or AssistantMessage(content=None)
                    memory.add_message(response)
                    if not response.tool_calls:
                        if self.verbose:
                            logger.info(f"[{self.name}] Turn finished at step {step}")
                        return

                    if self.verbose:
                        logger.info(f"[{self.name}] Step {step} calls {[tc.name for tc in response.tool_calls]}")
                    for tool_call in response.tool_calls:
                        result = await self._execute_tool(tool_call)
                        memory.add_message(result)
                        yield result

            logger.warning(f"[{self.name}] Turn stopped after {self.max_iterations} steps without a final answer")

    async def _think(self, memory: BaseMemory, **kwargs) -> AsyncIterator[Any]:
        """Stream one model step over the current history."""
        tool_schemas = [tool.get_openai_schema() for tool in self.tools]
        messages = memory.get_messages()
        started = time.monotonic()

        with global_tracer.start_span("llm_generate_stream", {"msg_count": len(messages)}):
            stream = self.model_client.generate_stream(
                messages=messages,
                tools=tool_schemas or None,
                tool_choice="auto" if tool_schemas else None,
                **kwargs,
            )
            try:
                async for chunk in stream:
                    yield chunk
            except Exception as e:
                global_metrics.increment_counter("llm_errors", tags={"error": type(e).__name__})
                raise
            finally:
                await stream.aclose()

        global_metrics.record_histogram(
            "llm_latency", time.monotonic() - started, tags={"model": self.model_client.model},
        )

    async def _execute_tool(self, tool_call: ToolCallMessage) -> ToolExecutionResultMessage:
        """Run one tool call and wrap whatever happens as its result message."""
        with global_tracer.start_span("tool_execution", {"tool": tool_call.name}) as span:
            tool = self._find_tool(tool_call.name)
            if tool is None:
                return self._tool_error(tool_call, span, f"Tool '{tool_call.name}' not found in agent's tool list")
            if tool_call.argument_error:
                return self._tool_error(
                    tool_call, span, f"Invalid arguments for tool '{tool_call.name}': {tool_call.argument_error}"
                )

            started = time.monotonic()
            attempt = 0
            while True:
                try:
                    result = await self._attempt(tool, tool_call)
                except Exception as e:
                    if not self.tool_retry_policy.should_retry(e, attempt):
                        return self._tool_error(tool_call, span, str(e) or type(e).__name__)
                    delay = self.tool_retry_policy.delay_for(attempt)
                    attempt += 1
                    logger.warning(
                        f"[{self.name}] {tool_call.name} failed ({e}), "
                        f"retry {attempt}/{self.tool_retry_policy.max_retries} in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                global_metrics.increment_counter("tool_executions", tags={"tool": tool_call.name, "status": "success"})
                global_metrics.record_histogram("tool_latency", time.monotonic() - started, tags={"tool": tool_call.name})
                return ToolExecutionResultMessage.from_tool_result(
                    tool_result=result,
                    tool_call_id=tool_call.id,
                    tool_name=tool_call.name,
                )

    async def _attempt(self, tool: BaseTool, tool_call: ToolCallMessage) -> ToolResult:
        if self.verbose:
            logger.info(f"[{self.name}] Executing {tool_call.name}({tool_call.arguments})")
        if not self.tool_timeout:
            return await tool.execute(**tool_call.arguments)
        try:
            return await asyncio.wait_for(tool.execute(**tool_call.arguments), timeout=self.tool_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Tool '{tool_call.name}' timed out after {self.tool_timeout}s") from None

    def _tool_error(self, tool_call: ToolCallMessage, span: Any, error_msg: str) -> ToolExecutionResultMessage:
        logger.error(f"[{self.name}] {error_msg}")
        span.set_status(Status(StatusCode.ERROR, error_msg))
        global_metrics.increment_counter("tool_execution_errors", tags={"tool": tool_call.name})
        return ToolExecutionResultMessage(
            content=[{"type": "text", "text": json.dumps({"error": error_msg})}],
            tool_call_id=tool_call.id,
            name=tool_call.name,
            isError=True,
        )

    def _find_tool(self, name: str) -> Optional[BaseTool]:
        return next((tool for tool in self.tools if tool.name == name), None)
