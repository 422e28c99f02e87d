"""Base agent contract.

Agents are stateless with respect to conversations: the caller hands in the
thread's memory on every run, so one agent instance serves every thread.
  - run_stream() → async iterator of partial events
  - run()        → final assistant message
"""
from __future__ import annotations

from typing import Any, AsyncIterator, List, Optional
from abc import ABC, abstractmethod

from agent_gateway.tools.base_tool import BaseTool
from agent_gateway.model_clients.base_client import BaseModelClient
from agent_gateway.memory.base_memory import BaseMemory
from agent_gateway.messages._types import CompletionChunk
from agent_gateway.messages.client_messages import AssistantMessage


class BaseAgent(ABC):
    """Abstract base for all agent implementations."""

    def __init__(
        self,
        name: str,
        description: str,
        *,
        model_client: BaseModelClient,
        tools: Optional[List[BaseTool]] = None,
        system_instructions: str = "You are a helpful assistant.",
    ):
        self.name = name
        self.description = description
        self.model_client = model_client
        self.tools = tools or []
        self.system_instructions = system_instructions

    @abstractmethod
    def run_stream(self, input_text: str, *, memory: BaseMemory, **kwargs) -> AsyncIterator[Any]:
        """Execute the agent, yielding events/chunks as they happen."""
        ...

    async def run(self, input_text: str, *, memory: BaseMemory, **kwargs) -> Optional[AssistantMessage]:
        """Execute the agent to completion and return the last assistant message."""
        final = None
        stream = self.run_stream(input_text, memory=memory, **kwargs)
        try:
            async for item in stream:
                if isinstance(item, CompletionChunk):
                    final = item.message
        finally:
            await stream.aclose()
        return final

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name!r}, tools={len(self.tools)})>"
