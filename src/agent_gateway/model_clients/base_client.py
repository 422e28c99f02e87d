from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional
from agent_gateway.messages.base_message import BaseClientMessage
from agent_gateway.messages._types import StreamChunk


class BaseModelClient(ABC):
    """Base class for all model clients (OpenAI, Anthropic, etc.)."""

    def __init__(
        self,
        model: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.kwargs = kwargs

    @abstractmethod
    def generate_stream(
        self,
        messages: list[BaseClientMessage],
        tools: Optional[list[dict]] = None,
        **kwargs
    ) -> AsyncIterator[StreamChunk]:
        """Stream one model step.

        Yields ``TextDeltaChunk`` for each text fragment and finishes with a
        single ``CompletionChunk`` carrying the assembled ``AssistantMessage``
        (text plus any tool calls the model requested).
        """
        pass

    async def aclose(self) -> None:
        """Release network resources held by the client."""
        return None
