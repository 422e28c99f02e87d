"""OpenAI model client implementation."""
import logging
from typing import Any, AsyncIterator, Optional

from openai import AsyncOpenAI, OpenAIError

from agent_gateway.exceptions import ModelProviderError
from agent_gateway.messages._types import StreamChunk, TextDeltaChunk, CompletionChunk
from agent_gateway.messages.base_message import BaseClientMessage, UsageStats
from agent_gateway.messages.client_messages import AssistantMessage, ToolCallMessage

from ..base_client import BaseModelClient
from .utils import messages_to_openai

logger = logging.getLogger("agent_gateway.model_clients.openai")


class OpenAIClient(BaseModelClient):
    """OpenAI client built on the streaming Responses API with tool calling."""

    def __init__(
        self,
        model: str = "gpt-5-nano",
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ):
        super().__init__(model, temperature, max_tokens, **kwargs)
        self.client = AsyncOpenAI(api_key=api_key or None)

    def _build_params(
        self,
        messages: list[BaseClientMessage],
        tools: Optional[list[dict]],
        tool_choice: Optional[str | dict],
        **kwargs
    ) -> dict[str, Any]:
        instructions, conversation_input = messages_to_openai(messages)
        params: dict[str, Any] = {
            "model": self.model,
            "input": conversation_input,
            "stream": True,
        }
        if instructions:
            params["instructions"] = instructions
        # Reasoning models reject temperature; only send it when configured
        temperature = kwargs.pop("temperature", self.temperature)
        if temperature is not None:
            params["temperature"] = temperature
        max_tokens = kwargs.pop("max_tokens", self.max_tokens)
        if max_tokens:
            params["max_output_tokens"] = max_tokens
        if tools:
            params["tools"] = tools
            if tool_choice:
                params["tool_choice"] = tool_choice
        params.update({k: v for k, v in kwargs.items() if k not in params})
        return params

    async def generate_stream(
        self,
        messages: list[BaseClientMessage],
        tools: Optional[list[dict]] = None,
        tool_choice: Optional[str | dict] = None,
        **kwargs
    ) -> AsyncIterator[StreamChunk]:
        """Stream one model step from the Responses API."""
        params = self._build_params(messages, tools, tool_choice, **kwargs)

        try:
            stream = await self.client.responses.create(**params)
        except OpenAIError as e:
            raise ModelProviderError(f"OpenAI request failed: {e}", {"model": self.model}) from e

        text_parts: list[str] = []
        completed = None
        try:
            async for event in stream:
                if event.type == "response.output_text.delta":
                    if event.delta:
                        text_parts.append(event.delta)
                        yield TextDeltaChunk(event.delta)
                elif event.type == "response.completed":
                    completed = event.response
                elif event.type == "response.failed":
                    error = getattr(event.response, "error", None)
                    detail = getattr(error, "message", None) or "response failed"
                    raise ModelProviderError(f"OpenAI response failed: {detail}", {"model": self.model})
                elif event.type == "response.incomplete":
                    details = getattr(event.response, "incomplete_details", None)
                    reason = getattr(details, "reason", None) or "unknown"
                    raise ModelProviderError(f"OpenAI response incomplete: {reason}", {"model": self.model})
                elif event.type == "error":
                    raise ModelProviderError(f"OpenAI stream error: {event.message}", {"model": self.model})
        except OpenAIError as e:
            raise ModelProviderError(f"OpenAI stream failed: {e}", {"model": self.model}) from e
        finally:
            await stream.close()

        if completed is None:
            raise ModelProviderError("OpenAI stream ended without a completed response", {"model": self.model})

        tool_calls = [
            ToolCallMessage(id=item.call_id, name=item.name, arguments=item.arguments)
            for item in completed.output or []
            if item.type == "function_call"
        ]

        usage = None
        if completed.usage is not None:
            usage = UsageStats(
                prompt_tokens=completed.usage.input_tokens,
                completion_tokens=completed.usage.output_tokens,
                total_tokens=completed.usage.total_tokens,
            )

        text = "".join(text_parts)
        yield CompletionChunk(
            AssistantMessage(
                content=[text] if text else None,
                tool_calls=tool_calls or None,
                finish_reason="tool_calls" if tool_calls else "stop",
                usage=usage,
            ),
            metadata={"model": getattr(completed, "model", self.model)},
        )

    async def aclose(self) -> None:
        await self.client.close()
