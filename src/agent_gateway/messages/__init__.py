from .base_message import BaseClientMessage, UsageStats
from .client_messages import (
    SystemMessage,
    UserMessage,
    AssistantMessage,
    ToolCallMessage,
    ToolExecutionResultMessage
)
from ._types import (
    StreamChunk,
    TextDeltaChunk,
    CompletionChunk,
)

__all__ = [
    "BaseClientMessage",
    "UsageStats",
    "SystemMessage",
    "UserMessage",
    "AssistantMessage",
    "ToolCallMessage",
    "ToolExecutionResultMessage",
    "StreamChunk",
    "TextDeltaChunk",
    "CompletionChunk",
]
