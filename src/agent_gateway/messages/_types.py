from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .client_messages import AssistantMessage


class StreamChunk:
    """One item of a model step's output stream."""
    type = "chunk"

    def __init__(self, metadata: Optional[Dict[str, Any]] = None):
        self.metadata = metadata or {}


class TextDeltaChunk(StreamChunk):
    """A fragment of answer text, in arrival order."""
    type = "text_delta"

    def __init__(self, text: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(metadata)
        self.text = text

    def __repr__(self) -> str:
        return f"TextDeltaChunk({self.text!r})"


class CompletionChunk(StreamChunk):
    """Last item of a step: the assembled assistant message."""
    type = "completion"

    def __init__(self, message: "AssistantMessage", metadata: Optional[Dict[str, Any]] = None):
        super().__init__(metadata)
        self.message = message

    def __repr__(self) -> str:
        return f"CompletionChunk(text={self.message.text!r}, tool_calls={len(self.message.tool_calls or [])})"
