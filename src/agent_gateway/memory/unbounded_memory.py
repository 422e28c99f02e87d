"""In-process history that keeps every message."""
from typing import Optional

from .base_memory import BaseMemory
from agent_gateway.messages.base_message import BaseClientMessage


class UnboundedMemory(BaseMemory):
    """Keeps every message of a thread for the life of the process.

    No trimming is applied, so very long threads eventually exceed the
    model's context window.
    """

    def __init__(self):
        self._messages: list[BaseClientMessage] = []

    def add_message(self, message: BaseClientMessage) -> None:
        self._messages.append(message)

    def get_messages(self, limit: Optional[int] = None) -> list[BaseClientMessage]:
        if limit is None:
            return list(self._messages)
        return self._messages[-limit:] if limit > 0 else []

    def truncate(self, length: int) -> None:
        del self._messages[max(length, 0):]

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)

    def __repr__(self) -> str:
        return f"<UnboundedMemory(messages={len(self._messages)})>"
