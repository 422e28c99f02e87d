from abc import ABC, abstractmethod
from typing import Optional

from agent_gateway.messages.base_message import BaseClientMessage


class BaseMemory(ABC):
    """Ordered conversation history of one thread."""

    @abstractmethod
    def add_message(self, message: BaseClientMessage) -> None:
        ...

    @abstractmethod
    def get_messages(self, limit: Optional[int] = None) -> list[BaseClientMessage]:
        """Return a copy of the history, or only its last ``limit`` entries."""

    @abstractmethod
    def truncate(self, length: int) -> None:
        """Drop every message past the first ``length``.

        Used to roll a thread back to where it stood before an unfinished turn.
        """

    @abstractmethod
    def clear(self) -> None:
        ...

    def __len__(self) -> int:
        return len(self.get_messages())
