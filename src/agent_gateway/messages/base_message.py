from abc import ABC, abstractmethod
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

CLIENT_ROLES = Literal["system", "user", "assistant", "tool_call", "tool_response"]


class UsageStats(BaseModel):
    """Token usage reported for one model step."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class BaseClientMessage(BaseModel, ABC):
    """One entry of a thread's conversation history."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    role: CLIENT_ROLES
    content: Any
    type: Literal["BaseClientMessage"] = "BaseClientMessage"

    model_config = {"arbitrary_types_allowed": True}

    @property
    @abstractmethod
    def text(self) -> str:
        """Plain-text rendering of ``content``."""
