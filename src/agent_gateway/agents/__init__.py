from .base_agent import BaseAgent
from .react_agent import ReActAgent

__all__ = [
    "BaseAgent",
    "ReActAgent",
]
