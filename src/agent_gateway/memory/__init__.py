from .base_memory import BaseMemory
from .unbounded_memory import UnboundedMemory
from .thread_store import ThreadMemoryStore

__all__ = [
    "BaseMemory",
    "UnboundedMemory",
    "ThreadMemoryStore",
]
