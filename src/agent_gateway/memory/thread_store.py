"""In-process conversation history keyed by thread id."""
import asyncio
import logging
from typing import Dict, Optional

from .unbounded_memory import UnboundedMemory

logger = logging.getLogger("agent_gateway.memory.thread_store")


class ThreadMemoryStore:
    """Holds one ``UnboundedMemory`` per thread.

    History lives for the life of the process. Each thread also owns an
    ``asyncio.Lock`` so that two turns on the same thread run one after the
    other while turns on different threads proceed independently.
    """

    def __init__(self):
        self._threads: Dict[str, UnboundedMemory] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, thread_id: str) -> UnboundedMemory:
        """Return (or create) the memory for ``thread_id``."""
        memory = self._threads.get(thread_id)
        if memory is None:
            memory = UnboundedMemory()
            self._threads[thread_id] = memory
            logger.debug(f"Created history for thread {thread_id}")
        return memory

    def peek(self, thread_id: str) -> Optional[UnboundedMemory]:
        return self._threads.get(thread_id)

    def lock(self, thread_id: str) -> asyncio.Lock:
        """Return (or create) the per-thread lock."""
        if thread_id not in self._locks:
            self._locks[thread_id] = asyncio.Lock()
        return self._locks[thread_id]

    def __contains__(self, thread_id: str) -> bool:
        return thread_id in self._threads

    def __len__(self) -> int:
        return len(self._threads)
