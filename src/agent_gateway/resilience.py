"""Retry policies for the engine's outbound calls.

Two call sites retry: connecting to the tool provider while the engine is
being built, and executing a single tool call inside a turn. Both retry on
transport-level failures only; anything else is a real error and surfaces
on the first attempt.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type

logger = logging.getLogger("agent_gateway.resilience")

TRANSIENT_ERRORS: Tuple[Type[Exception], ...] = (ConnectionError, TimeoutError, OSError)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with additive jitter.

    Attributes:
        max_retries: Attempts after the first one (0 disables retrying).
        base_delay: Wait before the first retry, in seconds.
        max_delay: Upper bound for the exponential part of the wait.
        backoff_factor: Growth of the wait per attempt.
        jitter: Up to this many seconds are added at random to each wait.
        retryable_exceptions: Failures worth another attempt.
    """
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    jitter: float = 0.5
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (0-based)."""
        delay = min(self.base_delay * (self.backoff_factor ** attempt), self.max_delay)
        return delay + random.uniform(0, self.jitter)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        return attempt < self.max_retries and isinstance(error, self.retryable_exceptions)


# The engine's tool provider is usually this same process, which may still be
# starting up when the first chat turn arrives.
MCP_CONNECT_RETRY_POLICY = RetryPolicy(max_retries=3, base_delay=0.5, max_delay=5.0, jitter=0.25)

TOOL_RETRY_POLICY = RetryPolicy(max_retries=2, base_delay=0.5, max_delay=10.0, jitter=0.3)


def retry_async(
    policy: Optional[RetryPolicy] = None,
    *,
    on_retry: Optional[Callable[[Exception, int, float], None]] = None,
):
    """Retry the decorated coroutine function according to ``policy``.

    ``on_retry(error, retry_number, delay)`` is called before each wait.
    The last failure is re-raised unchanged.
    """
    policy = policy or MCP_CONNECT_RETRY_POLICY

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except policy.retryable_exceptions as e:
                    if not policy.should_retry(e, attempt):
                        logger.error(f"{func.__name__} failed after {attempt + 1} attempt(s): {e}")
                        raise
                    delay = policy.delay_for(attempt)
                    attempt += 1
                    logger.warning(
                        f"{func.__name__} failed ({e}), retry {attempt}/{policy.max_retries} in {delay:.1f}s"
                    )
                    if on_retry:
                        on_retry(e, attempt, delay)
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
