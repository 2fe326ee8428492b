"""Rate-limit retry with exponential backoff, and bounded polling for lagging reads."""

from __future__ import annotations

import asyncio
import inspect
import logging
import random
from typing import Any, Awaitable, Callable, Coroutine, TypeVar

from agentchain.llm.provider import is_rate_limit

_log = logging.getLogger(__name__)

T = TypeVar("T")


class RetryHandler:
    """Retries a coroutine only while it fails with a rate limit.

    The delay before retry ``n`` (0-based) is
    ``min(base_delay * 2**n + uniform(0, jitter), max_delay)``. Any other
    error is raised immediately. ``on_retry`` may be a plain or async callable;
    it is awaited before the backoff sleep.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        jitter: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._sleep = sleep

    def compute_delay(self, attempt: int) -> float:
        delay = self.base_delay * (2**attempt) + random.uniform(0, self.jitter)
        return min(delay, self.max_delay)

    async def execute_with_retry(
        self,
        func: Callable[..., Coroutine],
        *args: Any,
        on_retry: Callable[[int, Exception, float], Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        last_error: Exception | None = None

        for attempt in range(self.max_attempts):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                last_error = e
                if not is_rate_limit(e) or attempt >= self.max_attempts - 1:
                    raise
                delay = self.compute_delay(attempt)
                if on_retry is not None:
                    notified = on_retry(attempt + 1, e, delay)
                    if inspect.isawaitable(notified):
                        await notified
                await self._sleep(delay)

        raise last_error  # type: ignore[misc]


async def poll(
    fetch: Callable[[], Awaitable[T | None]],
    attempts: int = 3,
    delay: float = 0.5,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T | None:
    """Call *fetch* until it returns something other than None, at most *attempts* times.

    Exceptions from *fetch* count as a miss. Returns None when every attempt misses.
    """
    for attempt in range(attempts):
        try:
            value = await fetch()
            if value is not None:
                return value
        except Exception as e:
            _log.warning("Read attempt %d/%d failed: %s", attempt + 1, attempts, e)
        if attempt < attempts - 1:
            await sleep(delay)
    return None
