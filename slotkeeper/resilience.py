"""
Resilience helpers for task-store and notification I/O.

Provides:
- retry_once: run an async call, retry a single time after a fixed delay
- BoundedIdCache: fixed-capacity LRU set for "already handled" ids
"""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from typing import TypeVar

import httpx

T = TypeVar("T")

logger = logging.getLogger(__name__)

NETWORK_ERRORS: tuple[type[BaseException], ...] = (httpx.TransportError,)


async def retry_once(
    func: Callable[[], Awaitable[T]],
    delay: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = NETWORK_ERRORS,
    description: str = "request",
) -> T:
    """
    Await func(); on a retryable error wait `delay` seconds and try exactly once more.

    The second failure propagates unchanged. There is no further backoff and
    no circuit breaking.
    """
    try:
        return await func()
    except retry_on as e:
        logger.warning("%s failed: %s. Retrying once in %.1fs", description, e, delay)
        await asyncio.sleep(delay)
    return await func()


class BoundedIdCache:
    """
    Set of recently seen keys with a fixed capacity.

    Oldest entries are evicted first; touching an existing key refreshes it.
    """

    def __init__(self, capacity: int = 100):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: OrderedDict[Hashable, None] = OrderedDict()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, key: Hashable) -> None:
        self._entries[key] = None
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def discard(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
