"""Small async cache with expiry and single-flight loading."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class AsyncTTLCache(Generic[V]):
    """Caches values computed by coroutines for ``ttl`` seconds.

    When several callers miss the same key at once, only the first runs the
    factory; the others await the same task. A failed computation is not
    cached, so the next caller tries again.

    Args:
        ttl: Seconds a value stays valid
        clock: Monotonic time source
    """

    def __init__(
        self, ttl: float, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._values: Dict[Hashable, Tuple[float, V]] = {}
        self._in_flight: Dict[Hashable, "asyncio.Task[V]"] = {}

    def get(self, key: Hashable) -> Optional[V]:
        """Return the cached value, or None if missing or expired."""
        entry = self._values.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._values[key]
            return None
        return value

    async def get_or_compute(
        self, key: Hashable, factory: Callable[[], Awaitable[V]]
    ) -> V:
        """Return the cached value for ``key``, computing it on a miss.

        Args:
            key: Cache key
            factory: Called without arguments to produce the value

        Returns:
            Cached or freshly computed value

        Raises:
            Whatever ``factory`` raises
        """
        entry = self._values.get(key)
        if entry is not None and self._clock() < entry[0]:
            return entry[1]

        task = self._in_flight.get(key)
        if task is None:
            logger.debug(f"Cache miss for key={key}")
            task = asyncio.ensure_future(self._load(key, factory))
            self._in_flight[key] = task
        return await asyncio.shield(task)

    async def _load(self, key: Hashable, factory: Callable[[], Awaitable[V]]) -> V:
        try:
            value = await factory()
            self._values[key] = (self._clock() + self.ttl, value)
            return value
        finally:
            self._in_flight.pop(key, None)

    def invalidate(self, key: Hashable) -> None:
        self._values.pop(key, None)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)
