"""
Time-bounded async cache with per-key single-flight.

INVARIANTS:
- A hit within the TTL never calls the factory
- Concurrent misses for one key share one in-flight computation
- The in-flight marker is cleared whether the computation succeeds or fails
- Failures are never cached
- A value computed across an invalidation of its key is not stored
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class _Entry(Generic[V]):
    value: V
    stored_at: float


class TTLCache(Generic[K, V]):
    """
    Per-key cache whose entries expire `ttl_seconds` after being stored.

    Single local process only; there is no cross-process invalidation.

    Example:
        cache: TTLCache[str, Stats] = TTLCache(ttl_seconds=30)
        stats = await cache.get_or_compute(set_id, lambda: compute(set_id))
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[K, _Entry[V]] = {}
        self._in_flight: dict[K, asyncio.Task[V]] = {}
        # Bumped by invalidation; a computation only stores its result if the
        # generation it started under is still current.
        self._generations: dict[K, int] = {}
        self._epoch = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> V | None:
        """Cached value for `key`, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return entry.value

    def is_in_flight(self, key: K) -> bool:
        return key in self._in_flight

    async def get_or_compute(self, key: K, factory: Callable[[], Awaitable[V]]) -> V:
        """
        Cached value for `key`, computing it with `factory` on a miss.

        If a computation for `key` is already running, waits for that one
        instead of starting another. Exceptions from the factory propagate
        to every waiter.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached

        task = self._in_flight.get(key)
        if task is None:
            logger.debug("Cache miss for %s", key)
            task = asyncio.ensure_future(self._compute(key, factory, self._token(key)))
            self._in_flight[key] = task
        else:
            logger.debug("Joining in-flight computation for %s", key)

        # Shielded so one waiter being cancelled does not cancel the shared computation
        return await asyncio.shield(task)

    async def _compute(
        self,
        key: K,
        factory: Callable[[], Awaitable[V]],
        token: tuple[int, int],
    ) -> V:
        try:
            value = await factory()
            if self._token(key) == token:
                self._entries[key] = _Entry(value=value, stored_at=self._clock())
            return value
        finally:
            current = asyncio.current_task()
            if self._in_flight.get(key) is current:
                del self._in_flight[key]

    def _token(self, key: K) -> tuple[int, int]:
        return (self._epoch, self._generations.get(key, 0))

    def invalidate(self, key: K) -> None:
        """
        Drop the entry for `key`.

        A computation already running for `key` still completes for its
        current waiters, but its result is not stored and later callers
        start a new one.
        """
        self._entries.pop(key, None)
        self._in_flight.pop(key, None)
        self._generations[key] = self._generations.get(key, 0) + 1

    def invalidate_all(self) -> None:
        """Drop every entry and detach every in-flight computation."""
        self._entries.clear()
        self._in_flight.clear()
        self._generations.clear()
        self._epoch += 1
