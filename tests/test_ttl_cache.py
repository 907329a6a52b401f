"""
Tests for the TTL cache.

INVARIANTS:
- A hit within the TTL never calls the factory
- Concurrent misses share one computation
- Failures are never cached and never leave a computation marked in flight
- A value computed across an invalidation is not stored
"""

import asyncio

import pytest

from cardledger.services.ttl_cache import TTLCache


class CountingFactory:
    """Factory that records calls and optionally waits for a release."""

    def __init__(self, value: str = "value", gate: asyncio.Event | None = None):
        self.value = value
        self.gate = gate
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        call = self.calls
        if self.gate is not None:
            await self.gate.wait()
        return f"{self.value}-{call}"


class TestConstruction:
    """Tests for cache configuration."""

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_ttl_must_be_positive(self, ttl: float) -> None:
        """Non-positive TTLs are rejected."""
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=ttl)

    def test_starts_empty(self, clock) -> None:
        """A new cache holds nothing."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)

        assert len(cache) == 0
        assert cache.get("a") is None


class TestExpiry:
    """Tests for time-bounded entries."""

    async def test_hit_within_ttl(self, clock) -> None:
        """A second read within the TTL reuses the stored value."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)
        factory = CountingFactory()

        first = await cache.get_or_compute("a", factory)
        clock.advance(9.9)
        second = await cache.get_or_compute("a", factory)

        assert first == second == "value-1"
        assert factory.calls == 1

    async def test_miss_after_ttl(self, clock) -> None:
        """An entry older than the TTL is recomputed."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)
        factory = CountingFactory()

        await cache.get_or_compute("a", factory)
        clock.advance(10)

        assert cache.get("a") is None
        assert await cache.get_or_compute("a", factory) == "value-2"

    async def test_keys_are_independent(self, clock) -> None:
        """Each key has its own entry."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)

        await cache.get_or_compute("a", CountingFactory("a"))
        await cache.get_or_compute("b", CountingFactory("b"))

        assert cache.get("a") == "a-1"
        assert cache.get("b") == "b-1"
        assert len(cache) == 2


class TestSingleFlight:
    """Tests for sharing in-flight computations."""

    async def test_concurrent_misses_share(self, clock) -> None:
        """Callers arriving during a computation wait for it."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)
        gate = asyncio.Event()
        factory = CountingFactory(gate=gate)

        waiters = [asyncio.create_task(cache.get_or_compute("a", factory)) for _ in range(3)]
        await asyncio.sleep(0)

        assert cache.is_in_flight("a")
        gate.set()
        results = await asyncio.gather(*waiters)

        assert results == ["value-1"] * 3
        assert factory.calls == 1
        assert not cache.is_in_flight("a")

    async def test_failure_reaches_every_waiter(self, clock) -> None:
        """A failing computation raises for all waiters and is not cached."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)
        gate = asyncio.Event()
        calls = 0

        async def failing() -> str:
            nonlocal calls
            calls += 1
            await gate.wait()
            raise RuntimeError("boom")

        waiters = [asyncio.create_task(cache.get_or_compute("a", failing)) for _ in range(2)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
        assert calls == 1
        assert not cache.is_in_flight("a")
        assert cache.get("a") is None

        # The next call starts a fresh computation
        assert await cache.get_or_compute("a", CountingFactory()) == "value-1"

    async def test_cancelled_waiter_does_not_cancel_computation(self, clock) -> None:
        """Cancelling one waiter leaves the shared computation running."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)
        gate = asyncio.Event()
        factory = CountingFactory(gate=gate)

        cancelled = asyncio.create_task(cache.get_or_compute("a", factory))
        survivor = asyncio.create_task(cache.get_or_compute("a", factory))
        await asyncio.sleep(0)

        cancelled.cancel()
        gate.set()

        assert await survivor == "value-1"
        assert cancelled.cancelled()
        assert cache.get("a") == "value-1"


class TestInvalidation:
    """Tests for dropping entries."""

    async def test_invalidate_drops_entry(self, clock) -> None:
        """The next read after invalidation recomputes."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)
        factory = CountingFactory()
        await cache.get_or_compute("a", factory)

        cache.invalidate("a")

        assert cache.get("a") is None
        assert await cache.get_or_compute("a", factory) == "value-2"

    async def test_invalidate_during_computation(self, clock) -> None:
        """A value computed across an invalidation is returned but not stored."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)
        gate = asyncio.Event()
        factory = CountingFactory(gate=gate)

        stale = asyncio.create_task(cache.get_or_compute("a", factory))
        await asyncio.sleep(0)

        cache.invalidate("a")
        assert not cache.is_in_flight("a")

        gate.set()
        assert await stale == "value-1"
        assert cache.get("a") is None

        # A later caller does not join the stale computation
        assert await cache.get_or_compute("a", factory) == "value-2"
        assert cache.get("a") == "value-2"

    async def test_caller_after_invalidation_starts_new_computation(self, clock) -> None:
        """Callers after an invalidation never receive the pre-invalidation value."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)
        gate = asyncio.Event()
        factory = CountingFactory(gate=gate)

        stale = asyncio.create_task(cache.get_or_compute("a", factory))
        await asyncio.sleep(0)
        cache.invalidate("a")
        fresh = asyncio.create_task(cache.get_or_compute("a", factory))
        await asyncio.sleep(0)

        gate.set()

        assert await stale == "value-1"
        assert await fresh == "value-2"
        assert cache.get("a") == "value-2"

    async def test_invalidate_all(self, clock) -> None:
        """Every entry and in-flight computation is dropped."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)
        await cache.get_or_compute("a", CountingFactory("a"))
        await cache.get_or_compute("b", CountingFactory("b"))
        gate = asyncio.Event()
        pending = asyncio.create_task(cache.get_or_compute("c", CountingFactory("c", gate=gate)))
        await asyncio.sleep(0)

        cache.invalidate_all()
        gate.set()
        await pending

        assert len(cache) == 0
        assert not cache.is_in_flight("c")
        assert cache.get("c") is None

    def test_invalidate_unknown_key(self, clock) -> None:
        """Invalidating a missing key is harmless."""
        cache: TTLCache[str, str] = TTLCache(ttl_seconds=10, clock=clock)

        cache.invalidate("missing")

        assert len(cache) == 0
