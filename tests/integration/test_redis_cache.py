"""Integration tests for the Redis cache tier.

Tests cache operations with real Redis.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

from redis.asyncio import Redis

from storecache.cache.base import CacheTiers
from storecache.cache.keys import StoreCacheKeys
from storecache.cache.memory import MemoryCache
from storecache.cache.redis import RedisCache
from storecache.domain import Store
from storecache.persistence.repositories import InMemoryStoreRepository
from storecache.services.stores import StoreService
from tests.helpers import RecordingEventBus


class TestCacheOperations:
    """Tests for Redis cache operations."""

    async def test_store_round_trip(self, redis_cache: RedisCache) -> None:
        """Stores come back as validated models."""
        key = StoreCacheKeys.by_id("5")
        await redis_cache.set(key, Store(id="5", name="StoreX", hosts=["x.example.com"]))

        value, found = await redis_cache.get(key, value_type=Store)

        assert found is True
        assert value.hosts == ["x.example.com"]

    async def test_ttl_in_whole_minutes(self, redis_cache: RedisCache, redis_client: Redis) -> None:
        """Entries are written with a minute-granular expiry."""
        await redis_cache.set("k", "v", timedelta(seconds=90))

        assert 60 < await redis_client.ttl("k") <= 120

    async def test_pattern_delete(self, redis_cache: RedisCache, redis_client: Redis) -> None:
        """Only keys containing the pattern are removed."""
        for key in ("ns.stores.id-5", "ns.stores.id-50", "ns.stores.id-4", "ns.stores.all"):
            await redis_cache.set(key, key)

        removed = await redis_cache.remove_by_pattern("id-5")

        assert removed == 2
        assert sorted(await redis_client.keys("*")) == [b"ns.stores.all", b"ns.stores.id-4"]

    async def test_fire_and_forget_write(self, redis_cache: RedisCache) -> None:
        """Unacknowledged writes land once drained."""
        await redis_cache.set("k", [1, 2, 3], acknowledged=False)
        await redis_cache.drain()

        assert await redis_cache.get("k") == ([1, 2, 3], True)

    async def test_stampede_populates_once(self, redis_cache: RedisCache) -> None:
        """Concurrent misses run the factory once."""
        calls = 0

        async def factory() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return "value"

        results = await asyncio.gather(
            *(redis_cache.get_or_populate("k", factory) for _ in range(20))
        )
        await redis_cache.drain()

        assert calls == 1
        assert set(results) == {"value"}
        assert await redis_cache.exists("k") is True

    async def test_health_check(self, redis_cache: RedisCache) -> None:
        """PING succeeds against a live server."""
        assert await redis_cache.health_check() is True


class TestStoreServiceWithRedis:
    """Tests for the service with a real distributed tier."""

    async def test_delete_clears_both_tiers(
        self, redis_cache: RedisCache, redis_client: Redis, store_a: Store, store_b: Store
    ) -> None:
        """A delete leaves no cached entries in either tier."""
        memory = MemoryCache()
        events = RecordingEventBus()
        service = StoreService(
            CacheTiers(memory, redis_cache),
            InMemoryStoreRepository([store_a, store_b]),
            events,
        )
        await service.get_all_stores()
        await redis_cache.set(StoreCacheKeys.all(), [store_a, store_b])

        await service.delete_store(store_b)

        assert len(memory) == 0
        assert await redis_client.dbsize() == 0
        assert [store.id for store in await service.get_all_stores()] == ["a"]
        assert len(events.events) == 1
