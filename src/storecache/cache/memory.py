"""Process-local cache tier.

Values are held by reference in a plain dict, so there is no serialization
cost and no sharing between processes. Expiry is checked lazily on access
and reclaimed in bulk by a background sweep task.

Concurrent misses on the same key share a single in-flight population:
the first caller starts the factory in its own task and every caller
awaits that task.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, TypeVar

from storecache.cache.base import (
    MISS,
    CacheLookup,
    CacheManager,
    Factory,
    SingleFlight,
    produce,
    validate_ttl,
)
from storecache.config import settings
from storecache.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class _Entry:
    value: Any
    expires_at: float | None  # None: until removed or cleared

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class MemoryCache(CacheManager):
    """In-memory cache tier with lazy expiry and stampede protection.

    Args:
        clock: Monotonic time source in seconds (injectable for tests)
        sweep_interval: Seconds between background sweeps once started
    """

    name = "memory"

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float | None = None,
    ):
        self._clock = clock
        self._sweep_interval = sweep_interval or settings.memory_sweep_interval
        self._entries: dict[str, _Entry] = {}
        self._inflight = SingleFlight()
        # Bumped by every removal so racing populations don't store stale data
        self._generation = 0
        self._sweep_task: asyncio.Task[None] | None = None
        self._metrics = get_metrics()
        self.hits = 0
        self.misses = 0
        self.populations = 0

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _lookup(self, key: str) -> CacheLookup:
        entry = self._entries.get(key)
        if entry is not None and entry.expired(self._clock()):
            del self._entries[key]
            entry = None

        if entry is None:
            self.misses += 1
            self._metrics.cache_misses_total.labels(tier=self.name).inc()
            return MISS

        self.hits += 1
        self._metrics.cache_hits_total.labels(tier=self.name).inc()
        return CacheLookup(entry.value, True)

    def _store(self, key: str, value: Any, ttl: timedelta | None) -> None:
        if value is None:
            return
        expires_at = None if ttl is None else self._clock() + ttl.total_seconds()
        self._entries[key] = _Entry(value, expires_at)

    # -------------------------------------------------------------------------
    # CacheManager
    # -------------------------------------------------------------------------

    async def get(self, key: str, value_type: Any = None) -> CacheLookup:
        return self._lookup(key)

    async def get_or_populate(
        self,
        key: str,
        factory: Factory[T],
        ttl: timedelta | None = None,
        value_type: Any = None,
    ) -> T:
        validate_ttl(ttl)
        cached = self._lookup(key)
        if cached.found:
            return cached.value  # type: ignore[no-any-return]

        generation = self._generation
        return await self._inflight.run(
            key, lambda: self._populate(key, factory, ttl, generation)
        )

    async def _populate(
        self, key: str, factory: Factory[T], ttl: timedelta | None, generation: int
    ) -> T:
        value = await produce(factory)

        self.populations += 1
        self._metrics.cache_populations_total.labels(tier=self.name).inc()
        if generation == self._generation:
            self._store(key, value, ttl)
        else:
            logger.debug("Discarded population of %s invalidated while in flight", key)
        return value

    async def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        validate_ttl(ttl)
        self._store(key, value, ttl)

    async def remove(self, key: str) -> None:
        self._generation += 1
        self._entries.pop(key, None)
        self._metrics.cache_invalidations_total.labels(tier=self.name, operation="remove").inc()

    async def remove_by_pattern(self, pattern: str) -> int:
        self._generation += 1
        matched = [key for key in self._entries if pattern in key]
        for key in matched:
            del self._entries[key]
        self._metrics.cache_invalidations_total.labels(
            tier=self.name, operation="remove_by_pattern"
        ).inc()
        logger.debug("Removed %d local cache entries matching %r", len(matched), pattern)
        return len(matched)

    async def clear(self) -> None:
        self._generation += 1
        self._entries = {}
        self._metrics.cache_invalidations_total.labels(tier=self.name, operation="clear").inc()
        logger.debug("Cleared local cache")

    async def exists(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.expired(self._clock()):
            del self._entries[key]
            return False
        return True

    # -------------------------------------------------------------------------
    # Expiry sweep
    # -------------------------------------------------------------------------

    def sweep(self) -> int:
        """Drop every expired entry. Returns the number reclaimed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._sweep_task is not None:
            return
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Started local cache sweep every {self._sweep_interval:.0f}s")

    async def close(self) -> None:
        """Stop the background sweep task."""
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            reclaimed = self.sweep()
            if reclaimed:
                logger.debug("Reclaimed %d expired local cache entries", reclaimed)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        return {
            "entries": len(self._entries),
            "inflight": len(self._inflight),
            "hits": self.hits,
            "misses": self.misses,
            "populations": self.populations,
        }
