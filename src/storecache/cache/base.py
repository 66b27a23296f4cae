"""Cache capability shared by every cache tier.

Tiers:
- MemoryCache: process-local, values held by reference, stampede protected
- RedisCache: shared across instances, serialized payloads, TTL in minutes

A service holds exactly one primary tier and at most one secondary tier,
tagged explicitly when the tiers are registered.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Coroutine, Iterable
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from functools import partial
from typing import Any, NamedTuple, TypeVar

T = TypeVar("T")

# Zero-argument producer; may return the value or an awaitable of it.
Factory = Callable[[], T | Awaitable[T]]


class CacheLookup(NamedTuple):
    """Result of a non-destructive lookup."""

    value: Any
    found: bool


MISS = CacheLookup(None, False)


def validate_ttl(ttl: timedelta | None) -> timedelta | None:
    """Reject zero or negative TTLs."""
    if ttl is not None and ttl <= timedelta(0):
        raise ValueError(f"TTL must be positive, got {ttl}")
    return ttl


async def produce(factory: Factory[T]) -> T:
    """Run a factory that may be sync or async."""
    result = factory()
    if inspect.isawaitable(result):
        return await result
    return result  # type: ignore[return-value]


class SingleFlight:
    """Per-key registry of in-flight populations.

    The first caller for a key starts ``populate`` as its own task; every
    caller for that key, the first included, awaits the same task. A caller
    that is cancelled stops waiting but the population keeps running for the
    others. The key leaves the registry as soon as the task finishes.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task[Any]] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    async def run(self, key: str, populate: Callable[[], Coroutine[Any, Any, T]]) -> T:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(populate())
            self._inflight[key] = task
            task.add_done_callback(partial(self._finished, key))

        return await asyncio.shield(task)  # type: ignore[no-any-return]

    def _finished(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark retrieved; with every caller gone asyncio would log it as unhandled
            task.exception()


class CacheManager(ABC):
    """Abstract cache tier interface."""

    name: str = "cache"

    @abstractmethod
    async def get(self, key: str, value_type: Any = None) -> CacheLookup:
        """Look up a key. Missing, expired and unreadable entries are misses.

        ``value_type`` lets serializing tiers rebuild typed values.
        """

    @abstractmethod
    async def get_or_populate(
        self,
        key: str,
        factory: Factory[T],
        ttl: timedelta | None = None,
        value_type: Any = None,
    ) -> T:
        """Return the cached value, or produce, store and return it.

        ``None`` results are returned but never stored. Factory errors
        propagate and leave the cache untouched.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: timedelta | None = None) -> None:
        """Store a value, overwriting any previous one. ``None`` is ignored."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""

    @abstractmethod
    async def remove_by_pattern(self, pattern: str) -> int:
        """Remove every key containing ``pattern``; return how many were removed."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key managed by this tier."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a live entry exists for the key."""

    async def close(self) -> None:
        """Release resources held by the tier."""


class CacheRole(str, Enum):
    """Role a tier plays in front of the repository."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(frozen=True)
class CacheTiers:
    """The tiers a service reads from and invalidates."""

    primary: CacheManager
    secondary: CacheManager | None = None

    @classmethod
    def from_registrations(
        cls, registrations: Iterable[tuple[CacheRole, CacheManager]]
    ) -> CacheTiers:
        """Build tiers from role-tagged registrations.

        Requires exactly one primary and at most one secondary.
        """
        by_role: dict[CacheRole, list[CacheManager]] = {role: [] for role in CacheRole}
        for role, cache in registrations:
            by_role[CacheRole(role)].append(cache)

        primaries = by_role[CacheRole.PRIMARY]
        secondaries = by_role[CacheRole.SECONDARY]
        if len(primaries) != 1:
            raise ValueError(f"Exactly one primary cache is required, got {len(primaries)}")
        if len(secondaries) > 1:
            raise ValueError(f"At most one secondary cache is allowed, got {len(secondaries)}")

        return cls(primary=primaries[0], secondary=secondaries[0] if secondaries else None)

    def __iter__(self):
        yield self.primary
        if self.secondary is not None:
            yield self.secondary

    async def close(self) -> None:
        for cache in self:
            await cache.close()
