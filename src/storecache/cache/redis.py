"""Redis cache tier for storecache.

Provides the shared, cross-instance cache tier on top of redis-py's async
client. The connection is created once and reused by every caller.

Connection string: one or more comma-separated ``redis://`` URLs. A single
URL is a standalone server. Several URLs describe a cluster: the first seeds
a ``RedisCluster`` client for key operations, and every URL is treated as a
primary node for cluster-wide operations (pattern removal, clear).

Writes:
- fire-and-forget (default): the write is scheduled and the caller returns
  at once. Delivery is at-most-once; failures are logged and counted.
- acknowledged: the caller waits for the server, with retries.
Callers must not rely on read-after-write consistency in either mode.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from functools import partial
from typing import TYPE_CHECKING, Any, TypeVar, cast
from urllib.parse import urlsplit

import redis.asyncio as redis
from redis.asyncio.cluster import RedisCluster
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from storecache.cache.base import (
    MISS,
    CacheLookup,
    CacheManager,
    Factory,
    SingleFlight,
    produce,
    validate_ttl,
)
from storecache.cache.serialization import decode, encode
from storecache.config import settings
from storecache.errors import (
    CacheError,
    CommandError,
    ConnectivityError,
    PartialInvalidationError,
    SerializationError,
)
from storecache.observability.metrics import get_metrics

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError, TimeoutError, OSError)
_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def glob_escape(text: str) -> str:
    """Escape Redis glob metacharacters so ``text`` matches literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


def ttl_to_seconds(ttl: timedelta | None, default_minutes: int) -> int:
    """Round a TTL up to whole minutes and return it in seconds."""
    if ttl is None:
        return default_minutes * 60
    minutes = max(1, math.ceil(ttl.total_seconds() / 60))
    return minutes * 60


# -----------------------------------------------------------------------------
# Topology and connection lifecycle
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class RedisNode:
    """A single primary node, addressed directly for node-local commands."""

    name: str
    client: Redis


@dataclass
class RedisTopology:
    """Client used for key operations plus the nodes behind it."""

    client: Redis | RedisCluster
    nodes: list[RedisNode] = field(default_factory=list)

    @classmethod
    def standalone(cls, client: Redis, name: str = "default") -> RedisTopology:
        return cls(client=client, nodes=[RedisNode(name, client)])

    @property
    def is_cluster(self) -> bool:
        return isinstance(self.client, RedisCluster)

    async def close(self) -> None:
        closed: set[int] = set()
        for conn in [self.client, *(node.client for node in self.nodes)]:
            if id(conn) in closed:
                continue
            closed.add(id(conn))
            await conn.aclose()


def _node_name(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.hostname or 'localhost'}:{parts.port or 6379}"


def create_topology(connection_string: str) -> RedisTopology:
    """Build clients for a connection string of comma-separated URLs."""
    urls = [url.strip() for url in connection_string.split(",") if url.strip()]
    if not urls:
        raise ValueError("Redis connection string is empty")

    if len(urls) == 1:
        client = redis.from_url(urls[0], decode_responses=False)
        return RedisTopology.standalone(client, name=_node_name(urls[0]))

    nodes = [RedisNode(_node_name(url), redis.from_url(url, decode_responses=False)) for url in urls]
    cluster = RedisCluster.from_url(urls[0], decode_responses=False)
    return RedisTopology(client=cluster, nodes=nodes)


# Module-level connection, shared by every RedisCache in the process
_topology: RedisTopology | None = None


async def get_redis() -> RedisTopology:
    """Get or create the shared Redis topology."""
    global _topology
    if _topology is None:
        _topology = create_topology(settings.redis_url)
        logger.info(
            f"Connected Redis cache with {len(_topology.nodes)} node(s)"
            f"{' in cluster mode' if _topology.is_cluster else ''}"
        )
    return _topology


async def close_redis() -> None:
    """Close Redis connections."""
    global _topology
    if _topology is not None:
        await _topology.close()
        _topology = None


# -----------------------------------------------------------------------------
# Retry policy
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for writes and invalidations."""

    attempts: int = 3
    delay_initial: float = 0.05
    delay_max: float = 1.0
    multiplier: float = 2.0

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        return cls(
            attempts=settings.redis_retry_attempts,
            delay_initial=settings.redis_retry_delay_initial,
            delay_max=settings.redis_retry_delay_max,
            multiplier=settings.redis_retry_multiplier,
        )


# -----------------------------------------------------------------------------
# Cache tier
# -----------------------------------------------------------------------------


class RedisCache(CacheManager):
    """Distributed cache tier.

    Reads degrade to misses when Redis is unreachable, rejects the command
    or returns an unreadable payload. Writes and invalidations retry
    connectivity failures with backoff and raise ``ConnectivityError`` once
    retries are exhausted. Rejected commands raise ``CommandError`` at once.
    Cluster-wide operations that fail on some nodes raise
    ``PartialInvalidationError``.
    """

    name = "redis"

    def __init__(
        self,
        topology: RedisTopology,
        default_ttl_minutes: int | None = None,
        acknowledged_writes: bool | None = None,
        operation_timeout: float | None = None,
        node_operation_timeout: float | None = None,
        retry: RetryPolicy | None = None,
        scan_count: int | None = None,
    ):
        self.topology = topology
        self.client = topology.client
        self.default_ttl_minutes = default_ttl_minutes or settings.redis_default_ttl_minutes
        self.acknowledged_writes = (
            settings.redis_acknowledged_writes
            if acknowledged_writes is None
            else acknowledged_writes
        )
        self.operation_timeout = operation_timeout or settings.redis_operation_timeout
        self.node_operation_timeout = node_operation_timeout or settings.redis_node_operation_timeout
        self.retry = retry or RetryPolicy.from_settings()
        self.scan_count = scan_count or settings.redis_scan_count
        self._inflight = SingleFlight()
        self._pending: set[asyncio.Task[Any]] = set()
        self._metrics = get_metrics()

    @classmethod
    async def from_settings(cls) -> RedisCache:
        """Create a cache on the shared connection configured in settings."""
        return cls(await get_redis())

    # -------------------------------------------------------------------------
    # Network helpers
    # -------------------------------------------------------------------------

    async def _call(self, awaitable: Awaitable[T], timeout: float | None = None) -> T:
        """Await a Redis call under a deadline, mapping redis-py errors to ``CacheError``."""
        try:
            return await asyncio.wait_for(awaitable, timeout or self.operation_timeout)
        except _TRANSIENT_ERRORS as e:
            raise ConnectivityError(f"Redis unavailable: {e or type(e).__name__}") from e
        except RedisError as e:
            raise CommandError(f"Redis rejected command: {e or type(e).__name__}") from e

    async def _with_retry(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        timeout: float | None = None,
    ) -> T:
        attempt = 1
        delay = self.retry.delay_initial
        while True:
            try:
                return await self._call(call(), timeout)
            except ConnectivityError as e:
                if attempt >= self.retry.attempts:
                    raise
                logger.warning(
                    f"Redis {operation} attempt {attempt} failed, retrying in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
                delay = min(delay * self.retry.multiplier, self.retry.delay_max)
                attempt += 1

    def _spawn(self, operation: str, key: str, call: Callable[[], Awaitable[Any]]) -> None:
        """Run a write without waiting for the server."""
        task = asyncio.create_task(self._call(call()))
        self._pending.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            exc = finished.exception()
            if exc is not None:
                self._metrics.cache_dropped_writes_total.labels(tier=self.name).inc()
                logger.warning(f"Fire-and-forget Redis {operation} of {key} was lost: {exc}")

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for every pending fire-and-forget write."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, key: str, value_type: Any = None) -> CacheLookup:
        try:
            payload = await self._call(self.client.get(key))
        except CacheError as e:
            logger.warning(f"Redis read of {key} failed, treating as miss: {e}")
            payload = None

        if not payload:
            self._metrics.cache_misses_total.labels(tier=self.name).inc()
            return MISS

        try:
            value = decode(key, payload, value_type)
        except SerializationError as e:
            # Left in place; the next population overwrites it
            logger.warning(f"Treating unreadable cache entry as a miss: {e}")
            self._metrics.cache_misses_total.labels(tier=self.name).inc()
            return MISS

        self._metrics.cache_hits_total.labels(tier=self.name).inc()
        return CacheLookup(value, True)

    async def get_or_populate(
        self,
        key: str,
        factory: Factory[T],
        ttl: timedelta | None = None,
        value_type: Any = None,
    ) -> T:
        validate_ttl(ttl)
        cached = await self.get(key, value_type)
        if cached.found:
            return cached.value  # type: ignore[no-any-return]

        return await self._inflight.run(key, lambda: self._populate(key, factory, ttl))

    async def _populate(self, key: str, factory: Factory[T], ttl: timedelta | None) -> T:
        value = await produce(factory)
        self._metrics.cache_populations_total.labels(tier=self.name).inc()
        try:
            await self.set(key, value, ttl, acknowledged=False)
        except SerializationError as e:
            logger.warning(f"Not caching {key}: {e}")
        return value

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._call(self.client.exists(key)))
        except CacheError as e:
            logger.warning(f"Redis exists check of {key} failed, treating as absent: {e}")
            return False

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: Any,
        ttl: timedelta | None = None,
        *,
        acknowledged: bool | None = None,
    ) -> None:
        """Store a value with a TTL in whole minutes.

        Args:
            key: Cache key
            value: JSON-compatible value or pydantic model
            ttl: Positive TTL; ``None`` uses the configured default
            acknowledged: Wait for the server; ``None`` uses the configured mode
        """
        validate_ttl(ttl)
        if value is None:
            return

        payload = encode(key, value)
        seconds = ttl_to_seconds(ttl, self.default_ttl_minutes)

        def write() -> Awaitable[Any]:
            return self.client.set(key, payload, ex=seconds)

        if self.acknowledged_writes if acknowledged is None else acknowledged:
            await self._with_retry("set", write)
        else:
            self._spawn("set", key, write)

    async def remove(self, key: str) -> None:
        try:
            await self._with_retry("remove", lambda: self.client.delete(key))
        except CacheError:
            self._metrics.cache_invalidation_failures_total.labels(
                tier=self.name, operation="remove"
            ).inc()
            raise
        self._metrics.cache_invalidations_total.labels(tier=self.name, operation="remove").inc()

    # -------------------------------------------------------------------------
    # Cluster-wide operations
    # -------------------------------------------------------------------------

    async def _remove_matching(self, node: RedisNode, match: str) -> int:
        keys = [key async for key in node.client.scan_iter(match=match, count=self.scan_count)]
        if not keys:
            return 0

        # One DEL per key: keys on a node may span hash slots
        async with node.client.pipeline(transaction=False) as pipe:
            for key in keys:
                pipe.delete(key)
            results = await pipe.execute()
        return sum(int(r) for r in results)

    def _raise_for_failures(
        self, operation: str, failures: dict[str, Exception], removed: int = 0
    ) -> None:
        if not failures:
            self._metrics.cache_invalidations_total.labels(
                tier=self.name, operation=operation
            ).inc()
            return

        self._metrics.cache_invalidation_failures_total.labels(
            tier=self.name, operation=operation
        ).inc()
        if len(failures) == len(self.topology.nodes):
            first = next(iter(failures.values()))
            unreachable = all(isinstance(e, ConnectivityError) for e in failures.values())
            error_type = ConnectivityError if unreachable else CommandError
            raise error_type(f"Redis {operation} failed on every node: {first}") from first
        raise PartialInvalidationError(operation, failures, removed)

    async def remove_by_pattern(self, pattern: str) -> int:
        """Remove keys containing ``pattern`` on every node.

        Scans each node's keyspace in turn, so cost grows with the total
        number of keys. Not atomic across nodes; safe to retry.
        """
        match = f"*{glob_escape(pattern)}*"
        removed = 0
        failures: dict[str, Exception] = {}

        for node in self.topology.nodes:
            try:
                removed += await self._with_retry(
                    "remove_by_pattern",
                    partial(self._remove_matching, node, match),
                    self.node_operation_timeout,
                )
            except CacheError as e:
                logger.error(f"Pattern removal of {pattern!r} failed on {node.name}: {e}")
                failures[node.name] = e

        self._raise_for_failures("remove_by_pattern", failures, removed)
        logger.debug(f"Removed {removed} Redis keys matching {pattern!r}")
        return removed

    async def clear(self) -> None:
        """Flush the database on every node.

        Best-effort: a failure part-way leaves some nodes flushed and raises
        ``PartialInvalidationError``. Safe to retry.
        """
        failures: dict[str, Exception] = {}

        for node in self.topology.nodes:
            try:
                await self._with_retry(
                    "clear",
                    node.client.flushdb,
                    self.node_operation_timeout,
                )
            except CacheError as e:
                logger.error(f"Flushing Redis node {node.name} failed: {e}")
                failures[node.name] = e

        self._raise_for_failures("clear", failures)
        logger.info(f"Cleared Redis cache on {len(self.topology.nodes)} node(s)")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            await self._call(cast(Awaitable[bool], self.client.ping()))
            return True
        except CacheError:
            return False

    async def close(self) -> None:
        """Flush pending writes. The shared connection is closed by ``close_redis``."""
        await self.drain()
