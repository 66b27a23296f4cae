"""Integration test fixtures using Docker.

Provides a containerized Redis so the distributed tier runs against a real
server. Tests are skipped when Docker is unavailable.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import pytest
import pytest_asyncio
from redis.asyncio import Redis

from storecache.cache.redis import RedisCache, RedisTopology, RetryPolicy


@dataclass
class RedisContainer:
    """A running Redis container and the address its port is published on."""

    container: Any
    host: str

    @property
    def port(self) -> int:
        self.container.reload()
        bindings = self.container.attrs["NetworkSettings"]["Ports"].get("6379/tcp")
        if not bindings:
            raise RuntimeError(f"Redis port not published on {self.container.short_id}")
        return int(bindings[0]["HostPort"])

    @property
    def url(self) -> str:
        return f"redis://{self.host}:{self.port}/0"


def _published_host(client: Any) -> str:
    base_url = client.api.base_url
    if base_url.startswith(("unix://", "npipe://", "http+docker://")):
        return "localhost"
    return urlparse(base_url).hostname or "localhost"


@pytest.fixture(scope="session")
def docker_client() -> Iterator[Any]:
    """Create a Docker client or skip if Docker is unavailable."""
    docker = pytest.importorskip("docker")
    try:
        client = docker.from_env()
        client.ping()
    except Exception as exc:
        pytest.skip(f"Docker not available: {exc}")
    yield client
    client.close()


@pytest.fixture(scope="session")
def redis_container(docker_client: Any) -> Iterator[RedisContainer]:
    """Start Redis for the test session."""
    container = docker_client.containers.run(
        "redis:7-alpine", detach=True, ports={"6379/tcp": None}
    )
    try:
        yield RedisContainer(container=container, host=_published_host(docker_client))
    finally:
        container.remove(force=True, v=True)


async def _wait_for_redis(client: Redis, timeout: float = 10.0) -> None:
    deadline = time.monotonic() + timeout
    while True:
        try:
            await client.ping()
            return
        except Exception:
            if time.monotonic() > deadline:
                raise
            await asyncio.sleep(0.2)


@pytest_asyncio.fixture
async def redis_client(redis_container: RedisContainer) -> AsyncIterator[Redis]:
    """Create a Redis client for tests."""
    client = Redis.from_url(redis_container.url)
    await _wait_for_redis(client)
    yield client
    await client.flushdb()  # Clean up after each test
    await client.aclose()


@pytest.fixture
def redis_cache(redis_client: Redis) -> RedisCache:
    """Distributed tier on the container with acknowledged writes."""
    return RedisCache(
        RedisTopology.standalone(redis_client),
        acknowledged_writes=True,
        retry=RetryPolicy(attempts=2, delay_initial=0, delay_max=0),
    )
