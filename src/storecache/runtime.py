"""Runtime wiring for the store service."""

from __future__ import annotations

import logging

from storecache.cache.base import CacheManager, CacheRole, CacheTiers
from storecache.cache.memory import MemoryCache
from storecache.cache.redis import RedisCache, close_redis
from storecache.config import settings
from storecache.events.bus import EventBus, InMemoryEventBus
from storecache.observability.logging import configure_logging
from storecache.persistence.repositories import StoreRepository
from storecache.services.stores import StoreService

logger = logging.getLogger(__name__)


async def create_cache_tiers() -> CacheTiers:
    """Create the local tier and, when enabled, the Redis tier."""
    memory = MemoryCache()
    await memory.start()

    registrations: list[tuple[CacheRole, CacheManager]] = [(CacheRole.PRIMARY, memory)]
    if settings.redis_enabled:
        registrations.append((CacheRole.SECONDARY, await RedisCache.from_settings()))

    return CacheTiers.from_registrations(registrations)


async def start_store_service(
    repository: StoreRepository,
    event_bus: EventBus | None = None,
) -> StoreService:
    """Configure logging, build the cache tiers and start the event bus."""
    configure_logging(json_format=settings.log_json, level=settings.log_level)

    bus = event_bus or InMemoryEventBus()
    await bus.start()

    service = StoreService(await create_cache_tiers(), repository, bus)
    logger.info(
        "%s store service started in %s (secondary cache: %s)",
        settings.app_name,
        settings.env,
        service.caches.secondary.name if service.caches.secondary else "none",
    )
    return service


async def stop_store_service(service: StoreService) -> None:
    """Stop background tasks and close the shared Redis connection."""
    await service.caches.close()
    await service.event_bus.stop()
    await close_redis()
    logger.info("Store service stopped")
