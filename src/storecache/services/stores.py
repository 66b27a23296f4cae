"""Cached store service.

Reads go through the primary (process-local) tier and fall back to the
repository on a miss. Every mutation writes through the repository first,
then clears the primary and secondary tiers in full, then emits a
lifecycle event.

Clearing whole tiers discards unrelated entries on every write but can never
leave a stale sibling key behind (e.g. the ordered listing after a
``display_order`` change). Removing only ``StoreCacheKeys.all()`` and the
changed store's ``by_id`` key would give the same observable results for
this collection at lower cost.
"""

from __future__ import annotations

import logging

from storecache.cache.base import CacheTiers
from storecache.cache.keys import StoreCacheKeys
from storecache.domain import Store
from storecache.errors import CacheError, CacheInvalidationError, InvariantViolation
from storecache.events.bus import EventBus
from storecache.events.publisher import publish_store_event
from storecache.events.schemas import EventType
from storecache.observability.logging import LogContext
from storecache.persistence.repositories import StoreRepository

logger = logging.getLogger(__name__)


class StoreService:
    """Store reads and writes with two-tier cache invalidation."""

    def __init__(
        self,
        caches: CacheTiers,
        repository: StoreRepository,
        event_bus: EventBus,
    ):
        self.caches = caches
        self.repository = repository
        self.event_bus = event_bus

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def _load_all(self) -> list[Store]:
        stores = await self.repository.find_all()
        return sorted(stores, key=lambda store: store.display_order)

    async def get_all_stores(self) -> list[Store]:
        """All stores ordered by ``display_order``, cached until the next write.

        Returns a new list each call; the ``Store`` items are shared with the
        cache and must not be mutated.
        """
        stores = await self.caches.primary.get_or_populate(
            StoreCacheKeys.all(), self._load_all, value_type=list[Store]
        )
        return list(stores)

    async def get_store_by_id(self, store_id: str) -> Store | None:
        """A single store, or None if the repository has no such store."""
        return await self.caches.primary.get_or_populate(
            StoreCacheKeys.by_id(store_id),
            lambda: self.repository.find_by_id(store_id),
            value_type=Store,
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def insert_store(self, store: Store) -> None:
        if store is None:
            raise ValueError("store is required")

        with LogContext(operation="insert_store"):
            await self.repository.insert(store)
            await self._after_write(EventType.CREATED, store)

    async def update_store(self, store: Store) -> None:
        if store is None:
            raise ValueError("store is required")

        with LogContext(operation="update_store"):
            await self.repository.update(store)
            await self._after_write(EventType.UPDATED, store)

    async def delete_store(self, store: Store) -> None:
        """Delete a store.

        Raises:
            InvariantViolation: the store is the only one configured. Nothing
                is deleted or invalidated.
        """
        if store is None:
            raise ValueError("store is required")

        with LogContext(operation="delete_store"):
            # Checked against the repository, not a possibly stale cache
            if len(await self.repository.find_all()) == 1:
                raise InvariantViolation("You cannot delete the only configured store")

            await self.repository.delete(store)
            await self._after_write(EventType.DELETED, store)

    async def _after_write(self, event_type: EventType, store: Store) -> None:
        errors = await self._clear_tiers()
        await publish_store_event(self.event_bus, event_type, store)
        logger.info(f"Store {store.id} {event_type.value}")

        if errors:
            raise CacheInvalidationError(store, errors)

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def _clear_tiers(self) -> list[Exception]:
        """Clear every tier, collecting failures instead of stopping early."""
        errors: list[Exception] = []
        for cache in self.caches:
            try:
                await cache.clear()
            except CacheError as e:
                logger.error(f"Clearing {cache.name} cache after write failed: {e}")
                errors.append(e)
        return errors

    async def invalidate(self) -> None:
        """Clear both tiers. Use to retry after a ``CacheInvalidationError``."""
        errors = await self._clear_tiers()
        if errors:
            raise errors[0]
