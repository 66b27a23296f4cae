"""Repository contract for stores.

The repository is the single source of truth; the cache tiers only ever
hold data derived from it. Any document store exposing these five async
operations can back the service.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

from storecache.domain import Store


@runtime_checkable
class StoreRepository(Protocol):
    """Persistence operations consumed by the store service."""

    async def find_all(self) -> list[Store]: ...

    async def find_by_id(self, store_id: str) -> Store | None: ...

    async def insert(self, store: Store) -> Store: ...

    async def update(self, store: Store) -> Store: ...

    async def delete(self, store: Store) -> None: ...


class InMemoryStoreRepository:
    """Dict-backed repository for single-process deployments and tests.

    Stores are copied on the way in and out so callers can't mutate the
    persisted state by reference.
    """

    def __init__(self, stores: list[Store] | None = None):
        self._stores: dict[str, Store] = {}
        self._lock = asyncio.Lock()
        for store in stores or []:
            self._stores[store.id] = store.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._stores)

    async def find_all(self) -> list[Store]:
        return [store.model_copy(deep=True) for store in self._stores.values()]

    async def find_by_id(self, store_id: str) -> Store | None:
        store = self._stores.get(store_id)
        return store.model_copy(deep=True) if store is not None else None

    async def insert(self, store: Store) -> Store:
        async with self._lock:
            if store.id in self._stores:
                raise KeyError(f"Store {store.id!r} already exists")
            self._stores[store.id] = store.model_copy(deep=True)
        return store

    async def update(self, store: Store) -> Store:
        async with self._lock:
            if store.id not in self._stores:
                raise KeyError(f"Store {store.id!r} not found")
            self._stores[store.id] = store.model_copy(deep=True)
        return store

    async def delete(self, store: Store) -> None:
        async with self._lock:
            if store.id not in self._stores:
                raise KeyError(f"Store {store.id!r} not found")
            del self._stores[store.id]
