"""Store persistence contract."""

from storecache.persistence.repositories import InMemoryStoreRepository, StoreRepository

__all__ = ["InMemoryStoreRepository", "StoreRepository"]
