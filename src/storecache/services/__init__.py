"""Services built on the cache tiers."""

from storecache.services.stores import StoreService

__all__ = ["StoreService"]
