"""Cache key schema for storecache.

Key format: {namespace}.{collection}.{selector}

Where:
- namespace: deployment-wide prefix (``settings.cache_namespace``)
- collection: entity collection, e.g. "stores"
- selector: "all" for the full listing, "id-{id}" for a single entity

Pattern removal matches substrings, so ``collection_pattern()`` scopes a
removal to one collection by convention only.
"""

from __future__ import annotations

from storecache.config import settings


class CacheKeys:
    """Cache key generator for one entity collection."""

    ALL_SELECTOR = "all"
    ID_SELECTOR = "id-{id}"

    def __init__(self, collection: str, namespace: str | None = None):
        if not collection or "." in collection:
            raise ValueError(f"Invalid collection name: {collection!r}")
        self.namespace = namespace or settings.cache_namespace
        self.collection = collection

    @property
    def prefix(self) -> str:
        return f"{self.namespace}.{self.collection}"

    def all(self) -> str:
        """Key for the ordered listing of every entity."""
        return f"{self.prefix}.{self.ALL_SELECTOR}"

    def by_id(self, identifier: str) -> str:
        """Key for a single entity."""
        return f"{self.prefix}.{self.ID_SELECTOR.format(id=identifier)}"

    def collection_pattern(self) -> str:
        """Substring pattern covering every key of this collection."""
        return f"{self.prefix}."

    def parse_key(self, key: str) -> dict[str, str] | None:
        """Parse a cache key into its components.

        Returns None if the key doesn't belong to this collection.
        """
        parts = key.split(".", 2)
        if len(parts) != 3 or parts[0] != self.namespace or parts[1] != self.collection:
            return None

        return {
            "namespace": parts[0],
            "collection": parts[1],
            "selector": parts[2],
        }


StoreCacheKeys = CacheKeys("stores")
