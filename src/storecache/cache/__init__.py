"""Two-tier cache layer for storecache.

Provides the cache-aside pattern in front of the store repository:
- MemoryCache: process-local primary tier, stampede protected
- RedisCache: shared secondary tier with minute-granularity TTLs
- CacheTiers: explicit primary/secondary role registration
"""

from storecache.cache.base import (
    MISS,
    CacheLookup,
    CacheManager,
    CacheRole,
    CacheTiers,
    SingleFlight,
)
from storecache.cache.keys import CacheKeys, StoreCacheKeys
from storecache.cache.memory import MemoryCache
from storecache.cache.redis import (
    RedisCache,
    RedisNode,
    RedisTopology,
    RetryPolicy,
    close_redis,
    create_topology,
    get_redis,
)

__all__ = [
    # Contract
    "CacheLookup",
    "CacheManager",
    "CacheRole",
    "CacheTiers",
    "MISS",
    "SingleFlight",
    # Keys
    "CacheKeys",
    "StoreCacheKeys",
    # Tiers
    "MemoryCache",
    "RedisCache",
    "RedisNode",
    "RedisTopology",
    "RetryPolicy",
    "create_topology",
    "get_redis",
    "close_redis",
]
