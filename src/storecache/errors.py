"""Error taxonomy for storecache.

Infrastructure errors (connectivity, rejected commands, serialization) are absorbed by the cache
tiers wherever the repository is a safe fallback. Domain invariants and
post-mutation invalidation failures reach the caller.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from storecache.domain import Store


class StoreCacheError(Exception):
    """Base exception for storecache."""


class CacheError(StoreCacheError):
    """Base exception for cache tier failures."""


class ConnectivityError(CacheError):
    """The distributed tier could not be reached or timed out."""


class CommandError(CacheError):
    """Redis rejected a command, e.g. a disabled FLUSHDB or CLUSTERDOWN. Not retried."""


class SerializationError(CacheError):
    """A cached payload could not be encoded or decoded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Cannot (de)serialize cache entry {key!r}: {reason}")


class PartialInvalidationError(CacheError):
    """A cluster-wide invalidation succeeded on some nodes and failed on others.

    The operation is idempotent, so callers may simply retry it.
    """

    def __init__(self, operation: str, failed_nodes: dict[str, Exception], removed: int = 0):
        self.operation = operation
        self.failed_nodes = failed_nodes
        self.removed = removed
        nodes = ", ".join(sorted(failed_nodes))
        super().__init__(f"{operation} failed on {len(failed_nodes)} node(s): {nodes}")


class InvariantViolation(StoreCacheError):
    """A domain rule blocked a mutation before it ran."""


class CacheInvalidationError(StoreCacheError):
    """A mutation committed but one or more cache tiers could not be cleared.

    Stale reads are possible until ``StoreService.invalidate`` succeeds.
    """

    def __init__(self, store: Store, errors: Sequence[Exception]):
        self.store = store
        self.errors = list(errors)
        detail = "; ".join(str(e) for e in self.errors)
        super().__init__(f"Store {store.id!r} was saved but cache invalidation failed: {detail}")
