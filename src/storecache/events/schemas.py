"""Event schemas for storecache.

Lifecycle notifications emitted after a store mutation has been committed
and the cache tiers have been invalidated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Literal
from uuid import uuid4

from storecache.domain import Store


class EventType(str, Enum):
    """Type of entity change event."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class StoreEvent:
    """Event for Store changes."""

    event_type: EventType
    store_id: str
    store: Store
    entity: Literal["store"] = "store"
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


AnyEvent = StoreEvent
