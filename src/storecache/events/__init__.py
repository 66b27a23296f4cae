"""Store lifecycle notifications.

Every committed mutation produces one event:
- CREATED after insert
- UPDATED after update
- DELETED after delete
"""

from storecache.events.bus import EventBus, EventHandler, InMemoryEventBus
from storecache.events.publisher import publish_store_event
from storecache.events.schemas import AnyEvent, EventType, StoreEvent

__all__ = [
    "AnyEvent",
    "EventBus",
    "EventHandler",
    "EventType",
    "InMemoryEventBus",
    "StoreEvent",
    "publish_store_event",
]
