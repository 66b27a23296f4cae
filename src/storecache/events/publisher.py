"""Event publishing helpers for store mutations.

Example:
    from storecache.events.publisher import publish_store_event

    await publish_store_event(event_bus, EventType.DELETED, store)
"""

from __future__ import annotations

from storecache.domain import Store
from storecache.events.bus import EventBus
from storecache.events.schemas import EventType, StoreEvent


async def publish_store_event(
    event_bus: EventBus,
    event_type: EventType,
    store: Store,
) -> StoreEvent:
    """Publish a store created, updated or deleted event.

    Args:
        event_bus: Event bus to publish to
        event_type: CREATED, UPDATED or DELETED
        store: The store as written to the repository

    Returns:
        The published event
    """
    event = StoreEvent(
        event_type=event_type,
        store_id=store.id,
        store=store.model_copy(deep=True),
    )
    await event_bus.publish(event)
    return event
