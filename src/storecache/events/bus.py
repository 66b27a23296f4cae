"""Store lifecycle event delivery.

``StoreService`` publishes one event per committed mutation and never waits
for subscribers: events are queued and handed to every subscriber by a
single background task, in publish order. A subscriber that raises is
logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from storecache.events.schemas import AnyEvent

logger = logging.getLogger(__name__)


EventHandler = Callable[[AnyEvent], Awaitable[None]]


class EventBus(ABC):
    """Where the store service sends lifecycle events."""

    @abstractmethod
    async def publish(self, event: AnyEvent) -> None:
        """Hand off an event without waiting for subscribers."""

    @abstractmethod
    async def subscribe(self, handler: EventHandler) -> None:
        """Register a coroutine to receive every later event."""

    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...


class InMemoryEventBus(EventBus):
    """Single-process bus backed by a bounded asyncio.Queue.

    Events published before ``start`` wait in the queue. ``stop`` delivers
    whatever is already queued, then ends the delivery task.
    """

    def __init__(self, max_size: int = 10000):
        self._events: asyncio.Queue[AnyEvent] = asyncio.Queue(maxsize=max_size)
        self._subscribers: list[EventHandler] = []
        self._delivery: asyncio.Task[None] | None = None

    async def publish(self, event: AnyEvent) -> None:
        await self._events.put(event)

    async def subscribe(self, handler: EventHandler) -> None:
        self._subscribers.append(handler)

    async def start(self) -> None:
        if self._delivery is None:
            self._delivery = asyncio.create_task(self._deliver_forever())

    async def stop(self) -> None:
        if self._delivery is None:
            return
        await self.drain()
        self._delivery.cancel()
        try:
            await self._delivery
        except asyncio.CancelledError:
            pass
        self._delivery = None

    async def _deliver_forever(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._deliver(event)
            finally:
                self._events.task_done()

    async def _deliver(self, event: AnyEvent) -> None:
        for handler in self._subscribers:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    f"Subscriber failed on {event.event_type.value} event for store {event.store_id}"
                )

    @property
    def pending_count(self) -> int:
        """Events queued but not yet delivered."""
        return self._events.qsize()

    async def drain(self) -> None:
        """Wait until every queued event has been delivered."""
        await self._events.join()
