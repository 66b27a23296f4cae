"""Shared test doubles."""

from __future__ import annotations

from storecache.events.bus import EventBus, EventHandler
from storecache.events.schemas import AnyEvent


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingEventBus(EventBus):
    """Event bus that keeps every published event in order."""

    def __init__(self) -> None:
        self.events: list[AnyEvent] = []

    async def publish(self, event: AnyEvent) -> None:
        self.events.append(event)

    async def subscribe(self, handler: EventHandler) -> None:
        pass

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass
