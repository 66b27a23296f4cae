"""Global pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from storecache.domain import Store
from tests.helpers import FakeClock, RecordingEventBus


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def store_a() -> Store:
    return Store(id="a", name="Main store", url="https://a.example.com/", display_order=1)


@pytest.fixture
def store_b() -> Store:
    return Store(id="b", name="Outlet", url="https://b.example.com/", display_order=2)
