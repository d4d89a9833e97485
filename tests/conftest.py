"""Shared pytest fixtures."""

from __future__ import annotations

from itertools import count
from typing import Callable

import pytest

from formsmith.domain.form_store import FormStore
from formsmith.events import EventBus
from tests.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def id_factory() -> Callable[[], str]:
    counter = count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(clock: FakeClock, id_factory: Callable[[], str], event_bus: EventBus) -> FormStore:
    return FormStore(event_bus=event_bus, clock=clock, id_factory=id_factory)
