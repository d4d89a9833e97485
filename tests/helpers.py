"""Shared test helpers.

Import from here instead of duplicating these in individual test files::

    from tests.helpers import FakeClock, START_TIME
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

START_TIME = datetime(2025, 10, 15, 12, 30, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now
