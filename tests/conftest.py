from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

FIXED_UTC = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock, sleep and wall clock that only move when slept."""

    def __init__(self, start: float = 1000.0) -> None:
        self.t = start
        self._start = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.t

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds

    def advance(self, seconds: float) -> None:
        self.t += seconds

    def utcnow(self) -> datetime:
        return FIXED_UTC + timedelta(seconds=self.t - self._start)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
