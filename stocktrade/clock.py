"""
Injected time source. Everything that stamps or ages data asks a Clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock (naive local time, like datetime.now())."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2024, 1, 2, 9, 30)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by timedelta(**kwargs); returns the new time."""
        self._now = self._now + timedelta(**kwargs)
        return self._now
