"""
Clock abstraction.

Window, bucket, retention and cohort math all read "now" through a Clock so
tests can pin an exact instant.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


class Clock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


@dataclass
class FixedClock(Clock):
    """
    Clock frozen at a given instant. ``advance`` moves it forward.
    """

    current: datetime

    def __post_init__(self) -> None:
        self.current = ensure_utc(self.current)

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current


def ensure_utc(ts: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


system_clock = Clock()
