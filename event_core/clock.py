"""Single source of "now" for the engine; injectable for tests."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...


def ensure_aware(value: datetime, field: str = "datetime") -> datetime:
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValueError(f"{field} must be timezone-aware, got naive {value.isoformat()}")
    return value


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Manually driven clock.

    Example:
        clock = FixedClock(datetime(2026, 5, 1, 18, 0, tzinfo=timezone.utc))
        clock.advance(minutes=20)
    """

    def __init__(self, current: datetime) -> None:
        self._current = ensure_aware(current, "current")

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = ensure_aware(current, "current")

    def advance(self, **delta: float) -> datetime:
        self._current = self._current + timedelta(**delta)
        return self._current
