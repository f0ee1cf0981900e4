"""
Clock and day-key service.

All scheduling happens on calendar days in a single reference timezone so that
a learner's "today" does not depend on the caller's locale. Day keys are
YYYY-MM-DD strings, which sort the same way as the dates they name.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from mistake_srs.constants import REFERENCE_TIMEZONE


DayLike = Union[str, date, datetime, None]


def format_timestamp(ts: datetime) -> str:
    """Fixed-width UTC ISO string, safe for lexicographic range queries."""
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def shift_day_key(day_key: str, days: int) -> str:
    """Move a day key forward (or back, for negative days)."""
    return (date.fromisoformat(day_key) + timedelta(days=days)).isoformat()


class Clock:
    """Wall clock bound to the reference timezone."""

    def __init__(self, tz_name: str = REFERENCE_TIMEZONE):
        self.tz = ZoneInfo(tz_name)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def day_key(self, ts: Optional[datetime] = None) -> str:
        """Calendar day of a timestamp in the reference timezone."""
        if ts is None:
            ts = self.now()
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(self.tz).date().isoformat()

    def today(self) -> str:
        return self.day_key(self.now())

    def resolve_day(self, value: DayLike) -> str:
        """
        Normalize a caller-supplied day.

        Accepts a day key, a date, a datetime (converted to the reference
        timezone) or None for today.
        """
        if value is None:
            return self.today()
        if isinstance(value, datetime):
            return self.day_key(value)
        if isinstance(value, date):
            return value.isoformat()
        # Round-trip to reject malformed keys early
        return date.fromisoformat(value).isoformat()


class FixedClock(Clock):
    """
    Clock pinned to a given instant.

    Used by tests and for replaying schedules ("time travel").
    """

    def __init__(self, now: datetime, tz_name: str = REFERENCE_TIMEZONE):
        super().__init__(tz_name)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        self._now = now

    def advance(self, days: float = 0, **kwargs) -> datetime:
        self._now = self._now + timedelta(days=days, **kwargs)
        return self._now
