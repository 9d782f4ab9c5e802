"""Small helpers shared by test modules."""

from datetime import UTC, date, datetime, timedelta
from typing import Any

from homezy.utils.date_utils import local_date


class FakeClock:
    """Callable clock that tests move forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=UTC)


def days_from_today(clock: FakeClock, days: int) -> date:
    """Local calendar date `days` after the clock's current local date."""
    return local_date(clock()) + timedelta(days=days)
