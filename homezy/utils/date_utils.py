"""
Local-time helpers.

Persisted timestamps are UTC. Calendar questions ("due today", "first day of
next month", "days since expiry") are answered in the platform timezone
(Asia/Dubai by default).
"""

from datetime import UTC, date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from shared.config import get_settings


@lru_cache
def get_timezone() -> ZoneInfo:
    return ZoneInfo(get_settings().TIMEZONE)


def utc_now() -> datetime:
    return datetime.now(UTC)


def local_date(moment: datetime, tz: ZoneInfo | None = None) -> date:
    """Calendar date of a UTC moment in the platform timezone."""
    return moment.astimezone(tz or get_timezone()).date()


def start_of_local_day(day: date, tz: ZoneInfo | None = None) -> datetime:
    """Local midnight of `day`, as a UTC datetime."""
    tz = tz or get_timezone()
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)


def local_day_bounds(day: date, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
    """[start, end) of a local calendar day, as UTC datetimes."""
    return start_of_local_day(day, tz), start_of_local_day(day + timedelta(days=1), tz)


def first_day_of_next_month(moment: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Local midnight on the 1st of the month after `moment`, as UTC."""
    today = local_date(moment, tz)
    first = today.replace(day=1) + relativedelta(months=1)
    return start_of_local_day(first, tz)


def next_month_bounds(moment: datetime, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
    """[start, end) of the calendar month after `moment`, as UTC datetimes."""
    start = first_day_of_next_month(moment, tz)
    end_day = local_date(start, tz) + relativedelta(months=1)
    return start, start_of_local_day(end_day, tz)
