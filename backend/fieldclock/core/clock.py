"""Business-timezone helpers.

Timestamps are stored in UTC; work dates and schedule windows live in the
single business timezone.
"""
from datetime import date, datetime, time
from typing import Optional

import pytz

from fieldclock.core.config import settings


def business_tz(name: Optional[str] = None):
    return pytz.timezone(name or settings.BUSINESS_TIMEZONE)


def now_utc() -> datetime:
    return datetime.now(pytz.utc)


def as_utc(dt: datetime) -> datetime:
    """Normalise to aware UTC. Naive values (e.g. read back from SQLite) are UTC."""
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def local_date(dt: datetime, tz=None) -> date:
    tz = tz or business_tz()
    return as_utc(dt).astimezone(tz).date()


def local_datetime(day: date, at: time, tz=None) -> datetime:
    """Wall-clock ``at`` on ``day`` in the business zone, DST-aware."""
    tz = tz or business_tz()
    return tz.localize(datetime.combine(day, at))


def day_bounds_utc(day: date, tz=None):
    """First and last instant (inclusive) of a business-local day, in UTC."""
    tz = tz or business_tz()
    start = tz.localize(datetime.combine(day, time.min))
    end = tz.localize(datetime.combine(day, time.max))
    return start.astimezone(pytz.utc), end.astimezone(pytz.utc)


def weekday_index(day: date) -> int:
    """0 = Sunday ... 6 = Saturday (schedule convention)."""
    return (day.weekday() + 1) % 7
