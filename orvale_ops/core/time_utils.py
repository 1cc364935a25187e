"""
Time helpers shared by the schedulers.

All timestamps are stored as naive UTC (see ``utc_now``). Wall-clock
arithmetic in a named timezone goes through zoneinfo so that "next local
midnight" is computed from the calendar, not by adding 24 hours.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Current time in UTC, timezone-naive, for database storage."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_aware_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC (naive input is assumed to be UTC already)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def next_local_midnight(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """
    Return the aware UTC instant of 00:00:00 on the next calendar day in ``tz_name``.

    Args:
        tz_name: IANA timezone name, e.g. "America/Los_Angeles"
        now: Reference instant (naive = UTC); defaults to the current time
    """
    tz = ZoneInfo(tz_name)
    current = to_aware_utc(now or datetime.now(timezone.utc))
    local_today = current.astimezone(tz).date()
    midnight = datetime.combine(local_today + timedelta(days=1), time.min, tzinfo=tz)
    return midnight.astimezone(timezone.utc)


def seconds_until_next_local_midnight(tz_name: str, now: Optional[datetime] = None) -> float:
    """
    Seconds from ``now`` until the next local midnight in ``tz_name``.

    On a daylight-saving transition day the result spans 23 or 25 hours of
    elapsed time when taken from the previous midnight.
    """
    current = to_aware_utc(now or datetime.now(timezone.utc))
    return (next_local_midnight(tz_name, current) - current).total_seconds()


def local_date(tz_name: str, now: Optional[datetime] = None) -> date:
    """Calendar date of ``now`` in ``tz_name``."""
    current = to_aware_utc(now or datetime.now(timezone.utc))
    return current.astimezone(ZoneInfo(tz_name)).date()
