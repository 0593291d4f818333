"""UTC and business-calendar datetime utilities.

Calendar days for bonuses are resolved in the business timezone
(settings.BUSINESS_TZ), not UTC, so "today" rolls over at local midnight.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from config.settings import settings

BUSINESS_TZ = ZoneInfo(settings.BUSINESS_TZ)


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def business_day(now: datetime, tz: ZoneInfo = BUSINESS_TZ) -> date:
    """Calendar day of `now` in the business timezone."""
    if now.tzinfo is None:
        raise ValueError("business_day() requires a timezone-aware datetime")
    return now.astimezone(tz).date()


def month_start(day: date) -> date:
    return day.replace(day=1)


def next_month_start(day: date) -> date:
    first = day.replace(day=1)
    if first.month == 12:
        return first.replace(year=first.year + 1, month=1)
    return first.replace(month=first.month + 1)


def last_complete_minute(now: datetime) -> datetime:
    """Start of the last fully elapsed minute: truncate to the minute, minus one.

    12:07:42 -> 12:06:00. The in-progress minute (12:07) is never eligible.
    """
    return now.replace(second=0, microsecond=0) - timedelta(minutes=1)
