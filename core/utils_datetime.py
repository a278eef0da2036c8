"""
DateTime utilities for business-local time and minute-of-day arithmetic.

All scheduling math runs on integer minutes since local midnight; these helpers
convert between that representation, ``HH:mm`` strings and aware datetimes in
a business timezone.
"""
from datetime import datetime, date, time, timedelta
from typing import Optional, Union
import re

import pytz

from core.config import settings


MINUTES_PER_DAY = 24 * 60

TIME_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


def get_timezone(name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Return the pytz timezone for ``name`` (default from settings)."""
    return pytz.timezone(name or settings.default_timezone)


def get_current_datetime(tz_name: Optional[str] = None) -> datetime:
    """Get current datetime in the business timezone."""
    return datetime.now(get_timezone(tz_name))


def localize(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """
    Express ``dt`` in the business timezone.

    Naive datetimes are taken as already being wall-clock time there.
    """
    tz = get_timezone(tz_name)
    if dt.tzinfo is None:
        return tz.localize(dt)
    return dt.astimezone(tz)


def parse_hhmm(value: Union[str, int]) -> int:
    """
    Parse ``HH:mm`` into minutes since midnight.

    ``24:00`` is accepted as the exclusive end of a day. Integers pass through.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    if isinstance(value, int):
        return value
    text = value.strip()
    if text == "24:00":
        return MINUTES_PER_DAY
    match = TIME_PATTERN.match(text)
    if not match:
        raise ValueError(f"Invalid time of day: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    """Format minutes since midnight as zero-padded ``HH:mm``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minute_of_day(value: Union[datetime, time]) -> int:
    """Minutes since midnight for a time or datetime (seconds are dropped)."""
    return value.hour * 60 + value.minute


def day_bounds(target: date, tz_name: Optional[str] = None) -> tuple[datetime, datetime]:
    """Aware ``[start, end)`` of a calendar day in the business timezone."""
    tz = get_timezone(tz_name)
    start = tz.localize(datetime.combine(target, time(0, 0)))
    end = tz.localize(datetime.combine(target + timedelta(days=1), time(0, 0)))
    return start, end


def combine_local(target: date, start_minute: int, tz_name: Optional[str] = None) -> datetime:
    """Aware datetime for ``start_minute`` on ``target`` in the business timezone."""
    naive = datetime.combine(target, time(0, 0)) + timedelta(minutes=start_minute)
    return get_timezone(tz_name).localize(naive)
