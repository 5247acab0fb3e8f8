"""
Time helpers shared by the schemas and the scheduling engine.

All wall-clock values in the system are restaurant-local and carry no date
or timezone; they are exchanged as zero-padded "HH:MM" strings and handled
internally as ``datetime.time``.
"""
import re
from datetime import date, datetime, time, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from .error_handling.exceptions import InvalidTimeFormatError

_HHMM_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

TimeLike = Union[time, str]


def parse_time(value: TimeLike) -> time:
    """
    Parse a time string in HH:MM (or HH:MM:SS) format.

    Args:
        value: Time string or an existing ``time`` (returned unchanged)

    Returns:
        time object with seconds dropped

    Raises:
        InvalidTimeFormatError: If the value is not a valid time
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise InvalidTimeFormatError(value)

    match = _HHMM_PATTERN.match(value.strip())
    if not match:
        raise InvalidTimeFormatError(value)

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidTimeFormatError(value)
    return time(hour=hours, minute=minutes)


def format_hhmm(value: time) -> str:
    """Render a time as zero-padded HH:MM."""
    return f"{value.hour:02d}:{value.minute:02d}"


def format_12h(value: TimeLike) -> str:
    """
    Render a time on the 12-hour clock, e.g. "7:00 PM".

    Hour 0 is shown as 12 AM, hour 12 as 12 PM.
    """
    parsed = parse_time(value)
    hour = parsed.hour
    period = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{parsed.minute:02d} {period}"


def to_minutes(value: TimeLike) -> int:
    """Minutes since midnight."""
    parsed = parse_time(value)
    return parsed.hour * 60 + parsed.minute


def day_of_week(target_date: date) -> int:
    """Weekday index with 0 = Sunday .. 6 = Saturday."""
    return int(target_date.strftime("%w"))


def local_now(tz: Optional[ZoneInfo] = None) -> datetime:
    """
    Current restaurant-local wall clock as a naive datetime.

    Booking dates and times are stored without a timezone, so comparisons
    against "now" must use the same restaurant-local frame.
    """
    if tz is None:
        return datetime.now()
    return datetime.now(tz).replace(tzinfo=None)


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, for audit timestamp columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
