"""Time-of-day parsing helpers.

Times travel as "HH:MM" strings (storage may hand back "HH:MM:SS"). Internally
they are compared as minutes since midnight.
"""
import re
from datetime import date, time
from typing import Union

from medbook.errors import ValidationError

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r'^(\d{2}):(\d{2})(?::(\d{2}))?$')


def parse_time_of_day(value: Union[str, time], allow_end_of_day: bool = False) -> int:
    """
    Convert a time-of-day value to minutes since midnight.

    Args:
        value: "HH:MM", "HH:MM:SS" or datetime.time (seconds are ignored)
        allow_end_of_day: Accept "24:00" (only meaningful as an end time)

    Returns:
        Minutes since midnight (0-1440)

    Raises:
        ValidationError: If value is malformed or out of range
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    if not isinstance(value, str):
        raise ValidationError(f"Time must be an 'HH:MM' string, got {type(value).__name__}")

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise ValidationError(f"Invalid time '{value}'. Expected HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)

    if allow_end_of_day and hour == 24 and minute == 0 and second == 0:
        return MINUTES_PER_DAY

    if hour > 23 or minute > 59 or second > 59:
        raise ValidationError(f"Invalid time '{value}'. Out of range")

    return hour * 60 + minute


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time(value: Union[str, time], allow_end_of_day: bool = False) -> str:
    """Validate a time value and return its canonical "HH:MM" form."""
    return format_minutes(parse_time_of_day(value, allow_end_of_day=allow_end_of_day))


def weekday_index(day: date) -> int:
    """Weekday with 0=Sunday ... 6=Saturday."""
    return day.isoweekday() % 7
