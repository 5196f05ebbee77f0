"""
Datetime utility functions.
Provides replacements for deprecated datetime functions and the display
formats used in RSVP messages.
"""

import re
from datetime import date, datetime
from typing import Union
import pytz

_CLOCK_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def parse_clock_time(value: str) -> int:
    """
    Parse an "HH:MM" (or "HH:MM:SS") clock time into minutes after midnight.

    Raises:
        ValueError: If the value is not a valid 24-hour clock time
    """
    match = _CLOCK_RE.match((value or "").strip())
    if not match:
        raise ValueError(f"Invalid time '{value}'. Expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"Invalid time '{value}'. Expected HH:MM")
    return hours * 60 + minutes


def format_clock_time(minutes: int) -> str:
    """Format minutes after midnight as zero-padded "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_tee_time(value: str) -> str:
    """
    Format an "HH:MM" clock time for display.

    Examples:
        >>> format_tee_time("08:00")
        "8:00 AM"
        >>> format_tee_time("13:05")
        "1:05 PM"
    """
    minutes = parse_clock_time(value)
    hours, mins = divmod(minutes, 60)
    suffix = "PM" if hours >= 12 else "AM"
    display_hour = hours % 12 or 12
    return f"{display_hour}:{mins:02d} {suffix}"


def _as_date(value: Union[str, date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def format_event_date(value: Union[str, date, datetime], include_year: bool = False) -> str:
    """
    Format an event date for messages ("Saturday, June 7").

    Args:
        value: ISO date string, date or datetime
        include_year: Append the year ("Saturday, June 7, 2025")
    """
    d = _as_date(value)
    text = f"{d.strftime('%A')}, {d.strftime('%B')} {d.day}"
    if include_year:
        text = f"{text}, {d.year}"
    return text
