"""Time-of-day parsing and formatting.

Appointment times are held as ``datetime.time`` everywhere inside the
service. Clients may send either 24-hour ``HH:MM`` or 12-hour ``H:MM AM/PM``
strings; both are parsed here and the 12-hour form is only produced for
display.
"""

import re
from datetime import time

MINUTES_PER_DAY = 24 * 60

_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})$")
_TIME_12H = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)


def parse_time(value: time | str) -> time:
    """
    Parse a time of day.

    Args:
        value: ``datetime.time``, ``"HH:MM"`` or ``"H:MM AM/PM"``

    Returns:
        Time of day with seconds dropped

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)

    text = value.strip()

    match = _TIME_12H.match(text)
    if match:
        hours, minutes, period = int(match[1]), int(match[2]), match[3].upper()
        if not 1 <= hours <= 12 or minutes > 59:
            raise ValueError(f"Invalid 12-hour time: {value!r}")
        if period == "PM" and hours < 12:
            hours += 12
        elif period == "AM" and hours == 12:
            hours = 0
        return time(hours, minutes)

    match = _TIME_24H.match(text)
    if match:
        hours, minutes = int(match[1]), int(match[2])
        if hours > 23 or minutes > 59:
            raise ValueError(f"Invalid 24-hour time: {value!r}")
        return time(hours, minutes)

    raise ValueError(f"Unrecognised time format: {value!r}")


def convert_to_24_hour(value: str) -> str:
    """Convert ``"02:30 PM"`` to ``"14:30"``."""
    return format_24_hour(parse_time(value))


def format_24_hour(value: time) -> str:
    """Format as ``HH:MM``."""
    return value.strftime("%H:%M")


def format_12_hour(value: time) -> str:
    """Format as ``H:MM AM/PM``."""
    period = "PM" if value.hour >= 12 else "AM"
    hours = value.hour % 12 or 12
    return f"{hours}:{value.minute:02d} {period}"


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Inverse of :func:`to_minutes`; only valid within a single day."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range for a single day: {minutes}")
    return time(minutes // 60, minutes % 60)
