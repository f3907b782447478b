"""Clock and identifier sources for the scheduler."""

from datetime import datetime
from typing import Protocol
from uuid import uuid4
from zoneinfo import ZoneInfo

APPOINTMENT_ID_PREFIX = "apt_"


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Return the current timezone-aware datetime in the clinic timezone."""
        ...


class SystemClock:
    """Wall clock in a fixed IANA timezone."""

    def __init__(self, timezone: str = "UTC"):
        """Initialize with the clinic timezone name."""
        self.tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        """Return the current time in the clinic timezone."""
        return datetime.now(self.tz)


def new_appointment_id() -> str:
    """Generate an opaque appointment identifier."""
    return f"{APPOINTMENT_ID_PREFIX}{uuid4().hex}"
