"""Structural validation of raw booking requests."""

import re
from collections.abc import Mapping
from datetime import date
from typing import Any

from medibook.schemas.appointments import ValidationResult

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2}) (AM|PM)$", re.IGNORECASE)


def validate_appointment_data(
    data: Mapping[str, Any],
    today: date | None = None,
) -> ValidationResult:
    """
    Check a raw booking request before any scheduling logic runs.

    Requires ``doctorId``/``doctor_id``, ``date`` (``YYYY-MM-DD``) and ``time``
    (``H:MM AM/PM``), and rejects dates before today. Time of day is ignored
    for the past-date check. Never raises.

    Args:
        data: Raw request payload
        today: Reference date, defaults to the local current date

    Returns:
        Validation result with the first error found
    """
    doctor_id = data.get("doctor_id") or data.get("doctorId")
    raw_date = data.get("date")
    raw_time = data.get("time")

    if not doctor_id or not raw_date or not raw_time:
        return ValidationResult(valid=False, error="Doctor, date, and time are required")

    if not isinstance(raw_date, str) or not _DATE_PATTERN.match(raw_date):
        return ValidationResult(valid=False, error="Invalid date format. Use YYYY-MM-DD")

    try:
        appointment_date = date.fromisoformat(raw_date)
    except ValueError:
        return ValidationResult(valid=False, error="Invalid date format. Use YYYY-MM-DD")

    match = _TIME_PATTERN.match(raw_time) if isinstance(raw_time, str) else None
    if not match or not 1 <= int(match[1]) <= 12 or int(match[2]) > 59:
        return ValidationResult(valid=False, error="Invalid time format. Use HH:MM AM/PM")

    if appointment_date < (today or date.today()):
        return ValidationResult(valid=False, error="Cannot book appointments in the past")

    return ValidationResult(valid=True)
