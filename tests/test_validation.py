"""Tests for structural booking request validation."""

from datetime import date

from medibook.services.validation import validate_appointment_data

TODAY = date(2025, 5, 30)


def test_accepts_well_formed_request() -> None:
    """Test a complete request passes."""
    result = validate_appointment_data(
        {"doctorId": "d1", "date": "2099-01-01", "time": "09:00 AM"}, today=TODAY
    )
    assert result.valid is True
    assert result.error is None


def test_accepts_snake_case_doctor_id() -> None:
    """Test doctor_id works as well as doctorId."""
    result = validate_appointment_data(
        {"doctor_id": "d1", "date": "2025-05-30", "time": "5:45 pm"}, today=TODAY
    )
    assert result.valid is True


def test_requires_doctor_date_and_time() -> None:
    """Test missing fields are reported first."""
    result = validate_appointment_data({"date": "2099-01-01", "time": "09:00 AM"}, today=TODAY)
    assert result.valid is False
    assert result.error == "Doctor, date, and time are required"


def test_rejects_malformed_date() -> None:
    """Test dates that do not match YYYY-MM-DD are rejected."""
    for raw in ["01-06-2099", "2099/01/01", "2024-13-1"]:
        result = validate_appointment_data(
            {"doctorId": "d1", "date": raw, "time": "09:00 AM"}, today=TODAY
        )
        assert result.valid is False
        assert result.error == "Invalid date format. Use YYYY-MM-DD"


def test_rejects_impossible_date() -> None:
    """Test a well-shaped but impossible calendar date is rejected."""
    result = validate_appointment_data(
        {"doctorId": "d1", "date": "2024-13-01", "time": "09:00 AM"}, today=TODAY
    )
    assert result.valid is False
    assert result.error == "Invalid date format. Use YYYY-MM-DD"


def test_rejects_24_hour_time() -> None:
    """Test only the H:MM AM/PM form is accepted."""
    for raw in ["25:00", "13:00", "13:00 PM", "9:75 AM"]:
        result = validate_appointment_data(
            {"doctorId": "d1", "date": "2099-01-01", "time": raw}, today=TODAY
        )
        assert result.valid is False
        assert result.error == "Invalid time format. Use HH:MM AM/PM"


def test_rejects_past_date() -> None:
    """Test dates before today are rejected regardless of time."""
    result = validate_appointment_data(
        {"doctorId": "d1", "date": "2025-05-29", "time": "11:59 PM"}, today=TODAY
    )
    assert result.valid is False
    assert result.error == "Cannot book appointments in the past"


def test_never_raises_on_wrong_types() -> None:
    """Test non-string values produce an error result instead of an exception."""
    result = validate_appointment_data({"doctorId": "d1", "date": 20990101, "time": 900})
    assert result.valid is False
