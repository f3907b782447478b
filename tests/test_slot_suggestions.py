"""Tests for next-slot probing, the buffered grid search and alternative doctors."""

from datetime import date, time

import pytest

from medibook.schemas.appointments import AppointmentCreate
from medibook.services.appointment_service import NO_SLOT_MESSAGE, AppointmentService

BOOKING_DATE = date(2025, 6, 1)


async def book_at(service: AppointmentService, slot: str, doctor_id: str = "doc_1"):
    return await service.create_appointment(
        AppointmentCreate(
            doctor_id=doctor_id,
            date=BOOKING_DATE,
            time=slot,
            status="confirmed",
        )
    )


@pytest.mark.asyncio
async def test_next_slots_for_free_doctor(service: AppointmentService) -> None:
    """Test a free doctor gets three consecutive 15-minute slots."""
    slots = await service.get_next_available_slots("doc_1", BOOKING_DATE, "09:00 AM", 3)
    assert slots == [time(9, 15), time(9, 30), time(9, 45)]


@pytest.mark.asyncio
async def test_next_slots_default_count(service: AppointmentService) -> None:
    """Test the configured suggestion count applies when none is given."""
    slots = await service.get_next_available_slots("doc_1", BOOKING_DATE, time(10, 0))
    assert slots == [time(10, 15), time(10, 30), time(10, 45)]


@pytest.mark.asyncio
async def test_next_slots_zero_count(service: AppointmentService) -> None:
    """Test an explicit count of zero returns no slots."""
    assert await service.get_next_available_slots("doc_1", BOOKING_DATE, "09:00", 0) == []


@pytest.mark.asyncio
async def test_next_slots_skip_taken(service: AppointmentService) -> None:
    """Test booked slots are skipped."""
    await book_at(service, "09:30")

    slots = await service.get_next_available_slots("doc_1", BOOKING_DATE, "09:00", 3)
    assert slots == [time(9, 15), time(9, 45), time(10, 0)]


@pytest.mark.asyncio
async def test_next_slots_ignore_cancelled(service: AppointmentService) -> None:
    """Test a cancelled booking does not block its slot."""
    appointment = await book_at(service, "09:15")
    await service.cancel_appointment(appointment.id, cancelled_by=None)

    slots = await service.get_next_available_slots("doc_1", BOOKING_DATE, "09:00", 1)
    assert slots == [time(9, 15)]


@pytest.mark.asyncio
async def test_next_slots_stop_at_end_of_day(service: AppointmentService) -> None:
    """Test candidates at or after the end of working hours are never offered."""
    slots = await service.get_next_available_slots("doc_1", BOOKING_DATE, "4:15 PM", 3)
    assert slots == [time(16, 30), time(16, 45)]


@pytest.mark.asyncio
async def test_next_slots_before_opening(service: AppointmentService) -> None:
    """Test candidates before working hours are skipped but still count toward the cap."""
    slots = await service.get_next_available_slots("doc_1", BOOKING_DATE, "07:00", 3)
    assert slots == [time(9, 0), time(9, 15), time(9, 30)]

    slots = await service.get_next_available_slots("doc_1", BOOKING_DATE, "06:00", 3)
    assert slots == []


@pytest.mark.asyncio
async def test_next_slots_search_is_capped(service: AppointmentService) -> None:
    """Test the probe gives up after a bounded number of candidates."""
    for minutes in range(15, 150, 15):
        await book_at(service, f"{9 + minutes // 60:02d}:{minutes % 60:02d}")

    # 09:15 through 11:15 are taken; only the tenth candidate, 11:30, is free
    slots = await service.get_next_available_slots("doc_1", BOOKING_DATE, "09:00", 3)
    assert slots == [time(11, 30)]


@pytest.mark.asyncio
async def test_next_slot_on_free_grid(service: AppointmentService) -> None:
    """Test the first grid slot after the requested time is offered."""
    suggestion = await service.find_next_available_slot("doc_1", BOOKING_DATE, "09:00 AM")

    assert suggestion.available_time == time(9, 30)
    assert suggestion.display_time == "9:30 AM"
    assert suggestion.message == "Next available slot: 9:30 AM"


@pytest.mark.asyncio
async def test_next_slot_keeps_buffer(service: AppointmentService) -> None:
    """Test grid slots within the buffer of a booking are passed over."""
    await book_at(service, "09:45")

    suggestion = await service.find_next_available_slot("doc_1", BOOKING_DATE, "09:00")
    assert suggestion.available_time == time(10, 30)


@pytest.mark.asyncio
async def test_next_slot_buffer_is_inclusive(service: AppointmentService) -> None:
    """Test a slot exactly one buffer away from a booking is allowed."""
    await book_at(service, "10:00")

    suggestion = await service.find_next_available_slot("doc_1", BOOKING_DATE, "09:00")
    assert suggestion.available_time == time(9, 30)


@pytest.mark.asyncio
async def test_next_slot_none_left(service: AppointmentService) -> None:
    """Test a request at the end of the grid yields no slot."""
    suggestion = await service.find_next_available_slot("doc_1", BOOKING_DATE, "5:30 PM")

    assert suggestion.available_time is None
    assert suggestion.display_time is None
    assert suggestion.message == NO_SLOT_MESSAGE


@pytest.mark.asyncio
async def test_next_slot_ignores_other_doctors(service: AppointmentService) -> None:
    """Test another doctor's bookings do not crowd the grid."""
    await book_at(service, "09:30", doctor_id="doc_2")

    suggestion = await service.find_next_available_slot("doc_1", BOOKING_DATE, "09:00")
    assert suggestion.available_time == time(9, 30)


@pytest.mark.asyncio
async def test_alternative_doctors(service: AppointmentService) -> None:
    """Test alternatives share the specialization, are active and exclude the busy doctor."""
    doctors = await service.suggest_alternative_doctors("Cardiology", "doc_1")

    assert [doctor.id for doctor in doctors] == ["doc_5", "doc_2"]


@pytest.mark.asyncio
async def test_alternative_doctors_are_capped(service: AppointmentService) -> None:
    """Test no more than the configured number of doctors is returned."""
    service.settings = service.settings.model_copy(update={"alternative_doctor_limit": 1})

    doctors = await service.suggest_alternative_doctors("Cardiology", None)

    assert [doctor.id for doctor in doctors] == ["doc_1"]


@pytest.mark.asyncio
async def test_alternative_doctors_without_directory(service: AppointmentService) -> None:
    """Test no directory or no specialization means no alternatives."""
    assert await service.suggest_alternative_doctors(None, "doc_1") == []

    service.doctor_directory = None
    assert await service.suggest_alternative_doctors("Cardiology", "doc_1") == []


@pytest.mark.asyncio
async def test_suggest_alternatives(service: AppointmentService) -> None:
    """Test the combined suggestions offered after a conflict."""
    await book_at(service, "09:00")

    alternatives = await service.suggest_alternatives(
        "doc_1", BOOKING_DATE, "09:00", "Cardiology"
    )

    assert alternatives.next_available.available_time == time(9, 30)
    assert alternatives.next_slots == [time(9, 15), time(9, 30), time(9, 45)]
    assert [doctor.id for doctor in alternatives.alternative_doctors] == ["doc_5", "doc_2"]
