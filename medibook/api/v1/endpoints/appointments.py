"""Appointment endpoints."""

from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Query, status

from medibook.core.exceptions import SlotConflictException
from medibook.dependencies import CurrentUserId, Scheduler
from medibook.schemas.appointments import (
    AlternativeDoctor,
    Appointment,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AvailableSlotsResponse,
    CancelRequest,
    NextSlotSuggestion,
    RescheduleEligibility,
    RescheduleRequest,
    SlotAvailability,
    ValidationResult,
)
from medibook.services.appointment_service import slot_time
from medibook.services.validation import validate_appointment_data

router = APIRouter()


@router.post(
    "/",
    response_model=Appointment,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user_id: CurrentUserId,
    service: Scheduler,
) -> Appointment:
    """
    Book a slot for a patient.

    The patient defaults to the authenticated user. When the slot is taken
    the 409 response carries the blocking appointment and suggestions.
    """
    if data.patient_id is None:
        data = data.model_copy(update={"patient_id": current_user_id})

    try:
        return await service.create_appointment(data)
    except SlotConflictException as exc:
        exc.suggestions = await service.suggest_alternatives(
            data.doctor_id,
            data.appointment_date,
            data.appointment_time,
            data.doctor_specialization,
        )
        raise


@router.post(
    "/validate",
    response_model=ValidationResult,
    status_code=status.HTTP_200_OK,
    summary="Validate a raw booking request",
)
async def validate_appointment(
    _: CurrentUserId,
    service: Scheduler,
    payload: dict[str, Any] = Body(...),
) -> ValidationResult:
    """Run the structural booking checks without touching any slot."""
    return validate_appointment_data(payload, today=service.clock.now().date())


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List all appointments",
)
async def list_appointments(
    _: CurrentUserId,
    service: Scheduler,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
) -> AppointmentListResponse:
    """List every appointment, newest first."""
    items = await service.get_all_appointments(status_filter)
    return AppointmentListResponse(total=len(items), items=items)


@router.get(
    "/availability",
    response_model=SlotAvailability,
    status_code=status.HTTP_200_OK,
    summary="Check slot availability",
)
async def check_availability(
    _: CurrentUserId,
    service: Scheduler,
    doctor_id: str = Query(..., min_length=1),
    appointment_date: date = Query(..., alias="date"),
    appointment_time: str = Query(..., alias="time"),
    exclude_appointment_id: str | None = Query(None),
) -> SlotAvailability:
    """Check whether a doctor's exact slot is free."""
    return await service.check_slot_availability(
        doctor_id,
        appointment_date,
        slot_time(appointment_time),
        exclude_appointment_id,
    )


@router.get(
    "/suggestions/slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    summary="Next free slots in 15-minute steps",
)
async def next_available_slots(
    _: CurrentUserId,
    service: Scheduler,
    doctor_id: str = Query(..., min_length=1),
    appointment_date: date = Query(..., alias="date"),
    appointment_time: str = Query(..., alias="time"),
    count: int | None = Query(None, ge=1, le=20),
) -> AvailableSlotsResponse:
    """Probe forward from a time for free exact slots."""
    slots = await service.get_next_available_slots(
        doctor_id,
        appointment_date,
        slot_time(appointment_time),
        count,
    )
    return AvailableSlotsResponse(doctor_id=doctor_id, date=appointment_date, slots=slots)


@router.get(
    "/suggestions/next-slot",
    response_model=NextSlotSuggestion,
    status_code=status.HTTP_200_OK,
    summary="Next buffered slot on the half-hour grid",
)
async def next_available_slot(
    _: CurrentUserId,
    service: Scheduler,
    doctor_id: str = Query(..., min_length=1),
    appointment_date: date = Query(..., alias="date"),
    appointment_time: str = Query(..., alias="time"),
) -> NextSlotSuggestion:
    """Find the first grid slot that avoids crowding existing bookings."""
    return await service.find_next_available_slot(
        doctor_id,
        appointment_date,
        slot_time(appointment_time),
    )


@router.get(
    "/suggestions/doctors",
    response_model=list[AlternativeDoctor],
    status_code=status.HTTP_200_OK,
    summary="Alternative doctors",
)
async def alternative_doctors(
    _: CurrentUserId,
    service: Scheduler,
    specialization: str = Query(..., min_length=1),
    exclude_doctor_id: str | None = Query(None),
) -> list[AlternativeDoctor]:
    """Suggest active doctors with the same specialization."""
    return await service.suggest_alternative_doctors(specialization, exclude_doctor_id)


@router.get(
    "/{appointment_id}",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: str,
    _: CurrentUserId,
    service: Scheduler,
) -> Appointment:
    """Get a specific appointment by ID."""
    return await service.get_appointment_by_id(appointment_id)


@router.get(
    "/{appointment_id}/reschedule-eligibility",
    response_model=RescheduleEligibility,
    status_code=status.HTTP_200_OK,
    summary="Check whether an appointment can be rescheduled",
)
async def reschedule_eligibility(
    appointment_id: str,
    _: CurrentUserId,
    service: Scheduler,
) -> RescheduleEligibility:
    """Report reschedule eligibility without changing anything."""
    return await service.can_reschedule_appointment(appointment_id)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: str,
    data: RescheduleRequest,
    current_user_id: CurrentUserId,
    service: Scheduler,
) -> Appointment:
    """
    Move an appointment to a new slot.

    Rejected within the reschedule cutoff or for finished appointments.
    When the new slot is taken the 409 response carries suggestions.
    """
    try:
        return await service.reschedule_appointment(
            appointment_id,
            data.appointment_date,
            data.appointment_time,
            rescheduled_by=current_user_id,
        )
    except SlotConflictException as exc:
        current = await service.get_appointment_by_id(appointment_id)
        exc.suggestions = await service.suggest_alternatives(
            current.doctor_id,
            data.appointment_date,
            data.appointment_time,
            current.doctor_specialization,
        )
        raise


@router.post(
    "/{appointment_id}/cancel",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: str,
    current_user_id: CurrentUserId,
    service: Scheduler,
    data: CancelRequest | None = None,
) -> Appointment:
    """Cancel an appointment and free its slot."""
    return await service.cancel_appointment(
        appointment_id,
        cancelled_by=current_user_id,
        reason=data.reason if data else None,
    )


@router.patch(
    "/{appointment_id}/status",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: str,
    data: AppointmentStatusUpdate,
    _: CurrentUserId,
    service: Scheduler,
) -> Appointment:
    """Update appointment status (e.g., confirm, complete, no-show)."""
    return await service.update_appointment_status(appointment_id, data.status, data.notes)
