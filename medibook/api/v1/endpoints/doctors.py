"""Doctor schedule endpoints."""

from datetime import date

from fastapi import APIRouter, Query, status

from medibook.dependencies import CurrentUserId, Scheduler
from medibook.schemas.appointments import (
    AppointmentCountResponse,
    AppointmentListResponse,
    AppointmentStatus,
)

router = APIRouter()


@router.get(
    "/{doctor_id}/appointments",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List a doctor's appointments",
)
async def list_doctor_appointments(
    doctor_id: str,
    _: CurrentUserId,
    service: Scheduler,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    appointment_date: date | None = Query(None, alias="date"),
) -> AppointmentListResponse:
    """List a doctor's appointments ordered by date and time."""
    items = await service.get_appointments_by_doctor_id(doctor_id, status_filter, appointment_date)
    return AppointmentListResponse(total=len(items), items=items)


@router.get(
    "/{doctor_id}/appointments/today",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="Today's appointments for a doctor",
)
async def list_today_appointments(
    doctor_id: str,
    _: CurrentUserId,
    service: Scheduler,
) -> AppointmentListResponse:
    """List the doctor's appointments for the clinic's current date."""
    items = await service.get_today_appointments(doctor_id)
    return AppointmentListResponse(total=len(items), items=items)


@router.get(
    "/{doctor_id}/appointments/count",
    response_model=AppointmentCountResponse,
    status_code=status.HTTP_200_OK,
    summary="Count a doctor's appointments in a date range",
)
async def count_doctor_appointments(
    doctor_id: str,
    _: CurrentUserId,
    service: Scheduler,
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> AppointmentCountResponse:
    """Count appointments of any status between two dates, inclusive."""
    count = await service.count_appointments_by_date_range(doctor_id, start_date, end_date)
    return AppointmentCountResponse(
        doctor_id=doctor_id,
        start_date=start_date,
        end_date=end_date,
        count=count,
    )


@router.get(
    "/{doctor_id}/schedule",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="Doctor schedule for a date range",
)
async def doctor_schedule(
    doctor_id: str,
    _: CurrentUserId,
    service: Scheduler,
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> AppointmentListResponse:
    """Non-cancelled appointments between two dates, inclusive."""
    items = await service.get_doctor_schedule(doctor_id, start_date, end_date)
    return AppointmentListResponse(total=len(items), items=items)
