"""Patient appointment endpoints."""

from fastapi import APIRouter, Query, status

from medibook.dependencies import CurrentUserId, Scheduler
from medibook.schemas.appointments import AppointmentListResponse, AppointmentStatus

router = APIRouter()


@router.get(
    "/{patient_id}/appointments",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List a patient's appointments",
)
async def list_patient_appointments(
    patient_id: str,
    _: CurrentUserId,
    service: Scheduler,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
) -> AppointmentListResponse:
    """List a patient's appointments ordered by date and time."""
    items = await service.get_appointments_by_patient_id(patient_id, status_filter)
    return AppointmentListResponse(total=len(items), items=items)
