"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from medibook.config import settings
from medibook.core.clock import SystemClock
from medibook.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Liveness information."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Readiness information, including the clinic clock the scheduler uses."""

    database: str
    clinic_timezone: str
    clinic_time: datetime


@router.get("/health", response_model=HealthResponse, summary="Liveness check")
async def health_check() -> HealthResponse:
    """Report that the process is up."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    summary="Readiness check",
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": DetailedHealthResponse}},
)
async def detailed_health_check(response: Response) -> DetailedHealthResponse:
    """
    Check the appointment database and report the clinic's current time.

    Responds 503 while the database is unreachable so load balancers stop
    routing bookings here.
    """
    db_healthy = await check_database_connection()
    if not db_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return DetailedHealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database="healthy" if db_healthy else "unhealthy",
        clinic_timezone=settings.clinic_timezone,
        clinic_time=SystemClock(settings.clinic_timezone).now(),
    )


@router.get("/ping", summary="Simple ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
