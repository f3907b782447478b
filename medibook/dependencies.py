"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.security import decode_access_token
from medibook.database import get_db
from medibook.repositories.appointment_store import SqlAppointmentStore
from medibook.repositories.doctor_directory import SqlDoctorDirectory
from medibook.services.appointment_service import AppointmentService

# Security
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """
    Extract the acting user's ID from the bearer token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Token subject

    Raises:
        HTTPException: If the token is missing, invalid or expired
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    subject = payload.get("sub") if payload else None

    if not subject or not isinstance(subject, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return subject


async def get_appointment_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AppointmentService:
    """Build the scheduler on top of the request's database session."""
    return AppointmentService(
        SqlAppointmentStore(db),
        doctor_directory=SqlDoctorDirectory(db),
    )


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Scheduler = Annotated[AppointmentService, Depends(get_appointment_service)]
