"""Read-only access to the doctor directory."""

from typing import Any, Protocol

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.exceptions import StoreException
from medibook.models.doctors import doctors

logger = structlog.get_logger()


class DoctorDirectory(Protocol):
    """Lookup of doctors who could take an appointment instead."""

    async def find_by_specialization(
        self,
        specialization: str,
        exclude_doctor_id: str | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        """Return active doctors with the given specialization."""
        ...


class SqlDoctorDirectory:
    """DoctorDirectory backed by the ``doctors`` table."""

    def __init__(self, db: AsyncSession):
        """Initialize directory with database session."""
        self.db = db

    async def find_by_specialization(
        self,
        specialization: str,
        exclude_doctor_id: str | None,
        limit: int,
    ) -> list[dict[str, Any]]:
        conditions = [
            doctors.c.specialization == specialization,
            doctors.c.status == "active",
        ]
        if exclude_doctor_id is not None:
            conditions.append(doctors.c.id != exclude_doctor_id)

        stmt = (
            select(
                doctors.c.id,
                doctors.c.name,
                doctors.c.specialization,
                doctors.c.experience_years,
                doctors.c.rating,
                doctors.c.image_url,
            )
            .where(*conditions)
            .order_by(doctors.c.rating.desc(), doctors.c.name.asc())
            .limit(limit)
        )

        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("doctor_directory_read_failed", error=str(e))
            raise StoreException("Doctor directory unavailable") from e

        return [dict(row._mapping) for row in result.fetchall()]
