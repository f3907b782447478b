"""Appointment persistence.

The scheduler talks to storage only through :class:`AppointmentStore`, so it
can run against PostgreSQL in production and against an in-memory fake in
tests. Rows travel as plain dicts keyed by column name.
"""

from collections.abc import Collection
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Literal, Protocol

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement, Executable

from medibook.core.exceptions import StoreException
from medibook.models.appointments import SLOT_INDEX_NAME, appointments
from medibook.schemas.appointments import ACTIVE_STATUSES, AppointmentStatus

logger = structlog.get_logger()

_ACTIVE_STATUS_VALUES = sorted(status.value for status in ACTIVE_STATUSES)


class SlotTakenError(Exception):
    """A write was rejected because the slot already has an active appointment."""


@dataclass
class AppointmentQuery:
    """Filter and ordering for appointment lookups."""

    doctor_id: str | None = None
    patient_id: str | None = None
    appointment_date: date | None = None
    date_from: date | None = None
    date_to: date | None = None
    statuses: Collection[AppointmentStatus] | None = None
    exclude_statuses: Collection[AppointmentStatus] | None = None
    order: Literal["slot", "newest"] = "slot"


class AppointmentStore(Protocol):
    """Storage operations the scheduler depends on."""

    async def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        """Insert a new appointment and return the stored row."""
        ...

    async def get(self, appointment_id: str) -> dict[str, Any] | None:
        """Fetch one appointment by id."""
        ...

    async def find_slot_holder(
        self,
        doctor_id: str,
        appointment_date: date,
        appointment_time: time,
        exclude_id: str | None = None,
    ) -> dict[str, Any] | None:
        """Return the active appointment occupying a slot, if any."""
        ...

    async def update(self, appointment_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        """Apply values to one appointment and return the updated row."""
        ...

    async def find(self, query: AppointmentQuery) -> list[dict[str, Any]]:
        """Return appointments matching a query, sorted."""
        ...

    async def count(self, query: AppointmentQuery) -> int:
        """Count appointments matching a query."""
        ...


def is_slot_violation(exc: IntegrityError) -> bool:
    """Whether an integrity error came from the active-slot unique index."""
    message = str(exc.orig)
    if SLOT_INDEX_NAME in message:
        return True
    # SQLite names the columns rather than the index
    return "appointments.doctor_id" in message and "appointments.appointment_time" in message


class SqlAppointmentStore:
    """AppointmentStore backed by SQLAlchemy Core on an async session."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    async def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        stmt = insert(appointments).values(**values).returning(appointments)
        row = await self._write(stmt)
        return dict(row._mapping)

    async def get(self, appointment_id: str) -> dict[str, Any] | None:
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        rows = await self._read(stmt)
        return rows[0] if rows else None

    async def find_slot_holder(
        self,
        doctor_id: str,
        appointment_date: date,
        appointment_time: time,
        exclude_id: str | None = None,
    ) -> dict[str, Any] | None:
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == appointment_date,
            appointments.c.appointment_time == appointment_time,
            appointments.c.status.in_(_ACTIVE_STATUS_VALUES),
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)

        stmt = select(appointments).where(*conditions).limit(1)
        rows = await self._read(stmt)
        return rows[0] if rows else None

    async def update(self, appointment_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**values)
            .returning(appointments)
        )
        row = await self._write(stmt)
        return dict(row._mapping) if row is not None else None

    async def find(self, query: AppointmentQuery) -> list[dict[str, Any]]:
        stmt = select(appointments).where(*self._conditions(query))

        if query.order == "newest":
            stmt = stmt.order_by(appointments.c.created_at.desc())
        else:
            stmt = stmt.order_by(
                appointments.c.appointment_date.asc(),
                appointments.c.appointment_time.asc(),
            )

        return await self._read(stmt)

    async def count(self, query: AppointmentQuery) -> int:
        stmt = select(func.count()).select_from(appointments).where(*self._conditions(query))
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("appointment_store_read_failed", error=str(e))
            raise StoreException() from e
        return result.scalar() or 0

    @staticmethod
    def _conditions(query: AppointmentQuery) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []

        if query.doctor_id is not None:
            conditions.append(appointments.c.doctor_id == query.doctor_id)

        if query.patient_id is not None:
            conditions.append(appointments.c.patient_id == query.patient_id)

        if query.appointment_date is not None:
            conditions.append(appointments.c.appointment_date == query.appointment_date)

        if query.date_from is not None:
            conditions.append(appointments.c.appointment_date >= query.date_from)

        if query.date_to is not None:
            conditions.append(appointments.c.appointment_date <= query.date_to)

        if query.statuses is not None:
            conditions.append(appointments.c.status.in_([s.value for s in query.statuses]))

        if query.exclude_statuses:
            conditions.append(
                appointments.c.status.not_in([s.value for s in query.exclude_statuses])
            )

        return conditions

    async def _read(self, stmt: Executable) -> list[dict[str, Any]]:
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("appointment_store_read_failed", error=str(e))
            raise StoreException() from e
        return [dict(row._mapping) for row in result.fetchall()]

    async def _write(self, stmt: Executable) -> Row[Any] | None:
        try:
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if is_slot_violation(e):
                raise SlotTakenError(str(e.orig)) from e
            logger.error("appointment_store_integrity_error", error=str(e.orig))
            raise StoreException("Appointment violates a storage constraint") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("appointment_store_write_failed", error=str(e))
            raise StoreException() from e
        return row
