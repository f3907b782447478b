import itertools
import os
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Load environment variables from .env file
load_dotenv()

from medibook.config import Settings, settings
from medibook.core.security import create_access_token
from medibook.dependencies import get_appointment_service
from medibook.main import app
from medibook.models.appointments import appointments
from medibook.models.appointments import metadata as appointments_metadata
from medibook.models.doctors import metadata as doctors_metadata
from medibook.repositories.appointment_store import AppointmentQuery, SlotTakenError
from medibook.schemas.appointments import ACTIVE_STATUSES, AppointmentStatus
from medibook.services.appointment_service import AppointmentService

# Store tests run against in-memory SQLite unless TEST_DATABASE_URL points elsewhere
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
if TEST_DATABASE_URL.startswith("postgresql://"):
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

# Clinic "now" for service and API tests: two days before the booking date used throughout
NOW = datetime(2025, 5, 30, 8, 0, tzinfo=UTC)

TEST_USER_ID = "user_patient_1"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now

    def advance(self, delta: timedelta) -> None:
        self.current += delta


class InMemoryAppointmentStore:
    """AppointmentStore fake that enforces the active-slot uniqueness rule.

    ``stale_reads`` makes the next N slot lookups report the slot as free,
    which reproduces a concurrent writer slipping in between check and insert.
    """

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.stale_reads = 0
        self.writes = 0

    async def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        row = {column.name: None for column in appointments.c}
        row.update(values)
        self._check_slot(row)
        self.rows[row["id"]] = row
        self.writes += 1
        return dict(row)

    async def get(self, appointment_id: str) -> dict[str, Any] | None:
        row = self.rows.get(appointment_id)
        return dict(row) if row is not None else None

    async def find_slot_holder(self, doctor_id, appointment_date, appointment_time, exclude_id=None):
        if self.stale_reads:
            self.stale_reads -= 1
            return None

        for row in self.rows.values():
            if (
                row["id"] != exclude_id
                and row["doctor_id"] == doctor_id
                and row["appointment_date"] == appointment_date
                and row["appointment_time"] == appointment_time
                and _is_active(row)
            ):
                return dict(row)
        return None

    async def update(self, appointment_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        current = self.rows.get(appointment_id)
        if current is None:
            return None

        row = {**current, **values}
        self._check_slot(row)
        self.rows[appointment_id] = row
        self.writes += 1
        return dict(row)

    async def find(self, query: AppointmentQuery) -> list[dict[str, Any]]:
        rows = [dict(row) for row in self.rows.values() if _matches(row, query)]
        if query.order == "newest":
            rows.sort(key=lambda row: row["created_at"], reverse=True)
        else:
            rows.sort(key=lambda row: (row["appointment_date"], row["appointment_time"]))
        return rows

    async def count(self, query: AppointmentQuery) -> int:
        return sum(1 for row in self.rows.values() if _matches(row, query))

    def _check_slot(self, row: dict[str, Any]) -> None:
        if not _is_active(row):
            return
        for other in self.rows.values():
            if (
                other["id"] != row["id"]
                and _is_active(other)
                and other["doctor_id"] == row["doctor_id"]
                and other["appointment_date"] == row["appointment_date"]
                and other["appointment_time"] == row["appointment_time"]
            ):
                raise SlotTakenError("uq_appointments_doctor_slot_active")


def _is_active(row: dict[str, Any]) -> bool:
    return AppointmentStatus(row["status"]) in ACTIVE_STATUSES


def _matches(row: dict[str, Any], query: AppointmentQuery) -> bool:
    status = AppointmentStatus(row["status"])
    checks = [
        query.doctor_id is None or row["doctor_id"] == query.doctor_id,
        query.patient_id is None or row["patient_id"] == query.patient_id,
        query.appointment_date is None or row["appointment_date"] == query.appointment_date,
        query.date_from is None or row["appointment_date"] >= query.date_from,
        query.date_to is None or row["appointment_date"] <= query.date_to,
        query.statuses is None or status in query.statuses,
        not query.exclude_statuses or status not in query.exclude_statuses,
    ]
    return all(checks)


class FakeDoctorDirectory:
    """DoctorDirectory fake over a fixed list of doctors."""

    def __init__(self, doctors: list[dict[str, Any]]):
        self.doctors = doctors

    async def find_by_specialization(self, specialization, exclude_doctor_id, limit):
        matches = [
            doctor
            for doctor in self.doctors
            if doctor["specialization"] == specialization
            and doctor["status"] == "active"
            and doctor["id"] != exclude_doctor_id
        ]
        matches.sort(key=lambda doctor: (-doctor["rating"], doctor["name"]))
        return [
            {key: value for key, value in doctor.items() if key != "status"}
            for doctor in matches[:limit]
        ]


DOCTORS = [
    {
        "id": "doc_1",
        "name": "Dr. Asha Rao",
        "specialization": "Cardiology",
        "experience_years": 12,
        "rating": Decimal("4.80"),
        "image_url": None,
        "status": "active",
    },
    {
        "id": "doc_2",
        "name": "Dr. Vikram Shah",
        "specialization": "Cardiology",
        "experience_years": 8,
        "rating": Decimal("4.50"),
        "image_url": None,
        "status": "active",
    },
    {
        "id": "doc_3",
        "name": "Dr. Meera Iyer",
        "specialization": "Cardiology",
        "experience_years": 20,
        "rating": Decimal("4.90"),
        "image_url": None,
        "status": "inactive",
    },
    {
        "id": "doc_4",
        "name": "Dr. Kabir Das",
        "specialization": "Dermatology",
        "experience_years": 5,
        "rating": Decimal("4.20"),
        "image_url": None,
        "status": "active",
    },
    {
        "id": "doc_5",
        "name": "Dr. Anil Kumar",
        "specialization": "Cardiology",
        "experience_years": 15,
        "rating": Decimal("4.50"),
        "image_url": "https://example.com/anil.png",
        "status": "active",
    },
]


@pytest.fixture
def clock() -> FrozenClock:
    """Clinic clock frozen at NOW."""
    return FrozenClock(NOW)


@pytest.fixture
def store() -> InMemoryAppointmentStore:
    """Empty in-memory appointment store."""
    return InMemoryAppointmentStore()


@pytest.fixture
def doctor_directory() -> FakeDoctorDirectory:
    """Doctor directory with a few cardiologists and a dermatologist."""
    return FakeDoctorDirectory(DOCTORS)


@pytest.fixture
def scheduling_settings() -> Settings:
    """Settings with the default scheduling rules in UTC."""
    return settings.model_copy(update={"clinic_timezone": "UTC"})


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic appointment ids."""
    counter = itertools.count(1)
    return lambda: f"apt_{next(counter):04d}"


@pytest.fixture
def service(
    store: InMemoryAppointmentStore,
    clock: FrozenClock,
    id_factory: Callable[[], str],
    doctor_directory: FakeDoctorDirectory,
    scheduling_settings: Settings,
) -> AppointmentService:
    """Scheduler wired to in-memory collaborators."""
    return AppointmentService(
        store,
        clock=clock,
        id_factory=id_factory,
        doctor_directory=doctor_directory,
        config=scheduling_settings,
    )


@pytest.fixture
def booking_data() -> dict[str, Any]:
    """Booking request for doctor doc_1 on 2025-06-01 at 09:00 AM."""
    return {
        "doctor_id": "doc_1",
        "date": "2025-06-01",
        "time": "09:00 AM",
        "doctor_name": "Dr. Asha Rao",
        "doctor_specialization": "Cardiology",
        "patient_name": "Ravi Menon",
        "patient_email": "ravi@example.com",
        "patient_phone": "+919800000001",
        "reason": "Chest pain follow-up",
    }


@pytest_asyncio.fixture
async def client(service: AppointmentService) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the scheduler swapped for the in-memory one."""
    app.dependency_overrides[get_appointment_service] = lambda: service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Bearer token for the test patient."""
    token = create_access_token(data={"sub": TEST_USER_ID}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session on a freshly created schema."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        # NullPool avoids event loop issues with remote databases
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

    async with engine.begin() as conn:
        for metadata in (appointments_metadata, doctors_metadata):
            await conn.run_sync(metadata.drop_all)
            await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        for metadata in (appointments_metadata, doctors_metadata):
            await conn.run_sync(metadata.drop_all)

    await engine.dispose()
