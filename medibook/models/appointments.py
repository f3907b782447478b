"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    Time,
    text,
)

from medibook.schemas.appointments import ACTIVE_STATUSES, AppointmentStatus

# Metadata for all tables
metadata = MetaData()

SLOT_INDEX_NAME = "uq_appointments_doctor_slot_active"

_active_statuses_sql = ", ".join(f"'{status.value}'" for status in sorted(ACTIVE_STATUSES))
_all_statuses_sql = ", ".join(f"'{status.value}'" for status in AppointmentStatus)

# A slot only counts as taken while the appointment is active
ACTIVE_SLOT_PREDICATE = text(f"status IN ({_active_statuses_sql})")

appointments = Table(
    "appointments",
    metadata,
    Column("id", String(64), primary_key=True),
    # Ownership / references
    Column("doctor_id", String(64), nullable=False),
    Column("patient_id", String(64), nullable=True),
    # Snapshot fields (denormalized for history)
    Column("doctor_name", Text, nullable=True),
    Column("doctor_specialization", String(200), nullable=True),
    Column("patient_name", Text, nullable=True),
    Column("patient_email", String(320), nullable=True),
    Column("patient_phone", String(32), nullable=True),
    # Appointment details
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", Time, nullable=False),
    Column("type", String(50), nullable=False, server_default="consultation"),
    Column("reason", Text, nullable=True),
    Column("location", Text, nullable=True),
    Column("notes", Text, nullable=True),
    # Status management
    Column("status", String(20), nullable=False, server_default="pending"),
    # Payment (embedded record, flattened)
    Column("payment_status", String(20), nullable=False, server_default="pending"),
    Column("payment_method", String(50), nullable=True),
    Column("payment_transaction_id", String(128), nullable=True),
    Column("payment_amount", Numeric(10, 2), nullable=True),
    Column("payment_currency", String(3), nullable=False, server_default="INR"),
    Column("payment_timestamp", DateTime(timezone=True), nullable=True),
    # Reschedule audit
    Column("previous_date", Date, nullable=True),
    Column("previous_time", Time, nullable=True),
    Column("rescheduled_by", String(64), nullable=True),
    Column("rescheduled_at", DateTime(timezone=True), nullable=True),
    # Cancellation audit
    Column("cancelled_by", String(64), nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    # Constraints
    CheckConstraint(
        f"status IN ({_all_statuses_sql})",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'paid', 'failed')",
        name="appointments_payment_status_check",
    ),
)

Index("ix_appointments_doctor_date", appointments.c.doctor_id, appointments.c.appointment_date)
Index("ix_appointments_patient", appointments.c.patient_id)
Index(
    SLOT_INDEX_NAME,
    appointments.c.doctor_id,
    appointments.c.appointment_date,
    appointments.c.appointment_time,
    unique=True,
    postgresql_where=ACTIVE_SLOT_PREDICATE,
    sqlite_where=ACTIVE_SLOT_PREDICATE,
)
