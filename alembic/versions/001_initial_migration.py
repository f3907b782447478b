"""Initial migration - create appointments and doctors tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_SLOT_PREDICATE = "status IN ('confirmed', 'pending', 'rescheduled', 'scheduled')"


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "appointments",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("doctor_id", sa.String(length=64), nullable=False),
        sa.Column("patient_id", sa.String(length=64), nullable=True),
        sa.Column("doctor_name", sa.Text(), nullable=True),
        sa.Column("doctor_specialization", sa.String(length=200), nullable=True),
        sa.Column("patient_name", sa.Text(), nullable=True),
        sa.Column("patient_email", sa.String(length=320), nullable=True),
        sa.Column("patient_phone", sa.String(length=32), nullable=True),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.Time(), nullable=False),
        sa.Column("type", sa.String(length=50), server_default="consultation", nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("payment_status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("payment_transaction_id", sa.String(length=128), nullable=True),
        sa.Column("payment_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("payment_currency", sa.String(length=3), server_default="INR", nullable=False),
        sa.Column("payment_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("previous_date", sa.Date(), nullable=True),
        sa.Column("previous_time", sa.Time(), nullable=True),
        sa.Column("rescheduled_by", sa.String(length=64), nullable=True),
        sa.Column("rescheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=64), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'scheduled', 'confirmed', 'rescheduled', "
            "'completed', 'cancelled', 'no_show')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed')",
            name="appointments_payment_status_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "ix_appointments_doctor_date", "appointments", ["doctor_id", "appointment_date"]
    )
    op.create_index("ix_appointments_patient", "appointments", ["patient_id"])

    # One active appointment per doctor slot; cancelled and no-show rows are ignored
    op.create_index(
        "uq_appointments_doctor_slot_active",
        "appointments",
        ["doctor_id", "appointment_date", "appointment_time"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_SLOT_PREDICATE),
    )

    op.create_table(
        "doctors",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("specialization", sa.String(length=200), nullable=True),
        sa.Column("experience_years", sa.Integer(), nullable=True),
        sa.Column("rating", sa.Numeric(3, 2), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="active", nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_doctors_specialization", "doctors", ["specialization"])
    op.create_index("ix_doctors_status", "doctors", ["status"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_doctors_status", table_name="doctors")
    op.drop_index("ix_doctors_specialization", table_name="doctors")
    op.drop_table("doctors")

    op.drop_index("uq_appointments_doctor_slot_active", table_name="appointments")
    op.drop_index("ix_appointments_patient", table_name="appointments")
    op.drop_index("ix_appointments_doctor_date", table_name="appointments")
    op.drop_table("appointments")
