"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
    model_validator,
)

from medibook.core.time_utils import format_12_hour, format_24_hour, parse_time


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @classmethod
    def _missing_(cls, value: object) -> "AppointmentStatus | None":
        # Legacy spellings: "no-show" and "missed" both mean no_show
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            if normalized == "missed":
                return cls.NO_SHOW
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# Statuses that hold a (doctor, date, time) slot
ACTIVE_STATUSES: frozenset[AppointmentStatus] = frozenset(
    {
        AppointmentStatus.PENDING,
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.RESCHEDULED,
    }
)

TERMINAL_STATUSES: frozenset[AppointmentStatus] = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)

# Targets reachable through a plain status update. RESCHEDULED is only
# reachable through a reschedule.
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.RESCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


def _coerce_time(value: Any) -> Any:
    if isinstance(value, (str, time)):
        return parse_time(value)
    return value


def _coerce_status(value: Any) -> Any:
    if isinstance(value, str):
        return AppointmentStatus(value)
    return value


# Accepts "HH:MM" or "H:MM AM/PM", renders "HH:MM" in JSON
SlotTime = Annotated[
    time,
    BeforeValidator(_coerce_time),
    PlainSerializer(format_24_hour, return_type=str, when_used="json"),
]

StatusValue = Annotated[AppointmentStatus, BeforeValidator(_coerce_status)]


class PaymentInfo(BaseModel):
    """Payment sub-record embedded in an appointment."""

    status: PaymentStatus = PaymentStatus.PENDING
    method: str | None = Field(None, max_length=50)
    transaction_id: str | None = Field(None, max_length=128)
    paid_amount: Decimal = Field(default=Decimal("500.00"), ge=0)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    timestamp: datetime | None = None


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment."""

    model_config = ConfigDict(populate_by_name=True)

    doctor_id: str = Field(..., min_length=1, max_length=64)
    patient_id: str | None = Field(None, max_length=64)
    appointment_date: date = Field(..., alias="date")
    appointment_time: SlotTime = Field(..., alias="time")
    doctor_name: str | None = Field(None, max_length=200)
    doctor_specialization: str = Field(default="General Medicine", max_length=200)
    patient_name: str | None = Field(None, max_length=200)
    patient_email: str | None = Field(None, max_length=320)
    patient_phone: str | None = Field(None, max_length=32)
    reason: str | None = Field(None, max_length=500)
    type: str = Field(default="consultation", max_length=50)
    location: str | None = Field(None, max_length=500)
    notes: str = Field(default="", max_length=1000)
    status: StatusValue | None = None
    payment: PaymentInfo = Field(default_factory=PaymentInfo)


class Appointment(BaseModel):
    """Appointment as stored and returned to callers."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    doctor_id: str
    patient_id: str | None = None
    doctor_name: str | None = None
    doctor_specialization: str | None = None
    patient_name: str | None = None
    patient_email: str | None = None
    patient_phone: str | None = None
    appointment_date: date = Field(..., alias="date")
    appointment_time: SlotTime = Field(..., alias="time")
    type: str = "consultation"
    reason: str | None = None
    location: str | None = None
    notes: str | None = None
    status: StatusValue
    payment: PaymentInfo = Field(default_factory=PaymentInfo)
    previous_date: date | None = None
    previous_time: SlotTime | None = None
    rescheduled_by: str | None = None
    rescheduled_at: datetime | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="before")
    @classmethod
    def nest_payment_columns(cls, data: Any) -> Any:
        """Fold flattened ``payment_*`` columns into the payment sub-record."""
        if not isinstance(data, dict) or "payment" in data:
            return data
        if not any(key.startswith("payment_") for key in data):
            return data

        data = dict(data)
        payment = {
            "status": data.pop("payment_status", None),
            "method": data.pop("payment_method", None),
            "transaction_id": data.pop("payment_transaction_id", None),
            "paid_amount": data.pop("payment_amount", None),
            "currency": data.pop("payment_currency", None),
            "timestamp": data.pop("payment_timestamp", None),
        }
        data["payment"] = {key: value for key, value in payment.items() if value is not None}
        return data

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_time(self) -> str:
        """Time of day in 12-hour form."""
        return format_12_hour(self.appointment_time)

    @property
    def is_active(self) -> bool:
        """Whether the appointment currently holds its slot."""
        return self.status in ACTIVE_STATUSES


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[Appointment]


class AppointmentCountResponse(BaseModel):
    """Number of appointments for a doctor in a date range."""

    doctor_id: str
    start_date: date
    end_date: date
    count: int


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: StatusValue
    notes: str | None = Field(None, max_length=1000)


class RescheduleRequest(BaseModel):
    """Schema for moving an appointment to a new slot."""

    model_config = ConfigDict(populate_by_name=True)

    appointment_date: date = Field(..., alias="date")
    appointment_time: SlotTime = Field(..., alias="time")


class CancelRequest(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str | None = Field(None, max_length=500)


class SlotAvailability(BaseModel):
    """Result of an exact-slot availability check."""

    available: bool
    conflict: Appointment | None = None


class NextSlotSuggestion(BaseModel):
    """First buffered grid slot after a requested time."""

    available_time: SlotTime | None = None
    message: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def display_time(self) -> str | None:
        """Suggested time in 12-hour form."""
        if self.available_time is None:
            return None
        return format_12_hour(self.available_time)


class AvailableSlotsResponse(BaseModel):
    """Free slots found by the incremental probe."""

    model_config = ConfigDict(populate_by_name=True)

    doctor_id: str
    appointment_date: date = Field(..., alias="date")
    slots: list[SlotTime]


class RescheduleEligibility(BaseModel):
    """Whether an appointment may currently be rescheduled."""

    can_reschedule: bool
    error: str | None = None


class AlternativeDoctor(BaseModel):
    """Doctor suggested when the preferred doctor is busy."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    specialization: str | None = None
    experience_years: int | None = None
    rating: Decimal | None = None
    image_url: str | None = None


class BookingAlternatives(BaseModel):
    """Alternatives offered alongside a slot conflict."""

    next_available: NextSlotSuggestion
    next_slots: list[SlotTime] = Field(default_factory=list)
    alternative_doctors: list[AlternativeDoctor] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Outcome of the structural booking request check."""

    valid: bool
    error: str | None = None
