"""Appointment scheduling: booking, slot suggestions, reschedule and cancel."""

from collections.abc import Callable
from datetime import UTC, date, datetime, time
from typing import Any

import structlog

from medibook.config import Settings, settings
from medibook.core.clock import Clock, SystemClock, new_appointment_id
from medibook.core.exceptions import (
    IneligibleTransitionException,
    NotFoundException,
    SlotConflictException,
    ValidationException,
)
from medibook.core.time_utils import format_12_hour, from_minutes, parse_time, to_minutes
from medibook.repositories.appointment_store import (
    AppointmentQuery,
    AppointmentStore,
    SlotTakenError,
)
from medibook.repositories.doctor_directory import DoctorDirectory
from medibook.schemas.appointments import (
    ACTIVE_STATUSES,
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    AlternativeDoctor,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    BookingAlternatives,
    NextSlotSuggestion,
    PaymentStatus,
    RescheduleEligibility,
    SlotAvailability,
)

logger = structlog.get_logger()


def slot_time(value: time | str) -> time:
    """Parse a caller-supplied slot time, rejecting it as a validation error."""
    try:
        return parse_time(value)
    except ValueError as e:
        raise ValidationException(str(e)) from e


NO_SLOT_MESSAGE = "No available slots for today. Please try another day."


class AppointmentService:
    """Service for scheduling appointments.

    Every operation re-reads the store; nothing is cached between calls.
    The store's partial unique index is what finally guarantees one active
    appointment per (doctor, date, time); the availability pre-check only
    exists to return the blocking appointment to the caller.
    """

    def __init__(
        self,
        store: AppointmentStore,
        *,
        clock: Clock | None = None,
        id_factory: Callable[[], str] | None = None,
        doctor_directory: DoctorDirectory | None = None,
        config: Settings | None = None,
    ):
        """
        Initialize service with its collaborators.

        Args:
            store: Appointment persistence
            clock: Source of "now", defaults to the clinic wall clock
            id_factory: Appointment id generator
            doctor_directory: Lookup for alternative doctors, optional
            config: Scheduling settings, defaults to the global settings
        """
        self.store = store
        self.settings = config or settings
        self.clock = clock or SystemClock(self.settings.clinic_timezone)
        self.id_factory = id_factory or new_appointment_id
        self.doctor_directory = doctor_directory

    async def check_slot_availability(
        self,
        doctor_id: str,
        appointment_date: date,
        appointment_time: time | str,
        exclude_appointment_id: str | None = None,
    ) -> SlotAvailability:
        """
        Check whether a doctor's slot is free.

        Args:
            doctor_id: Doctor ID
            appointment_date: Slot date
            appointment_time: Slot time, ``time`` or any accepted string form
            exclude_appointment_id: Appointment to ignore (its own slot when rescheduling)

        Returns:
            Availability and the blocking appointment, if any
        """
        row = await self.store.find_slot_holder(
            doctor_id,
            appointment_date,
            slot_time(appointment_time),
            exclude_appointment_id,
        )
        return SlotAvailability(available=row is None, conflict=self._to_model(row))

    async def get_next_available_slots(
        self,
        doctor_id: str,
        appointment_date: date,
        current_time: time | str,
        count: int | None = None,
    ) -> list[time]:
        """
        Probe forward from a time in fixed steps for free exact slots.

        Only candidates inside working hours are checked, and the scan stops
        after ``probe_max_candidates`` steps even if fewer than ``count``
        free slots were found.

        Returns:
            Up to ``count`` free slot times in ascending order
        """
        if count is None:
            count = self.settings.default_suggestion_count
        start = to_minutes(slot_time(current_time))
        window_start = to_minutes(parse_time(self.settings.working_hours_start))
        window_end = to_minutes(parse_time(self.settings.working_hours_end))

        slots: list[time] = []
        for step in range(1, self.settings.probe_max_candidates + 1):
            if len(slots) >= count:
                break

            candidate = start + step * self.settings.probe_step_minutes
            if not window_start <= candidate < window_end:
                continue

            slot = from_minutes(candidate)
            availability = await self.check_slot_availability(doctor_id, appointment_date, slot)
            if availability.available:
                slots.append(slot)

        return slots

    async def find_next_available_slot(
        self,
        doctor_id: str,
        appointment_date: date,
        requested_time: time | str,
    ) -> NextSlotSuggestion:
        """
        Find the first grid slot after a time that keeps a buffer from every booking.

        Loads the doctor's active appointments for the day once, then walks
        the grid. A grid slot qualifies when no active appointment starts
        within ``buffer_minutes`` of it.
        """
        rows = await self.store.find(
            AppointmentQuery(
                doctor_id=doctor_id,
                appointment_date=appointment_date,
                statuses=ACTIVE_STATUSES,
            )
        )
        booked = [to_minutes(parse_time(row["appointment_time"])) for row in rows]
        target = to_minutes(slot_time(requested_time))

        grid = range(
            to_minutes(parse_time(self.settings.grid_start)),
            to_minutes(parse_time(self.settings.grid_end)),
            self.settings.grid_step_minutes,
        )
        for minutes in grid:
            if minutes <= target:
                continue
            if all(abs(taken - minutes) >= self.settings.buffer_minutes for taken in booked):
                slot = from_minutes(minutes)
                return NextSlotSuggestion(
                    available_time=slot,
                    message=f"Next available slot: {format_12_hour(slot)}",
                )

        return NextSlotSuggestion(available_time=None, message=NO_SLOT_MESSAGE)

    async def suggest_alternative_doctors(
        self,
        specialization: str | None,
        exclude_doctor_id: str | None,
    ) -> list[AlternativeDoctor]:
        """Active doctors sharing a specialization, excluding the busy one."""
        if self.doctor_directory is None or not specialization:
            return []

        rows = await self.doctor_directory.find_by_specialization(
            specialization,
            exclude_doctor_id,
            self.settings.alternative_doctor_limit,
        )
        return [AlternativeDoctor.model_validate(row) for row in rows]

    async def suggest_alternatives(
        self,
        doctor_id: str,
        appointment_date: date,
        appointment_time: time | str,
        specialization: str | None = None,
    ) -> BookingAlternatives:
        """Collect everything a caller can offer after a slot conflict."""
        return BookingAlternatives(
            next_available=await self.find_next_available_slot(
                doctor_id, appointment_date, appointment_time
            ),
            next_slots=await self.get_next_available_slots(
                doctor_id, appointment_date, appointment_time
            ),
            alternative_doctors=await self.suggest_alternative_doctors(specialization, doctor_id),
        )

    async def create_appointment(self, data: AppointmentCreate) -> Appointment:
        """
        Book a slot.

        Args:
            data: Appointment creation data

        Returns:
            The appointment exactly as persisted

        Raises:
            ValidationException: Past date or a non-active initial status
            SlotConflictException: Slot already held by an active appointment
        """
        now = self.clock.now()

        if data.appointment_date < now.date():
            raise ValidationException("Cannot book appointments in the past")

        status = data.status
        if status is None:
            paid = data.payment.status == PaymentStatus.PAID
            status = AppointmentStatus.CONFIRMED if paid else AppointmentStatus.PENDING
        if status not in ACTIVE_STATUSES:
            raise ValidationException(f"A new appointment cannot start as {status.value}")

        availability = await self.check_slot_availability(
            data.doctor_id, data.appointment_date, data.appointment_time
        )
        if not availability.available:
            logger.info(
                "slot_conflict",
                doctor_id=data.doctor_id,
                date=data.appointment_date.isoformat(),
                time=data.appointment_time.isoformat(),
                conflict_id=availability.conflict.id if availability.conflict else None,
            )
            raise SlotConflictException(availability.conflict)

        values: dict[str, Any] = {
            "id": self.id_factory(),
            "doctor_id": data.doctor_id,
            "patient_id": data.patient_id,
            "doctor_name": data.doctor_name,
            "doctor_specialization": data.doctor_specialization,
            "patient_name": data.patient_name,
            "patient_email": data.patient_email,
            "patient_phone": data.patient_phone,
            "appointment_date": data.appointment_date,
            "appointment_time": data.appointment_time,
            "type": data.type,
            "reason": data.reason or data.notes,
            "location": data.location,
            "notes": data.notes,
            "status": status.value,
            "payment_status": data.payment.status.value,
            "payment_method": data.payment.method,
            "payment_transaction_id": data.payment.transaction_id,
            "payment_amount": data.payment.paid_amount,
            "payment_currency": data.payment.currency,
            "payment_timestamp": data.payment.timestamp or now,
            "created_at": now,
            "updated_at": now,
        }

        try:
            row = await self.store.insert(values)
        except SlotTakenError:
            raise await self._lost_race(data.doctor_id, data.appointment_date, data.appointment_time)

        appointment = Appointment.model_validate(row)
        logger.info(
            "appointment_created",
            appointment_id=appointment.id,
            doctor_id=appointment.doctor_id,
            patient_id=appointment.patient_id,
            date=appointment.appointment_date.isoformat(),
            time=appointment.appointment_time.isoformat(),
            status=appointment.status.value,
        )
        return appointment

    async def reschedule_appointment(
        self,
        appointment_id: str,
        new_date: date,
        new_time: time | str,
        rescheduled_by: str | None,
    ) -> Appointment:
        """
        Move an appointment to a new slot in place.

        The eligibility rules of :meth:`can_reschedule_appointment` are
        enforced here as well, so callers cannot skip them.

        Raises:
            NotFoundException: Unknown appointment
            IneligibleTransitionException: Too close to the appointment or terminal status
            ValidationException: New date in the past
            SlotConflictException: New slot held by another active appointment
        """
        current = await self.get_appointment_by_id(appointment_id)

        eligibility = self._reschedule_eligibility(current)
        if not eligibility.can_reschedule:
            logger.info(
                "reschedule_rejected",
                appointment_id=appointment_id,
                reason=eligibility.error,
            )
            raise IneligibleTransitionException(eligibility.error or "Cannot reschedule")

        now = self.clock.now()
        new_slot = slot_time(new_time)

        if new_date < now.date():
            raise ValidationException("Cannot move an appointment into the past")

        availability = await self.check_slot_availability(
            current.doctor_id, new_date, new_slot, exclude_appointment_id=current.id
        )
        if not availability.available:
            logger.info(
                "slot_conflict",
                doctor_id=current.doctor_id,
                date=new_date.isoformat(),
                time=new_slot.isoformat(),
                appointment_id=current.id,
                conflict_id=availability.conflict.id if availability.conflict else None,
            )
            raise SlotConflictException(availability.conflict)

        values = {
            "appointment_date": new_date,
            "appointment_time": new_slot,
            "status": AppointmentStatus.RESCHEDULED.value,
            "previous_date": current.appointment_date,
            "previous_time": current.appointment_time,
            "rescheduled_by": rescheduled_by,
            "rescheduled_at": now,
            "updated_at": now,
        }

        try:
            row = await self.store.update(current.id, values)
        except SlotTakenError:
            raise await self._lost_race(current.doctor_id, new_date, new_slot, current.id)

        if row is None:
            raise NotFoundException("Appointment not found")

        appointment = Appointment.model_validate(row)
        logger.info(
            "appointment_rescheduled",
            appointment_id=appointment.id,
            previous_date=current.appointment_date.isoformat(),
            previous_time=current.appointment_time.isoformat(),
            date=appointment.appointment_date.isoformat(),
            time=appointment.appointment_time.isoformat(),
            rescheduled_by=rescheduled_by,
        )
        return appointment

    async def cancel_appointment(
        self,
        appointment_id: str,
        cancelled_by: str | None,
        reason: str | None = None,
    ) -> Appointment:
        """
        Cancel an appointment, freeing its slot.

        No eligibility rule applies; use :meth:`update_appointment_status`
        for checked transitions.
        """
        now = self.clock.now()
        row = await self.store.update(
            appointment_id,
            {
                "status": AppointmentStatus.CANCELLED.value,
                "cancelled_by": cancelled_by,
                "cancellation_reason": reason,
                "cancelled_at": now,
                "updated_at": now,
            },
        )
        if row is None:
            raise NotFoundException("Appointment not found")

        logger.info(
            "appointment_cancelled",
            appointment_id=appointment_id,
            cancelled_by=cancelled_by,
            reason=reason,
        )
        return Appointment.model_validate(row)

    async def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus | str,
        notes: str | None = None,
    ) -> Appointment:
        """
        Move an appointment along the status state machine.

        Raises:
            NotFoundException: Unknown appointment
            IneligibleTransitionException: Transition not allowed from the current status
        """
        current = await self.get_appointment_by_id(appointment_id)
        try:
            target = AppointmentStatus(status)
        except ValueError as e:
            raise ValidationException(f"Unknown appointment status: {status}") from e

        if target != current.status and target not in ALLOWED_TRANSITIONS[current.status]:
            raise IneligibleTransitionException(
                f"Cannot change status from {current.status.value} to {target.value}"
            )

        now = self.clock.now()
        values: dict[str, Any] = {"status": target.value, "updated_at": now}
        if notes:
            values["notes"] = notes
        if target == AppointmentStatus.COMPLETED:
            values["completed_at"] = now
        if target == AppointmentStatus.CANCELLED:
            values["cancelled_at"] = now

        row = await self.store.update(appointment_id, values)
        if row is None:
            raise NotFoundException("Appointment not found")

        logger.info(
            "appointment_status_updated",
            appointment_id=appointment_id,
            old_status=current.status.value,
            new_status=target.value,
        )
        return Appointment.model_validate(row)

    async def complete_appointment(self, appointment_id: str) -> Appointment:
        """Mark an appointment as completed."""
        return await self.update_appointment_status(appointment_id, AppointmentStatus.COMPLETED)

    async def mark_as_no_show(self, appointment_id: str) -> Appointment:
        """Mark an appointment as a no-show."""
        return await self.update_appointment_status(appointment_id, AppointmentStatus.NO_SHOW)

    async def can_reschedule_appointment(self, appointment_id: str) -> RescheduleEligibility:
        """
        Report whether an appointment may be rescheduled now.

        Raises:
            NotFoundException: Unknown appointment
        """
        current = await self.get_appointment_by_id(appointment_id)
        return self._reschedule_eligibility(current)

    async def get_appointment_by_id(self, appointment_id: str) -> Appointment:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        row = await self.store.get(appointment_id)
        if row is None:
            raise NotFoundException("Appointment not found")
        return Appointment.model_validate(row)

    async def get_appointments_by_doctor_id(
        self,
        doctor_id: str,
        status: AppointmentStatus | None = None,
        appointment_date: date | None = None,
    ) -> list[Appointment]:
        """A doctor's appointments, optionally filtered, ordered by slot."""
        query = AppointmentQuery(
            doctor_id=doctor_id,
            appointment_date=appointment_date,
            statuses={status} if status else None,
        )
        return self._to_models(await self.store.find(query))

    async def get_today_appointments(self, doctor_id: str) -> list[Appointment]:
        """A doctor's appointments for the clinic's current date, ordered by time."""
        today = self.clock.now().date()
        query = AppointmentQuery(doctor_id=doctor_id, appointment_date=today)
        return self._to_models(await self.store.find(query))

    async def get_doctor_schedule(
        self,
        doctor_id: str,
        start_date: date,
        end_date: date,
    ) -> list[Appointment]:
        """Non-cancelled appointments in an inclusive date range."""
        self._check_range(start_date, end_date)
        query = AppointmentQuery(
            doctor_id=doctor_id,
            date_from=start_date,
            date_to=end_date,
            exclude_statuses={AppointmentStatus.CANCELLED},
        )
        return self._to_models(await self.store.find(query))

    async def count_appointments_by_date_range(
        self,
        doctor_id: str,
        start_date: date,
        end_date: date,
    ) -> int:
        """Count all of a doctor's appointments in an inclusive date range."""
        self._check_range(start_date, end_date)
        query = AppointmentQuery(doctor_id=doctor_id, date_from=start_date, date_to=end_date)
        return await self.store.count(query)

    async def get_appointments_by_patient_id(
        self,
        patient_id: str,
        status: AppointmentStatus | None = None,
    ) -> list[Appointment]:
        """A patient's appointments ordered by slot."""
        query = AppointmentQuery(patient_id=patient_id, statuses={status} if status else None)
        return self._to_models(await self.store.find(query))

    async def get_all_appointments(
        self,
        status: AppointmentStatus | None = None,
    ) -> list[Appointment]:
        """All appointments, newest first."""
        query = AppointmentQuery(statuses={status} if status else None, order="newest")
        return self._to_models(await self.store.find(query))

    def _reschedule_eligibility(self, appointment: Appointment) -> RescheduleEligibility:
        now = self.clock.now()
        scheduled_at = datetime.combine(
            appointment.appointment_date,
            appointment.appointment_time,
            tzinfo=now.tzinfo,
        )
        hours_until = (scheduled_at.astimezone(UTC) - now.astimezone(UTC)).total_seconds() / 3600
        cutoff = self.settings.reschedule_cutoff_hours

        if hours_until < cutoff:
            return RescheduleEligibility(
                can_reschedule=False,
                error=f"Cannot reschedule within {cutoff:g} hours of the appointment time",
            )

        if appointment.status in TERMINAL_STATUSES:
            return RescheduleEligibility(
                can_reschedule=False,
                error=f"Cannot reschedule a {appointment.status.value} appointment",
            )

        return RescheduleEligibility(can_reschedule=True)

    async def _lost_race(
        self,
        doctor_id: str,
        appointment_date: date,
        appointment_time: time,
        exclude_appointment_id: str | None = None,
    ) -> SlotConflictException:
        """Build the conflict for a write the store rejected on the slot index."""
        availability = await self.check_slot_availability(
            doctor_id, appointment_date, appointment_time, exclude_appointment_id
        )
        logger.warning(
            "slot_race_lost",
            doctor_id=doctor_id,
            date=appointment_date.isoformat(),
            time=appointment_time.isoformat(),
            conflict_id=availability.conflict.id if availability.conflict else None,
        )
        return SlotConflictException(availability.conflict)

    @staticmethod
    def _check_range(start_date: date, end_date: date) -> None:
        if start_date > end_date:
            raise ValidationException("start_date must not be after end_date")

    @staticmethod
    def _to_model(row: dict[str, Any] | None) -> Appointment | None:
        return Appointment.model_validate(row) if row is not None else None

    @staticmethod
    def _to_models(rows: list[dict[str, Any]]) -> list[Appointment]:
        return [Appointment.model_validate(row) for row in rows]
