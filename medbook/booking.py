"""Booking flow: availability lookups, booking with re-check, status changes.

The fetch-then-compute sequence is not retried internally. A lost race comes
back as BookingStatus.SLOT_TAKEN and the caller re-fetches availability.
"""
from datetime import date
from typing import List, Optional, Tuple

from medbook.availability import AvailabilityEngine
from medbook.errors import InvalidStatusTransitionError, SlotAlreadyTakenError
from medbook.logging_config import get_logger
from medbook.models import (
    AppointmentInterval,
    AppointmentStatus,
    BookingResult,
    BookingStatus,
    DayAvailability,
)
from medbook.repository import ScheduleRepository
from medbook.timeparse import normalize_time, weekday_index

logger = get_logger(__name__)


class BookingService:
    """Connects the record store to the availability engine."""

    def __init__(self, repository: ScheduleRepository, engine: Optional[AvailabilityEngine] = None):
        self.repository = repository
        self.engine = engine or AvailabilityEngine()

    def day_availability(self, doctor_id: str, on_date: date, today: Optional[date] = None) -> DayAvailability:
        return self.engine.classify_date(
            on_date,
            self.repository.list_working_hours(doctor_id, day_of_week=weekday_index(on_date)),
            self.repository.list_vacations(doctor_id, start=on_date, end=on_date),
            today=today
        )

    def calendar(
        self,
        doctor_id: str,
        start: date,
        end: date,
        today: Optional[date] = None
    ) -> List[Tuple[date, DayAvailability]]:
        """Classify every day in [start, end] for a calendar view."""
        return self.engine.classify_range(
            start,
            end,
            self.repository.list_working_hours(doctor_id),
            self.repository.list_vacations(doctor_id, start=start, end=end),
            today=today
        )

    def available_slots(self, doctor_id: str, on_date: date, today: Optional[date] = None) -> List[str]:
        return self.engine.compute_available_slots(
            on_date,
            self.repository.list_working_hours(doctor_id, day_of_week=weekday_index(on_date)),
            self.repository.list_vacations(doctor_id, start=on_date, end=on_date),
            self.repository.list_appointments(doctor_id, on_date),
            today=today
        )

    def book(
        self,
        doctor_id: str,
        patient_id: str,
        on_date: date,
        start_time: str,
        notes: Optional[str] = None,
        today: Optional[date] = None
    ) -> BookingResult:
        """
        Book a slot for a patient.

        Steps:
        1. Confirm the slot is offered for that date
        2. Re-check it is still free against fresh appointments
        3. Insert; the store's uniqueness constraint settles concurrent writers

        Returns:
            BookingResult with BOOKED, SLOT_TAKEN or SLOT_UNAVAILABLE
        """
        start_time = normalize_time(start_time)

        if start_time not in self.available_slots(doctor_id, on_date, today=today):
            logger.info("booking_slot_unavailable", doctor_id=doctor_id,
                        date=on_date.isoformat(), start_time=start_time)
            return BookingResult(status=BookingStatus.SLOT_UNAVAILABLE)

        existing = self.repository.list_appointments(doctor_id, on_date)
        if not self.engine.is_slot_still_free(doctor_id, on_date, start_time, existing):
            logger.info("booking_race_lost", doctor_id=doctor_id,
                        date=on_date.isoformat(), start_time=start_time, stage="recheck")
            return BookingResult(status=BookingStatus.SLOT_TAKEN)

        try:
            appointment = self.repository.insert_appointment(
                doctor_id=doctor_id,
                patient_id=patient_id,
                on_date=on_date,
                start_time=start_time,
                end_time=self.engine.slot_end(start_time),
                notes=notes
            )
        except SlotAlreadyTakenError:
            logger.info("booking_race_lost", doctor_id=doctor_id,
                        date=on_date.isoformat(), start_time=start_time, stage="insert")
            return BookingResult(status=BookingStatus.SLOT_TAKEN)

        logger.info("appointment_booked", appointment_id=appointment.id, doctor_id=doctor_id,
                    date=on_date.isoformat(), start_time=start_time)
        return BookingResult(status=BookingStatus.BOOKED, appointment=appointment)

    def cancel(self, appointment_id: str) -> AppointmentInterval:
        """
        Cancel an appointment and free its slot.

        Raises:
            AppointmentNotFoundError: Unknown appointment
            InvalidStatusTransitionError: Already cancelled
        """
        current = self.repository.get_appointment(appointment_id)
        if current.status == AppointmentStatus.CANCELLED:
            raise InvalidStatusTransitionError(f"Appointment {appointment_id} is already cancelled")

        appointment = self.repository.update_appointment_status(appointment_id, AppointmentStatus.CANCELLED)
        logger.info("appointment_cancelled", appointment_id=appointment_id)
        return appointment

    def complete(self, appointment_id: str) -> AppointmentInterval:
        """
        Mark a scheduled appointment as completed.

        Raises:
            AppointmentNotFoundError: Unknown appointment
            InvalidStatusTransitionError: Not in scheduled state
        """
        current = self.repository.get_appointment(appointment_id)
        if current.status != AppointmentStatus.SCHEDULED:
            raise InvalidStatusTransitionError(
                f"Only scheduled appointments can be completed (status: {current.status.value})"
            )

        appointment = self.repository.update_appointment_status(appointment_id, AppointmentStatus.COMPLETED)
        logger.info("appointment_completed", appointment_id=appointment_id)
        return appointment
