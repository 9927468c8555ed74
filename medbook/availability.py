"""Availability engine: bookable slots and calendar-day classification.

Turns a doctor's weekly working-hours template, vacation ranges and existing
appointments into 30-minute bookable slots for a date.

Pure computation over caller-supplied snapshots. Engines hold no mutable state
and can be shared between threads.
"""
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Tuple, Type, TypeVar

import pydantic

from medbook import config
from medbook.errors import ValidationError
from medbook.models import (
    AppointmentInterval,
    DayAvailability,
    VacationRange,
    WorkingHoursEntry,
)
from medbook.timeparse import format_minutes, parse_time_of_day, weekday_index

RecordT = TypeVar("RecordT", bound=pydantic.BaseModel)


class OverlapPolicy(str, Enum):
    """How an existing appointment excludes a candidate slot."""
    START_POINT = "start_point"  # appt.start <= slot.start < appt.end
    INTERVAL = "interval"  # appt.start < slot.end and appt.end > slot.start


def _coerce(records: Optional[Iterable[Any]], model: Type[RecordT]) -> List[RecordT]:
    """Accept model instances or plain dicts from the record store."""
    coerced = []
    for record in records or []:
        if isinstance(record, model):
            coerced.append(record)
            continue
        try:
            coerced.append(model.model_validate(record))
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid {model.__name__}: {e}") from e
    return coerced


class AvailabilityEngine:
    """Compute free slots and day availability for a single doctor."""

    def __init__(
        self,
        slot_minutes: int = config.SLOT_DURATION_MINUTES,
        overlap_policy: OverlapPolicy = OverlapPolicy.START_POINT,
        clock: Callable[[], date] = date.today
    ):
        """
        Initialize availability engine.

        Args:
            slot_minutes: Width of every slot (default: 30)
            overlap_policy: Exclusion test for booked appointments
            clock: Returns "today"; only consulted when callers omit it
        """
        if slot_minutes <= 0:
            raise ValidationError("slot_minutes must be positive")
        self.slot_minutes = slot_minutes
        self.overlap_policy = OverlapPolicy(overlap_policy)
        self.clock = clock

    def classify_date(
        self,
        day: date,
        working_hours: Iterable[Any],
        vacations: Iterable[Any],
        today: Optional[date] = None
    ) -> DayAvailability:
        """
        Classify a calendar date as available or unavailable.

        Args:
            day: Date to classify
            working_hours: Doctor's WorkingHoursEntry records
            vacations: Doctor's VacationRange records
            today: Caller's notion of today (defaults to clock())

        Returns:
            DayAvailability.UNAVAILABLE for past dates, vacation days and
            weekdays without working hours; AVAILABLE otherwise
        """
        if today is None:
            today = self.clock()

        if day < today:
            return DayAvailability.UNAVAILABLE

        if any(vacation.contains(day) for vacation in _coerce(vacations, VacationRange)):
            return DayAvailability.UNAVAILABLE

        if not self._windows_for(day, _coerce(working_hours, WorkingHoursEntry)):
            return DayAvailability.UNAVAILABLE

        return DayAvailability.AVAILABLE

    def classify_range(
        self,
        start: date,
        end: date,
        working_hours: Iterable[Any],
        vacations: Iterable[Any],
        today: Optional[date] = None
    ) -> List[Tuple[date, DayAvailability]]:
        """
        Classify every date in [start, end] (inclusive).

        Returns:
            Ordered (date, DayAvailability) pairs
        """
        if end < start:
            raise ValidationError("end must not be before start")
        if today is None:
            today = self.clock()

        hours = _coerce(working_hours, WorkingHoursEntry)
        blackout = _coerce(vacations, VacationRange)

        days = []
        current = start
        while current <= end:
            days.append((current, self.classify_date(current, hours, blackout, today=today)))
            current += timedelta(days=1)
        return days

    def compute_available_slots(
        self,
        day: date,
        working_hours: Iterable[Any],
        vacations: Iterable[Any],
        existing_appointments: Iterable[Any],
        today: Optional[date] = None
    ) -> List[str]:
        """
        Compute bookable slot start times for a date.

        Args:
            day: Target date
            working_hours: Doctor's WorkingHoursEntry records
            vacations: Doctor's VacationRange records
            existing_appointments: AppointmentInterval records for the doctor
            today: Caller's notion of today (defaults to clock())

        Returns:
            Ascending "HH:MM" start times; empty when the day is unavailable

        Example:
            Monday 09:00-12:00 with a 10:00-10:30 booking yields
            ["09:00", "09:30", "10:30", "11:00", "11:30"]
        """
        hours = _coerce(working_hours, WorkingHoursEntry)
        blackout = _coerce(vacations, VacationRange)

        if self.classify_date(day, hours, blackout, today=today) != DayAvailability.AVAILABLE:
            return []

        booked = [
            appt for appt in _coerce(existing_appointments, AppointmentInterval)
            if appt.occupies_slot and appt.date == day
        ]

        free = set()
        for window in self._windows_for(day, hours):
            cursor = window.start_minutes
            # Slot must fit entirely inside the window
            while cursor + self.slot_minutes <= window.end_minutes:
                if not any(self._excludes(appt, cursor) for appt in booked):
                    free.add(cursor)
                cursor += self.slot_minutes

        return [format_minutes(minutes) for minutes in sorted(free)]

    def is_slot_still_free(
        self,
        doctor_id: str,
        day: date,
        start_time: str,
        existing_appointments: Iterable[Any]
    ) -> bool:
        """
        Last-moment re-check before committing a booking.

        This is a check, not a lock: two callers can both see True. The store's
        uniqueness constraint settles the race.

        Returns:
            False if a non-cancelled appointment holds doctor/date/start_time.
            Records without a doctor_id are taken to belong to this doctor.
        """
        start = parse_time_of_day(start_time)
        for appt in _coerce(existing_appointments, AppointmentInterval):
            if appt.doctor_id is not None and appt.doctor_id != doctor_id:
                continue
            if (
                appt.occupies_slot
                and appt.date == day
                and appt.start_minutes == start
            ):
                return False
        return True

    def slot_end(self, start_time: str) -> str:
        """End time ("HH:MM") of the slot starting at start_time."""
        return format_minutes(parse_time_of_day(start_time) + self.slot_minutes)

    def _excludes(self, appt: AppointmentInterval, slot_start: int) -> bool:
        if self.overlap_policy == OverlapPolicy.INTERVAL:
            return appt.start_minutes < slot_start + self.slot_minutes and appt.end_minutes > slot_start
        return appt.start_minutes <= slot_start < appt.end_minutes

    @staticmethod
    def _windows_for(day: date, working_hours: List[WorkingHoursEntry]) -> List[WorkingHoursEntry]:
        """All working windows for the date's weekday (split shifts are merged)."""
        weekday = weekday_index(day)
        return [entry for entry in working_hours if entry.day_of_week == weekday]
