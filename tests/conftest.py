"""Shared test fixtures."""
from datetime import date

import pytest

from medbook.availability import AvailabilityEngine
from medbook.models import AppointmentInterval, VacationRange, WorkingHoursEntry

# 2026-10-19 is a Monday (day_of_week 1)
MONDAY = date(2026, 10, 19)
TODAY = date(2026, 10, 17)


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def engine():
    """Engine with a pinned clock so date classification is deterministic."""
    return AvailabilityEngine(clock=lambda: TODAY)


@pytest.fixture
def monday_hours():
    """Monday 09:00-12:00."""
    return [WorkingHoursEntry(day_of_week=1, start_time="09:00", end_time="12:00")]


@pytest.fixture
def make_appointment():
    """Create appointment intervals on MONDAY."""
    def _create(start: str, end: str, status: str = "scheduled", doctor_id: str = "doc-1", day: date = MONDAY):
        return AppointmentInterval(
            doctor_id=doctor_id,
            patient_id="pat-1",
            date=day,
            start_time=start,
            end_time=end,
            status=status
        )
    return _create


@pytest.fixture
def make_vacation():
    def _create(start: date, end: date, reason: str = None):
        return VacationRange(start_date=start, end_date=end, reason=reason)
    return _create
