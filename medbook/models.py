"""Domain models for schedules, vacations, appointments and lockout state."""
import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from medbook.timeparse import normalize_time, parse_time_of_day


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment."""
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DayAvailability(str, Enum):
    """Calendar-day classification for a doctor."""
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class UserRole(str, Enum):
    DOCTOR = "doctor"
    PATIENT = "patient"
    INSURANCE_ADMIN = "insurance_admin"


class WorkingHoursEntry(BaseModel):
    """Recurring weekly working window for a doctor."""
    id: Optional[str] = Field(None, description="Storage identifier")
    doctor_id: Optional[str] = Field(None, description="Owning doctor")
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday ... 6=Saturday")
    start_time: str = Field(..., description="Window start (HH:MM)")
    end_time: str = Field(..., description="Window end (HH:MM), exclusive")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "day_of_week": 1,
                "start_time": "09:00",
                "end_time": "12:00"
            }
        }
    )

    @field_validator("start_time", mode="before")
    @classmethod
    def validate_start_time(cls, v):
        return normalize_time(v)

    @field_validator("end_time", mode="before")
    @classmethod
    def validate_end_time(cls, v):
        return normalize_time(v, allow_end_of_day=True)

    @model_validator(mode="after")
    def check_window_order(self):
        if self.end_minutes <= self.start_minutes:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def start_minutes(self) -> int:
        return parse_time_of_day(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_time_of_day(self.end_time, allow_end_of_day=True)


class VacationRange(BaseModel):
    """Blackout range for a doctor; both bounds inclusive."""
    id: Optional[str] = None
    doctor_id: Optional[str] = None
    start_date: dt.date
    end_date: dt.date
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_date_order(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def contains(self, day: dt.date) -> bool:
        """Calendar-date containment (time of day never matters)."""
        return self.start_date <= day <= self.end_date


class AppointmentInterval(BaseModel):
    """Booked (or formerly booked) time on a doctor's calendar."""
    id: Optional[str] = None
    doctor_id: Optional[str] = None
    patient_id: Optional[str] = None
    date: dt.date
    start_time: str
    end_time: str
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: Optional[str] = None

    @field_validator("start_time", mode="before")
    @classmethod
    def validate_start_time(cls, v):
        return normalize_time(v)

    @field_validator("end_time", mode="before")
    @classmethod
    def validate_end_time(cls, v):
        return normalize_time(v, allow_end_of_day=True)

    @property
    def occupies_slot(self) -> bool:
        """Cancelled appointments never block a slot."""
        return self.status != AppointmentStatus.CANCELLED

    @property
    def start_minutes(self) -> int:
        return parse_time_of_day(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_time_of_day(self.end_time, allow_end_of_day=True)


@dataclass(frozen=True)
class LockoutStatus:
    """Result of a lockout check."""
    locked: bool
    remaining_seconds: Optional[int] = None


class BookingStatus(str, Enum):
    BOOKED = "booked"
    SLOT_TAKEN = "slot_taken"  # lost the race to another booking
    SLOT_UNAVAILABLE = "slot_unavailable"  # never offered for that date


@dataclass(frozen=True)
class BookingResult:
    """Outcome of a booking attempt."""
    status: BookingStatus
    appointment: Optional[AppointmentInterval] = None

    @property
    def booked(self) -> bool:
        return self.status == BookingStatus.BOOKED
