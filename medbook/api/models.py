"""Pydantic models for API request/response validation."""
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from medbook.models import AppointmentInterval, BookingStatus, DayAvailability


class AvailabilityResponse(BaseModel):
    """Response schema for GET /doctors/{doctor_id}/availability."""
    doctor_id: str
    date: date
    status: DayAvailability
    slots: List[str] = Field(default_factory=list, description="Bookable start times (HH:MM)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "doctor_id": "doc-1",
                "date": "2026-10-19",
                "status": "available",
                "slots": ["09:00", "09:30", "10:30", "11:00", "11:30"]
            }
        }
    )


class CalendarDay(BaseModel):
    date: date
    status: DayAvailability


class CalendarResponse(BaseModel):
    doctor_id: str
    days: List[CalendarDay]


class BookingRequest(BaseModel):
    """Request schema for POST /appointments."""
    doctor_id: str = Field(..., min_length=1, max_length=36)
    patient_id: str = Field(..., min_length=1, max_length=36)
    date: date
    start_time: str = Field(..., description="Slot start (HH:MM)", examples=["10:30"])
    notes: Optional[str] = Field(None, max_length=2000)


class BookingResponse(BaseModel):
    status: BookingStatus
    appointment: Optional[AppointmentInterval] = None
    message: str


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    user_id: str
    email: str
    profile: Dict[str, Any] = Field(default_factory=dict)


class LogoutRequest(BaseModel):
    access_token: str = Field(..., min_length=1)


class PasswordResetBody(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class UserResponse(BaseModel):
    user_id: str
    email: str
    profile: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Too Many Login Attempts",
                "detail": "Too many login attempts. Please try again in 15 seconds.",
                "code": "LOGIN_LOCKED_OUT"
            }
        }
    )


class PasswordResetConfirmBody(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)
