"""FastAPI server for doctor schedules, availability, bookings and auth.

Features:
- Availability and calendar classification per doctor
- Booking with distinct "slot taken" outcome (409)
- Throttled login (429 + Retry-After while locked out)
- Global exception handling with ErrorResponse bodies
- Request IDs in logs and X-Request-ID header
"""
from datetime import date
from typing import List

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from medbook import config
from medbook.api.dependencies import get_auth_service, get_booking_service, get_current_user
from medbook.api.models import (
    AvailabilityResponse,
    BookingRequest,
    BookingResponse,
    CalendarDay,
    CalendarResponse,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    PasswordResetBody,
    PasswordResetConfirmBody,
    UserResponse,
)
from medbook.auth_service import AuthService, RegistrationRequest
from medbook.booking import BookingService
from medbook.errors import (
    AppointmentNotFoundError,
    IdentityProviderError,
    InvalidCredentialsError,
    InvalidStatusTransitionError,
    LockoutError,
    ScheduleEntryNotFoundError,
    ValidationError,
    WeakPasswordError,
)
from medbook.identity import AuthUser
from medbook.logging_config import RequestIDMiddleware, get_logger, setup_structured_logging
from medbook.models import (
    AppointmentInterval,
    BookingStatus,
    DayAvailability,
    VacationRange,
    WorkingHoursEntry,
)

setup_structured_logging(config.LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(
    title="Medbook Scheduling API",
    description="Doctor availability, appointment booking and throttled login",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)
app.add_middleware(RequestIDMiddleware)


def _error(status_code: int, error: str, detail: str, code: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, code=code).model_dump(),
        headers=headers
    )


# Global exception handlers
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors consistently."""
    logger.warning("request_validation_failed", errors=str(exc.errors()))
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error",
                  str(exc.errors()), "VALIDATION_ERROR")


@app.exception_handler(ValidationError)
async def domain_validation_handler(request: Request, exc: ValidationError):
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", str(exc), "VALIDATION_ERROR")


@app.exception_handler(LockoutError)
async def lockout_handler(request: Request, exc: LockoutError):
    return _error(status.HTTP_429_TOO_MANY_REQUESTS, "Too Many Login Attempts", str(exc),
                  "LOGIN_LOCKED_OUT", headers={"Retry-After": str(exc.remaining_seconds)})


@app.exception_handler(InvalidCredentialsError)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsError):
    return _error(status.HTTP_401_UNAUTHORIZED, "Invalid Credentials", str(exc), "INVALID_CREDENTIALS")


@app.exception_handler(WeakPasswordError)
async def weak_password_handler(request: Request, exc: WeakPasswordError):
    return _error(status.HTTP_400_BAD_REQUEST, "Weak Password", str(exc), "WEAK_PASSWORD")


@app.exception_handler(IdentityProviderError)
async def identity_provider_handler(request: Request, exc: IdentityProviderError):
    if exc.status_code == 409:
        return _error(status.HTTP_409_CONFLICT, "Already Registered", str(exc), "USER_EXISTS")
    logger.error("identity_provider_error", error=str(exc), provider_status=exc.status_code)
    return _error(status.HTTP_502_BAD_GATEWAY, "Identity Provider Error", str(exc), "IDENTITY_PROVIDER_ERROR")


@app.exception_handler(AppointmentNotFoundError)
@app.exception_handler(ScheduleEntryNotFoundError)
async def not_found_handler(request: Request, exc: Exception):
    return _error(status.HTTP_404_NOT_FOUND, "Not Found", str(exc), "NOT_FOUND")


@app.exception_handler(InvalidStatusTransitionError)
async def status_transition_handler(request: Request, exc: InvalidStatusTransitionError):
    return _error(status.HTTP_409_CONFLICT, "Invalid Status Transition", str(exc), "INVALID_STATUS_TRANSITION")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected exceptions."""
    logger.error("unexpected_error", error=str(exc), exc_info=True)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error",
                  "An unexpected error occurred. Please try again later.", "INTERNAL_ERROR")


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": "medbook-scheduling-api",
        "version": "1.0.0"
    }


# Availability

@app.get("/doctors/{doctor_id}/availability", tags=["Availability"], response_model=AvailabilityResponse)
def get_availability(
    doctor_id: str,
    date: date,
    service: BookingService = Depends(get_booking_service)
):
    """Day classification plus bookable slots for one date."""
    day_status = service.day_availability(doctor_id, date)
    slots = service.available_slots(doctor_id, date) if day_status == DayAvailability.AVAILABLE else []
    return AvailabilityResponse(doctor_id=doctor_id, date=date, status=day_status, slots=slots)


@app.get("/doctors/{doctor_id}/calendar", tags=["Availability"], response_model=CalendarResponse)
def get_calendar(
    doctor_id: str,
    start: date,
    end: date,
    service: BookingService = Depends(get_booking_service)
):
    """Available/unavailable status for every day in [start, end]."""
    if (end - start).days > 366:
        raise ValidationError("Calendar range is limited to one year")
    days = service.calendar(doctor_id, start, end)
    return CalendarResponse(
        doctor_id=doctor_id,
        days=[CalendarDay(date=day, status=day_status) for day, day_status in days]
    )


# Schedule management

@app.get("/doctors/{doctor_id}/working-hours", tags=["Schedule"], response_model=List[WorkingHoursEntry])
def list_working_hours(doctor_id: str, service: BookingService = Depends(get_booking_service)):
    return service.repository.list_working_hours(doctor_id)


@app.post("/doctors/{doctor_id}/working-hours", tags=["Schedule"],
          response_model=WorkingHoursEntry, status_code=status.HTTP_201_CREATED)
def add_working_hours(
    doctor_id: str,
    entry: WorkingHoursEntry,
    service: BookingService = Depends(get_booking_service)
):
    return service.repository.add_working_hours(doctor_id, entry)


@app.delete("/doctors/{doctor_id}/working-hours/{entry_id}", tags=["Schedule"],
            status_code=status.HTTP_204_NO_CONTENT)
def delete_working_hours(doctor_id: str, entry_id: str, service: BookingService = Depends(get_booking_service)):
    service.repository.delete_working_hours(entry_id, doctor_id=doctor_id)


@app.get("/doctors/{doctor_id}/vacations", tags=["Schedule"], response_model=List[VacationRange])
def list_vacations(doctor_id: str, service: BookingService = Depends(get_booking_service)):
    return service.repository.list_vacations(doctor_id)


@app.post("/doctors/{doctor_id}/vacations", tags=["Schedule"],
          response_model=VacationRange, status_code=status.HTTP_201_CREATED)
def add_vacation(
    doctor_id: str,
    vacation: VacationRange,
    service: BookingService = Depends(get_booking_service)
):
    return service.repository.add_vacation(doctor_id, vacation)


@app.delete("/doctors/{doctor_id}/vacations/{vacation_id}", tags=["Schedule"],
            status_code=status.HTTP_204_NO_CONTENT)
def delete_vacation(doctor_id: str, vacation_id: str, service: BookingService = Depends(get_booking_service)):
    service.repository.delete_vacation(vacation_id, doctor_id=doctor_id)


# Appointments

_BOOKING_OUTCOMES = {
    BookingStatus.BOOKED: (status.HTTP_201_CREATED, "Appointment booked"),
    BookingStatus.SLOT_TAKEN: (
        status.HTTP_409_CONFLICT,
        "This time slot is no longer available. Please select another time."
    ),
    BookingStatus.SLOT_UNAVAILABLE: (
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "This time slot is not offered on the selected date."
    ),
}


@app.post("/appointments", tags=["Appointments"], response_model=BookingResponse,
          responses={409: {"model": BookingResponse}, 422: {"model": BookingResponse}})
def book_appointment(request: BookingRequest, service: BookingService = Depends(get_booking_service)):
    """
    Book a slot.

    Returns:
        201 booked, 409 slot taken by a concurrent booking,
        422 slot not offered for that date
    """
    result = service.book(
        doctor_id=request.doctor_id,
        patient_id=request.patient_id,
        on_date=request.date,
        start_time=request.start_time,
        notes=request.notes
    )
    status_code, message = _BOOKING_OUTCOMES[result.status]
    body = BookingResponse(status=result.status, appointment=result.appointment, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.get("/patients/{patient_id}/appointments", tags=["Appointments"], response_model=List[AppointmentInterval])
def list_patient_appointments(patient_id: str, service: BookingService = Depends(get_booking_service)):
    return service.repository.list_patient_appointments(patient_id)


@app.post("/appointments/{appointment_id}/cancel", tags=["Appointments"], response_model=AppointmentInterval)
def cancel_appointment(appointment_id: str, service: BookingService = Depends(get_booking_service)):
    return service.cancel(appointment_id)


@app.post("/appointments/{appointment_id}/complete", tags=["Appointments"], response_model=AppointmentInterval)
def complete_appointment(appointment_id: str, service: BookingService = Depends(get_booking_service)):
    return service.complete(appointment_id)


# Auth

@app.post("/auth/register", tags=["Auth"], response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegistrationRequest, auth: AuthService = Depends(get_auth_service)):
    user = auth.register(request)
    return UserResponse(user_id=user.id, email=user.email, profile=user.profile)


@app.post("/auth/login", tags=["Auth"], response_model=LoginResponse)
def login(request: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    """
    Sign in.

    Raises:
        401: Invalid credentials
        429: Locked out (Retry-After header carries remaining seconds)
    """
    session = auth.login(request.email, request.password)
    return LoginResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
        user_id=session.user.id,
        email=session.user.email,
        profile=session.user.profile
    )


@app.post("/auth/logout", tags=["Auth"], status_code=status.HTTP_204_NO_CONTENT)
def logout(request: LogoutRequest, auth: AuthService = Depends(get_auth_service)):
    auth.sign_out(request.access_token)


@app.post("/auth/password-reset", tags=["Auth"], status_code=status.HTTP_202_ACCEPTED)
def password_reset(request: PasswordResetBody, auth: AuthService = Depends(get_auth_service)):
    """Always 202, whether or not the email is registered."""
    auth.reset_password(request.email)
    return {"message": "If the email is registered, a reset link has been sent."}


@app.get("/auth/me", tags=["Auth"], response_model=UserResponse)
def me(user: AuthUser = Depends(get_current_user)):
    """Resolve the bearer token to its user (401 when invalid or expired)."""
    return UserResponse(user_id=user.id, email=user.email, profile=user.profile)


@app.post("/auth/password-reset/confirm", tags=["Auth"], status_code=status.HTTP_204_NO_CONTENT)
def confirm_password_reset(request: PasswordResetConfirmBody, auth: AuthService = Depends(get_auth_service)):
    """
    Set a new password with a delivered reset token.

    Raises:
        400: New password violates the policy
        401: Token invalid, expired or already used
    """
    auth.confirm_password_reset(request.token, request.new_password)


def run():
    """Console entry point: serve the API with uvicorn."""
    import os

    import uvicorn

    uvicorn.run(
        "medbook.api.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=config.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
