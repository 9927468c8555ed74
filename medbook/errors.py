"""Exception hierarchy for scheduling and authentication."""
from typing import Optional


class MedbookError(Exception):
    """Base class for all application errors."""
    pass


class ValidationError(MedbookError, ValueError):
    """Raised on malformed time-of-day, date or weekday input."""
    pass


class LockoutError(MedbookError):
    """Raised when a login is rejected because the identifier is locked out."""
    def __init__(self, remaining_seconds: int):
        super().__init__(
            f"Too many login attempts. Please try again in {remaining_seconds} seconds."
        )
        self.remaining_seconds = remaining_seconds


class WeakPasswordError(MedbookError):
    """Raised when a password does not satisfy the password policy."""
    pass


class InvalidCredentialsError(MedbookError):
    """Raised by identity providers on a wrong email/password pair."""
    pass


class IdentityProviderError(MedbookError):
    """Raised when the identity provider fails for reasons other than credentials."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SlotAlreadyTakenError(MedbookError):
    """Raised by the store when a booking loses the race for a slot."""
    pass


class AppointmentNotFoundError(MedbookError):
    pass


class ScheduleEntryNotFoundError(MedbookError):
    """Raised when a working-hours entry or vacation id does not exist."""
    pass


class InvalidStatusTransitionError(MedbookError):
    """Raised when an appointment cannot move to the requested status."""
    pass
