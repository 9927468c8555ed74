"""Authentication flows: registration, throttled login, sign-out, reset.

Wraps an IdentityProvider with the password policy and a LoginThrottle. The
provider's own rate limiting (if any) still applies underneath.
"""
import re
import time
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from medbook.errors import InvalidCredentialsError, LockoutError
from medbook.identity import AuthSession, AuthUser, IdentityProvider
from medbook.logging_config import get_logger, mask_email
from medbook.login_throttle import LoginThrottle
from medbook.models import UserRole
from medbook.password_policy import validate_password

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


def normalize_email(email: str) -> str:
    """Canonical login identifier: hosted auth lowercases emails too."""
    return email.strip().lower()


class RegistrationRequest(BaseModel):
    """Sign-up form for doctors, patients and insurance admins."""
    email: str = Field(..., max_length=255)
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole
    phone_number: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=300)
    specialization: Optional[str] = Field(None, max_length=100)
    date_of_birth: Optional[date] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        v = normalize_email(v)
        if not EMAIL_PATTERN.match(v):
            raise ValueError(f"Email '{v}' is not valid")
        return v

    @model_validator(mode="after")
    def check_role_fields(self):
        if self.role == UserRole.DOCTOR and not self.specialization:
            raise ValueError("Doctors must provide a specialization")
        if self.role == UserRole.PATIENT and self.date_of_birth is None:
            raise ValueError("Patients must provide a date of birth")
        return self

    def profile_metadata(self) -> dict:
        """Profile fields stored alongside the identity (never the password)."""
        return self.model_dump(mode="json", exclude={"email", "password"}, exclude_none=True)


class AuthService:
    """Login/registration orchestration on top of an identity provider."""

    def __init__(self, identity: IdentityProvider, throttle: LoginThrottle):
        self.identity = identity
        self.throttle = throttle

    def register(self, request: RegistrationRequest) -> AuthUser:
        """
        Register a new user.

        Raises:
            WeakPasswordError: Password policy violated
            IdentityProviderError: Provider rejected the sign-up
        """
        date_of_birth = request.date_of_birth if request.role == UserRole.PATIENT else None
        validate_password(request.password, date_of_birth=date_of_birth)

        user = self.identity.sign_up(
            request.email,
            request.password,
            metadata=request.profile_metadata()
        )
        logger.info("registration_completed", user_id=user.id, role=request.role.value)
        return user

    def login(self, email: str, password: str, now: Optional[float] = None) -> AuthSession:
        """
        Sign in with lockout protection.

        Args:
            email: Login identifier (case and surrounding spaces ignored)
            password: Password
            now: Epoch seconds (defaults to time.time())

        Returns:
            AuthSession from the identity provider

        Raises:
            LockoutError: Too many recent failures for this email
            InvalidCredentialsError: Wrong credentials (failure is recorded)
            IdentityProviderError: Provider unavailable (failure not recorded)
        """
        if now is None:
            now = time.time()
        email = normalize_email(email)

        status = self.throttle.is_locked_out(email, now=now)
        if status.locked:
            logger.warning("login_locked_out", email=mask_email(email),
                           remaining_seconds=status.remaining_seconds)
            raise LockoutError(status.remaining_seconds)

        try:
            session = self.identity.sign_in(email, password)
        except InvalidCredentialsError:
            self.throttle.record_failure(email, now=now)
            logger.info("login_failed", email=mask_email(email))
            raise

        self.throttle.clear(email)
        logger.info("login_succeeded", user_id=session.user.id)
        return session

    def sign_out(self, access_token: str) -> None:
        self.identity.sign_out(access_token)

    def current_user(self, access_token: str) -> AuthUser:
        """
        Raises:
            InvalidCredentialsError: Token unknown, expired or signed out
        """
        return self.identity.get_user(access_token)

    def reset_password(self, email: str) -> None:
        """Ask the provider to deliver a password-reset token."""
        email = normalize_email(email)
        self.identity.reset_password(email)
        logger.info("password_reset_sent", email=mask_email(email))

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        """
        Complete a reset with the delivered token.

        Raises:
            WeakPasswordError: New password violates the policy
            InvalidCredentialsError: Token invalid, expired or already used
        """
        validate_password(new_password)
        self.identity.confirm_password_reset(token, new_password)
