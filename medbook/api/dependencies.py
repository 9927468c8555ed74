"""FastAPI dependency injection functions."""
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from medbook import config
from medbook.auth_service import AuthService
from medbook.availability import AvailabilityEngine, OverlapPolicy
from medbook.booking import BookingService
from medbook.errors import InvalidCredentialsError
from medbook.identity import AuthUser, create_identity_provider
from medbook.login_throttle import create_login_throttle
from medbook.repository import ScheduleRepository


@lru_cache(maxsize=1)
def get_repository() -> ScheduleRepository:
    """Shared record store (one engine / connection pool per process)."""
    return ScheduleRepository(database_url=config.DATABASE_URL)


@lru_cache(maxsize=1)
def get_booking_service() -> BookingService:
    engine = AvailabilityEngine(
        slot_minutes=config.SLOT_DURATION_MINUTES,
        overlap_policy=OverlapPolicy(config.OVERLAP_POLICY)
    )
    return BookingService(get_repository(), engine)


@lru_cache(maxsize=1)
def get_auth_service() -> AuthService:
    """
    Auth service singleton.

    The throttle is owned here and injected, so swapping the in-memory store
    for the database-backed one is a configuration change.
    """
    return AuthService(
        identity=create_identity_provider(config.IDENTITY_BACKEND, config.DATABASE_URL),
        throttle=create_login_throttle(config.LOGIN_THROTTLE_BACKEND, config.DATABASE_URL)
    )


def get_current_user(
    authorization: Optional[str] = Header(None, description="Bearer access token"),
    auth: AuthService = Depends(get_auth_service)
) -> AuthUser:
    """
    FastAPI dependency resolving the caller from "Authorization: Bearer <token>".

    Raises:
        InvalidCredentialsError: Missing, malformed, expired or signed-out token (401)
    """
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise InvalidCredentialsError("Missing bearer token")
    return auth.current_user(token.strip())
