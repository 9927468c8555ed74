"""Doctor availability, appointment booking and login throttling."""
from medbook.availability import AvailabilityEngine, OverlapPolicy
from medbook.login_throttle import DatabaseLoginThrottle, InMemoryLoginThrottle, LoginThrottle

__all__ = [
    "AvailabilityEngine",
    "OverlapPolicy",
    "LoginThrottle",
    "InMemoryLoginThrottle",
    "DatabaseLoginThrottle",
]
