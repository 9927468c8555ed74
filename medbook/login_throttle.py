"""Login throttling: lock an identifier out after repeated failed logins.

Pattern: Fixed sliding window per identifier.
- InMemoryLoginThrottle: single-process deployments (lock-protected deque)
- DatabaseLoginThrottle: multi-process deployments sharing one database

The throttle only reports state. Rejecting the login (LockoutError) is the
caller's job.
"""
import math
import threading
import time
from collections import deque
from typing import Deque, Optional, Protocol, Tuple

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from medbook import config
from medbook.database_models import Base, LoginAttempt
from medbook.logging_config import get_logger
from medbook.models import LockoutStatus

logger = get_logger(__name__)


class LoginThrottle(Protocol):
    """Capability shared by every throttle backend."""

    def record_failure(self, identifier: str, now: Optional[float] = None) -> None:
        ...

    def is_locked_out(self, identifier: str, now: Optional[float] = None) -> LockoutStatus:
        ...

    def clear(self, identifier: str) -> None:
        ...


def _lockout_from(timestamps_newest_first, now: float, max_attempts: int, window_seconds: float) -> LockoutStatus:
    """Locked once max_attempts failures sit inside the window."""
    if len(timestamps_newest_first) < max_attempts:
        return LockoutStatus(locked=False)

    # The attempt that tipped the count over the threshold
    tipping = timestamps_newest_first[max_attempts - 1]
    remaining = math.ceil(window_seconds - (now - tipping))
    return LockoutStatus(locked=True, remaining_seconds=max(remaining, 0))


class InMemoryLoginThrottle:
    """
    Process-local failed-login tracker.

    Records are appended in non-decreasing time order, so pruning from the
    oldest end is enough. Restarting the process resets every lockout.
    """

    def __init__(
        self,
        max_attempts: int = config.MAX_LOGIN_ATTEMPTS,
        window_seconds: float = config.LOCKOUT_WINDOW_SECONDS
    ):
        """
        Initialize in-memory throttle.

        Args:
            max_attempts: Failures within the window that trigger a lockout
            window_seconds: Window length in seconds
        """
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

        # [(identifier, timestamp), ...] oldest first
        self._attempts: Deque[Tuple[str, float]] = deque()
        self.lock = threading.Lock()

    def record_failure(self, identifier: str, now: Optional[float] = None) -> None:
        """Record a failed attempt and prune expired records."""
        if now is None:
            now = time.time()

        with self.lock:
            self._attempts.append((identifier, now))
            while self._attempts and now - self._attempts[0][1] > self.window_seconds:
                self._attempts.popleft()

    def is_locked_out(self, identifier: str, now: Optional[float] = None) -> LockoutStatus:
        """
        Check lockout state for identifier.

        Args:
            identifier: Login identifier (email)
            now: Epoch seconds (defaults to time.time())

        Returns:
            LockoutStatus with remaining_seconds when locked
        """
        if now is None:
            now = time.time()

        with self.lock:
            recent = sorted(
                (ts for ident, ts in self._attempts
                 if ident == identifier and now - ts < self.window_seconds),
                reverse=True
            )

        return _lockout_from(recent, now, self.max_attempts, self.window_seconds)

    def clear(self, identifier: str) -> None:
        """Forget every attempt for identifier (successful login)."""
        with self.lock:
            self._attempts = deque(
                record for record in self._attempts if record[0] != identifier
            )

    def attempt_count(self, identifier: str) -> int:
        """Number of stored (not yet pruned) attempts for identifier."""
        with self.lock:
            return sum(1 for ident, _ in self._attempts if ident == identifier)


class DatabaseLoginThrottle:
    """
    Failed-login tracker backed by a shared SQL table.

    Good for: multiple server processes behind a load balancer.
    """

    def __init__(
        self,
        database_url: str,
        max_attempts: int = config.MAX_LOGIN_ATTEMPTS,
        window_seconds: float = config.LOCKOUT_WINDOW_SECONDS
    ):
        """Initialize with database connection."""
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.engine = create_engine(database_url, pool_pre_ping=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def record_failure(self, identifier: str, now: Optional[float] = None) -> None:
        if now is None:
            now = time.time()

        with self.SessionLocal() as db:
            db.add(LoginAttempt(identifier=identifier, attempted_at=now))
            db.query(LoginAttempt).filter(
                LoginAttempt.attempted_at < now - self.window_seconds
            ).delete(synchronize_session=False)
            db.commit()

    def is_locked_out(self, identifier: str, now: Optional[float] = None) -> LockoutStatus:
        if now is None:
            now = time.time()

        with self.SessionLocal() as db:
            rows = db.query(LoginAttempt.attempted_at).filter(
                LoginAttempt.identifier == identifier,
                LoginAttempt.attempted_at > now - self.window_seconds
            ).order_by(LoginAttempt.attempted_at.desc()).limit(self.max_attempts).all()

        return _lockout_from([row[0] for row in rows], now, self.max_attempts, self.window_seconds)

    def clear(self, identifier: str) -> None:
        with self.SessionLocal() as db:
            db.query(LoginAttempt).filter(
                LoginAttempt.identifier == identifier
            ).delete(synchronize_session=False)
            db.commit()

    def attempt_count(self, identifier: str) -> int:
        with self.SessionLocal() as db:
            return db.query(LoginAttempt).filter(
                LoginAttempt.identifier == identifier
            ).count()


def create_login_throttle(
    backend: str = config.LOGIN_THROTTLE_BACKEND,
    database_url: str = config.DATABASE_URL,
    max_attempts: int = config.MAX_LOGIN_ATTEMPTS,
    window_seconds: float = config.LOCKOUT_WINDOW_SECONDS
) -> LoginThrottle:
    """
    Build the configured throttle backend.

    Args:
        backend: "memory" or "database"

    Raises:
        ValueError: On unknown backend
    """
    logger.info("login_throttle_created", backend=backend,
                max_attempts=max_attempts, window_seconds=window_seconds)
    if backend == "memory":
        return InMemoryLoginThrottle(max_attempts=max_attempts, window_seconds=window_seconds)
    if backend == "database":
        return DatabaseLoginThrottle(database_url, max_attempts=max_attempts, window_seconds=window_seconds)
    raise ValueError(f"Unknown login throttle backend: {backend}")
