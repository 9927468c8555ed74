"""Identity providers: sign-up, sign-in, sessions and password reset.

Two implementations of the same capability:
- HttpIdentityProvider: hosted auth service speaking the GoTrue REST API
- LocalIdentityProvider: SQLAlchemy users table with bcrypt hashes
"""
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

import bcrypt
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from medbook import config
from medbook.database_models import AuthToken, Base, PasswordResetRequest, User
from medbook.errors import IdentityProviderError, InvalidCredentialsError
from medbook.http_client import create_http_session, send_with_retry
from medbook.logging_config import get_logger, mask_email

logger = get_logger(__name__)


@dataclass
class AuthUser:
    id: str
    email: str
    profile: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AuthSession:
    """Signed-in user plus the tokens the provider issued."""
    user: AuthUser
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class IdentityProvider(Protocol):
    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthUser:
        ...

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    def sign_out(self, access_token: str) -> None:
        ...

    def get_user(self, access_token: str) -> AuthUser:
        ...

    def reset_password(self, email: str) -> Optional[str]:
        ...

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        ...


class HttpIdentityProvider:
    """
    Client for a hosted GoTrue-compatible auth API.

    Pattern: Pooled requests.Session, connection-level retries, provider errors
    translated to application exceptions.
    """

    def __init__(
        self,
        base_url: str = config.AUTH_API_URL,
        api_key: str = config.AUTH_API_KEY,
        session: Optional[requests.Session] = None,
        max_retries: int = config.HTTP_MAX_RETRIES,
        wait_multiplier: float = 1.0
    ):
        """
        Initialize identity client.

        Args:
            base_url: Auth service root (".../auth/v1" is appended)
            api_key: Project API key sent as the "apikey" header
            session: Pre-built HTTP session (tests inject mocks here)
            max_retries: Connection-level retries per call
            wait_multiplier: Backoff multiplier between retries
        """
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.api_key = api_key
        self.session = session or create_http_session()
        self.max_retries = max_retries
        self.wait_multiplier = wait_multiplier

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {access_token or self.api_key}"
        return headers

    def _request(self, method: str, path: str, access_token: Optional[str] = None, **kwargs) -> requests.Response:
        try:
            return send_with_retry(
                self.session,
                method,
                f"{self.auth_url}{path}",
                max_retries=self.max_retries,
                wait_multiplier=self.wait_multiplier,
                headers=self._headers(access_token),
                **kwargs
            )
        except requests.exceptions.RequestException as e:
            logger.error("identity_provider_unreachable", path=path, error=str(e))
            raise IdentityProviderError(f"Could not reach identity provider: {e}") from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        return (
            body.get("error_description")
            or body.get("msg")
            or body.get("message")
            or body.get("error")
            or f"HTTP {response.status_code}"
        )

    def _raise_for_status(self, response: requests.Response) -> None:
        if response.status_code >= 400:
            raise IdentityProviderError(self._error_message(response), status_code=response.status_code)

    @staticmethod
    def _to_user(payload: Dict[str, Any]) -> AuthUser:
        return AuthUser(
            id=payload["id"],
            email=payload.get("email", ""),
            profile=payload.get("user_metadata") or {}
        )

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthUser:
        response = self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": metadata or {}}
        )
        self._raise_for_status(response)

        body = response.json()
        # Depending on email confirmation settings the user is top-level or nested
        return self._to_user(body.get("user") or body)

    def sign_in(self, email: str, password: str) -> AuthSession:
        response = self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password}
        )
        if response.status_code in (400, 401):
            raise InvalidCredentialsError(self._error_message(response))
        self._raise_for_status(response)

        body = response.json()
        return AuthSession(
            user=self._to_user(body["user"]),
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_in=body.get("expires_in")
        )

    def sign_out(self, access_token: str) -> None:
        response = self._request("POST", "/logout", access_token=access_token)
        # An already-invalid token means the session is gone anyway
        if response.status_code not in (401, 404):
            self._raise_for_status(response)

    def get_user(self, access_token: str) -> AuthUser:
        response = self._request("GET", "/user", access_token=access_token)
        if response.status_code in (401, 403):
            raise InvalidCredentialsError("Invalid or expired session")
        self._raise_for_status(response)
        return self._to_user(response.json())

    def reset_password(self, email: str) -> Optional[str]:
        """Ask the service to email a recovery link. The token never reaches us."""
        response = self._request("POST", "/recover", json={"email": email})
        self._raise_for_status(response)
        return None

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        """
        Set a new password using the access token from the recovery link.

        Raises:
            InvalidCredentialsError: Recovery token invalid or expired
        """
        response = self._request("PUT", "/user", access_token=token, json={"password": new_password})
        if response.status_code in (401, 403):
            raise InvalidCredentialsError("Invalid or expired reset token")
        self._raise_for_status(response)


class LocalIdentityProvider:
    """
    Self-hosted identity store.

    Pattern: bcrypt password hashes, opaque random access tokens with an
    expiry, one-time reset tokens stored hashed. Reset tokens are handed to
    deliver_reset_token(email, token), e.g. an email sender.
    """

    def __init__(
        self,
        database_url: str,
        session_ttl_seconds: int = config.SESSION_TTL_SECONDS,
        reset_ttl_seconds: int = config.PASSWORD_RESET_TTL_SECONDS,
        deliver_reset_token: Optional[Callable[[str, str], None]] = None
    ):
        """Initialize with database connection."""
        self.session_ttl_seconds = session_ttl_seconds
        self.reset_ttl_seconds = reset_ttl_seconds
        self.deliver_reset_token = deliver_reset_token
        self.engine = create_engine(database_url, pool_pre_ping=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

    @staticmethod
    def _to_user(user: User) -> AuthUser:
        return AuthUser(id=user.id, email=user.email, profile=dict(user.profile or {}))

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> AuthUser:
        """
        Create a user.

        Raises:
            IdentityProviderError: If the email is already registered
        """
        with self.SessionLocal() as db:
            if db.query(User).filter(User.email == email).first():
                raise IdentityProviderError("User already registered", status_code=409)

            user = User(
                email=email,
                password_hash=User.hash_password(password),
                profile=dict(metadata or {})
            )
            db.add(user)
            db.commit()

            logger.info("user_registered", user_id=user.id, role=user.profile.get("role"))
            return self._to_user(user)

    def sign_in(self, email: str, password: str) -> AuthSession:
        """
        Verify credentials and issue an access token.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password (same message)
        """
        now = time.time()
        with self.SessionLocal() as db:
            user = db.query(User).filter(User.email == email).first()
            if not user or not User.verify_password(password, user.password_hash):
                raise InvalidCredentialsError("Invalid login credentials")

            db.query(AuthToken).filter(AuthToken.expires_at <= now).delete(synchronize_session=False)
            token = uuid.uuid4().hex
            db.add(AuthToken(token=token, user_id=user.id, expires_at=now + self.session_ttl_seconds))
            db.commit()

            return AuthSession(
                user=self._to_user(user),
                access_token=token,
                expires_in=self.session_ttl_seconds
            )

    def sign_out(self, access_token: str) -> None:
        with self.SessionLocal() as db:
            db.query(AuthToken).filter(AuthToken.token == access_token).delete()
            db.commit()

    def get_user(self, access_token: str) -> AuthUser:
        """
        Resolve an access token to its user.

        Raises:
            InvalidCredentialsError: If the token is unknown, expired or signed out
        """
        with self.SessionLocal() as db:
            token = db.query(AuthToken).filter(
                AuthToken.token == access_token,
                AuthToken.expires_at > time.time()
            ).first()
            user = db.query(User).filter(User.id == token.user_id).first() if token else None
            if not user:
                raise InvalidCredentialsError("Invalid or expired session")
            return self._to_user(user)

    def reset_password(self, email: str) -> Optional[str]:
        """
        Issue a one-time reset token and hand it to deliver_reset_token.

        Unknown emails are ignored silently.

        Returns:
            The token ("<request id>.<secret>"), or None for unknown emails
        """
        with self.SessionLocal() as db:
            user = db.query(User).filter(User.email == email).first()
            if not user:
                logger.info("password_reset_unknown_email", email=mask_email(email))
                return None

            secret = uuid.uuid4().hex
            request = PasswordResetRequest(
                user_id=user.id,
                token_hash=bcrypt.hashpw(secret.encode(), bcrypt.gensalt()).decode(),
                expires_at=time.time() + self.reset_ttl_seconds
            )
            db.add(request)
            db.commit()
            token = f"{request.id}.{secret}"
            logger.info("password_reset_requested", user_id=user.id)

        if self.deliver_reset_token is not None:
            self.deliver_reset_token(email, token)
        return token

    def confirm_password_reset(self, token: str, new_password: str) -> None:
        """
        Consume a reset token and set a new password.

        Every open session of the user is signed out.

        Raises:
            InvalidCredentialsError: Token unknown, expired or already used
        """
        request_id, _, secret = token.partition(".")
        now = time.time()
        with self.SessionLocal() as db:
            request = db.query(PasswordResetRequest).filter(PasswordResetRequest.id == request_id).first()
            if (
                not request
                or request.used_at is not None
                or request.expires_at <= now
                or not bcrypt.checkpw(secret.encode(), request.token_hash.encode())
            ):
                raise InvalidCredentialsError("Invalid or expired reset token")

            user = db.query(User).filter(User.id == request.user_id).first()
            if not user:
                raise InvalidCredentialsError("Invalid or expired reset token")

            user.password_hash = User.hash_password(new_password)
            request.used_at = now
            db.query(AuthToken).filter(AuthToken.user_id == user.id).delete(synchronize_session=False)
            db.commit()
            logger.info("password_reset_completed", user_id=user.id)


def create_identity_provider(
    backend: str = config.IDENTITY_BACKEND,
    database_url: str = config.DATABASE_URL
) -> IdentityProvider:
    """Build the configured identity backend ("local" or "http")."""
    if backend == "local":
        return LocalIdentityProvider(database_url)
    if backend == "http":
        return HttpIdentityProvider()
    raise ValueError(f"Unknown identity backend: {backend}")
