"""Identity service for photovault application: accounts, sessions and auth events."""

import base64
import contextlib
import hashlib
import hmac
import queue
import re
import secrets
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

import duckdb
import jwt

from ..config import get_jwt_secret, get_session_ttl
from ..error_handling import AuthenticationError, DatabaseError
from ..logging_config import get_logger, log_error, log_security_event, log_user_action
from ..models.database import DatabaseManager, from_db_timestamp, get_database_manager, to_db_timestamp
from ..models.user import Session, User
from .provisioning import ProfileProvisioner

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


class AuthEventType(Enum):
    """Auth state changes published on the event channel."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_DELETED = "USER_DELETED"


@dataclass
class AuthEvent:
    """One auth state change."""

    type: AuthEventType
    user_id: str
    session: Session | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class AuthEventChannel:
    """
    Explicit channel for auth state changes.

    Hosts either subscribe a callback (push) or call ``poll`` on each run (pull).
    Both see every event.
    """

    def __init__(self, max_pending: int = 256) -> None:
        self._subscribers: list[Callable[[AuthEvent], None]] = []
        self._lock = threading.Lock()
        self._pending: queue.Queue[AuthEvent] = queue.Queue(maxsize=max_pending)

    def subscribe(self, callback: Callable[[AuthEvent], None]) -> Callable[[], None]:
        """
        Register a callback for every future event.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: AuthEvent) -> None:
        """Queue the event for pollers and push it to subscribers."""
        with self._lock:
            try:
                self._pending.put_nowait(event)
            except queue.Full:
                # Oldest event is dropped so pollers always see the latest state
                with contextlib.suppress(queue.Empty):
                    self._pending.get_nowait()
                self._pending.put_nowait(event)
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                log_error(e, {"operation": "auth_event_callback", "event_type": event.type.value})

        logger.debug("auth_event_published", event_type=event.type.value, user_id=event.user_id)

    def poll(self) -> list[AuthEvent]:
        """Drain and return every event published since the last poll."""
        events = []
        while True:
            try:
                events.append(self._pending.get_nowait())
            except queue.Empty:
                return events


class IdentityService:
    """Service for sign-up, sign-in, sessions and user lifecycle."""

    PASSWORD_HASH_ALGORITHM = "pbkdf2_sha256"
    PASSWORD_HASH_ITERATIONS = 120_000
    TOKEN_ALGORITHM = "HS256"

    def __init__(
        self,
        db: DatabaseManager,
        jwt_secret: str,
        session_ttl: int = 3600,
        events: AuthEventChannel | None = None,
        provisioner: ProfileProvisioner | None = None,
    ) -> None:
        """
        Initialize the identity service.

        Args:
            db: Database holding the auth_users and profiles tables
            jwt_secret: Secret used to sign session tokens
            session_ttl: Session lifetime in seconds
            events: Channel auth state changes are published on
            provisioner: Privileged profile provisioning step run at sign-up
        """
        self.db = db
        self._jwt_secret = jwt_secret
        self.session_ttl = session_ttl
        self.events = events or AuthEventChannel()
        self._provisioner = provisioner or ProfileProvisioner()
        self._active_sessions: dict[str, str] = {}
        self._sessions_lock = threading.Lock()

    def _normalize_email(self, email: str) -> str:
        return (email or "").strip().lower()

    def _hash_password(self, password: str) -> str:
        """Hash a password as ``algorithm$iterations$salt$digest``."""
        salt = secrets.token_bytes(16)
        digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, self.PASSWORD_HASH_ITERATIONS)
        return "$".join(
            [
                self.PASSWORD_HASH_ALGORITHM,
                str(self.PASSWORD_HASH_ITERATIONS),
                base64.b64encode(salt).decode("ascii"),
                base64.b64encode(digest).decode("ascii"),
            ]
        )

    def _verify_password(self, password: str, encoded: str) -> bool:
        try:
            algorithm, iterations, salt_b64, digest_b64 = encoded.split("$")
        except ValueError:
            return False
        if algorithm != self.PASSWORD_HASH_ALGORITHM:
            return False

        salt = base64.b64decode(salt_b64)
        expected = base64.b64decode(digest_b64)
        actual = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, int(iterations))
        return hmac.compare_digest(actual, expected)

    def _validate_credentials(self, email: str, password: str) -> None:
        if not EMAIL_PATTERN.match(email):
            raise AuthenticationError(
                "Unable to validate email address: invalid format",
                code="invalid_email",
                user_message="Email inválido.",
                details={"operation": "sign_up"},
            )
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise AuthenticationError(
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters.",
                code="weak_password",
                user_message=f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres.",
                details={"operation": "sign_up"},
            )

    def sign_up(self, email: str, password: str) -> User:
        """
        Register a new user and provision their profile.

        The user row and the profile row are written in one transaction; if
        provisioning fails the user is not created either. No session is issued.

        Returns:
            The created User

        Raises:
            AuthenticationError: On invalid input, duplicate email or failed provisioning
        """
        email = self._normalize_email(email)
        self._validate_credentials(email, password)

        user = User(id=str(uuid.uuid4()), email=email, created_at=datetime.now(UTC))
        password_hash = self._hash_password(password)

        try:
            with self.db.transaction() as conn:
                existing = conn.execute("SELECT id FROM auth_users WHERE email = ?", (email,)).fetchone()
                if existing:
                    raise AuthenticationError(
                        "User already registered",
                        code="user_already_exists",
                        user_message="Este email já está cadastrado.",
                        details={"operation": "sign_up"},
                    )

                conn.execute(
                    "INSERT INTO auth_users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                    (user.id, user.email, password_hash, to_db_timestamp(user.created_at)),
                )
                self._provisioner.provision(conn, user)

        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(
                "Database error saving new user",
                code="signup_failed",
                user_message="Não foi possível concluir o cadastro.",
                details={"operation": "sign_up"},
                original_exception=e,
            ) from e

        log_user_action(user.id, "user_signed_up", email=user.email)
        return user

    def sign_in(self, email: str, password: str) -> Session:
        """
        Authenticate with email and password.

        Returns:
            A new Session

        Raises:
            AuthenticationError: If the credentials do not match an account
        """
        email = self._normalize_email(email)
        rows = self.db.execute_query(
            "SELECT id, email, password_hash, created_at FROM auth_users WHERE email = ?", (email,)
        )

        if not rows or not self._verify_password(password or "", rows[0][2]):
            log_security_event("sign_in_failed", email=email)
            raise AuthenticationError(
                "Invalid login credentials",
                code="invalid_credentials",
                user_message="Email ou senha inválidos.",
                details={"operation": "sign_in"},
            )

        user_id, user_email, _, created_at = rows[0]
        user = User(id=user_id, email=user_email, created_at=from_db_timestamp(created_at))
        session = self._issue_session(user)

        log_user_action(user.id, "user_signed_in")
        self.events.publish(AuthEvent(type=AuthEventType.SIGNED_IN, user_id=user.id, session=session))
        return session

    def _issue_session(self, user: User) -> Session:
        issued_at = datetime.now(UTC)
        expires_at = issued_at + timedelta(seconds=self.session_ttl)
        session_id = str(uuid.uuid4())

        token = jwt.encode(
            {
                "sub": user.id,
                "email": user.email,
                "sid": session_id,
                "iat": issued_at,
                "exp": expires_at,
            },
            self._jwt_secret,
            algorithm=self.TOKEN_ALGORITHM,
        )

        with self._sessions_lock:
            self._active_sessions[session_id] = user.id

        return Session(access_token=token, user=user, expires_at=expires_at)

    def _decode_token(self, access_token: str) -> dict | None:
        """Decode a token, returning its claims only if it is valid and not revoked."""
        try:
            claims = jwt.decode(access_token, self._jwt_secret, algorithms=[self.TOKEN_ALGORITHM])
        except jwt.ExpiredSignatureError:
            self._forget_expired(access_token)
            return None
        except jwt.InvalidTokenError as e:
            log_security_event("invalid_session_token", error=str(e))
            return None

        with self._sessions_lock:
            if self._active_sessions.get(claims.get("sid")) != claims.get("sub"):
                return None

        return claims

    def _forget_expired(self, access_token: str) -> None:
        """Drop the active-session entry of a correctly signed but expired token."""
        try:
            claims = jwt.decode(
                access_token,
                self._jwt_secret,
                algorithms=[self.TOKEN_ALGORITHM],
                options={"verify_exp": False},
            )
        except jwt.InvalidTokenError:
            return

        session_id = claims.get("sid")
        with self._sessions_lock:
            if session_id is not None and self._active_sessions.get(session_id) == claims.get("sub"):
                del self._active_sessions[session_id]

        logger.info("session_token_expired", user_id=claims.get("sub"))

    def get_session(self, access_token: str) -> Session | None:
        """
        Look up the session behind an access token.

        Returns:
            The Session if the token is valid, unexpired and not signed out, otherwise None
        """
        claims = self._decode_token(access_token)
        if claims is None:
            return None

        user = User(id=claims["sub"], email=claims.get("email", ""))
        return Session(
            access_token=access_token,
            user=user,
            expires_at=datetime.fromtimestamp(claims["exp"], tz=UTC),
        )

    def resolve_caller(self, session: Session | None) -> str | None:
        """
        Resolve the identity a data or storage request runs as.

        Only the signed token is trusted, never ``session.user``.

        Returns:
            The caller's user id, or None for an anonymous request

        Raises:
            AuthenticationError: If a session is given but its token is not valid
        """
        if session is None:
            return None

        claims = self._decode_token(session.access_token)
        if claims is None:
            raise AuthenticationError(
                "Invalid or expired session",
                code="invalid_session",
                user_message="Sua sessão expirou. Entre novamente.",
                details={"operation": "resolve_caller"},
            )
        return str(claims["sub"])

    def sign_out(self, session: Session) -> None:
        """End a session. Signing out an unknown or expired session does nothing."""
        try:
            claims = jwt.decode(
                session.access_token,
                self._jwt_secret,
                algorithms=[self.TOKEN_ALGORITHM],
                options={"verify_exp": False},
            )
        except jwt.InvalidTokenError:
            logger.info("sign_out_ignored_invalid_token")
            return

        with self._sessions_lock:
            removed = self._active_sessions.pop(claims.get("sid"), None)

        if removed is None:
            return

        log_user_action(removed, "user_signed_out")
        self.events.publish(AuthEvent(type=AuthEventType.SIGNED_OUT, user_id=removed))

    def delete_user(self, user_id: str) -> bool:
        """
        Delete a user together with their profile and photo metadata rows.

        This is a system operation. Stored file objects are not removed.

        Returns:
            True if the user existed, False otherwise

        Raises:
            DatabaseError: If the cascade fails; nothing is deleted in that case
        """
        try:
            with self.db.transaction() as conn:
                if not conn.execute("SELECT id FROM auth_users WHERE id = ?", (user_id,)).fetchone():
                    return False
                conn.execute("DELETE FROM photos WHERE user_id = ?", (user_id,))
                conn.execute("DELETE FROM profiles WHERE user_id = ?", (user_id,))
                conn.execute("DELETE FROM auth_users WHERE id = ?", (user_id,))
        except duckdb.Error as e:
            raise DatabaseError(
                f"Failed to delete user: {e}",
                code="user_delete_failed",
                details={"user_id": user_id},
                original_exception=e,
            ) from e

        with self._sessions_lock:
            for session_id in [sid for sid, uid in self._active_sessions.items() if uid == user_id]:
                del self._active_sessions[session_id]

        log_user_action(user_id, "user_deleted")
        self.events.publish(AuthEvent(type=AuthEventType.USER_DELETED, user_id=user_id))
        return True


_identity_service: IdentityService | None = None


def get_identity_service() -> IdentityService:
    """Get the global identity service instance."""
    global _identity_service
    if _identity_service is None:
        _identity_service = IdentityService(
            db=get_database_manager(),
            jwt_secret=get_jwt_secret(),
            session_ttl=get_session_ttl(),
        )
    return _identity_service
