"""
Authentication Service

Provides password hashing/verification and session management.

Sessions live in a SessionManager owned by the application (app.state), created
at process start and cleared at shutdown. Components interested in sign-in /
sign-out subscribe to it instead of reading global state.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import bcrypt
import structlog

from backend.app.utils.datetime_utils import utcnow

logger = structlog.get_logger(__name__)

# Using bcrypt with cost factor 12 (good balance of security and speed)
BCRYPT_ROUNDS = 12


# =============================================================================
# Password Hashing
# =============================================================================

def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password
        rounds: bcrypt cost factor

    Returns:
        Hashed password string
    """
    # bcrypt has a 72-byte limit, truncate if necessary
    password_bytes = password.encode('utf-8')[:72]
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Returns:
        True if password matches, False otherwise (including malformed hashes)
    """
    try:
        password_bytes = plain_password.encode('utf-8')[:72]
        hashed_bytes = hashed_password.encode('utf-8')
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError as e:
        logger.warning("Password verification failed", error=str(e))
        return False


# =============================================================================
# Session Management (In-Memory)
# =============================================================================

SESSION_EXPIRE_HOURS = 24
SESSION_ID_LENGTH = 64  # 256 bits of entropy


@dataclass(frozen=True)
class AuthIdentity:
    """The authenticated principal delivered to auth-state listeners."""
    user_id: str
    email: str


@dataclass
class AuthSession:
    session_id: str
    identity: AuthIdentity
    created_at: datetime
    expires_at: datetime

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > self.expires_at


AuthStateListener = Callable[[Optional[AuthIdentity]], None]


class SessionManager:
    """
    In-memory session store plus auth-state observers.

    Listeners receive the identity on sign-in and None on sign-out.
    """

    def __init__(self, expire_hours: int = SESSION_EXPIRE_HOURS):
        self.expire_hours = expire_hours
        self._sessions: dict[str, AuthSession] = {}
        self._listeners: list[AuthStateListener] = []

    # --- observers -----------------------------------------------------------

    def subscribe(self, listener: AuthStateListener) -> Callable[[], None]:
        """
        Register an auth-state listener.

        Returns:
            A callable that removes the listener (safe to call twice)
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, identity: Optional[AuthIdentity]) -> None:
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception as e:
                # A faulty listener must not break sign-in/sign-out
                logger.error("Auth state listener failed", error=str(e))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # --- sessions ------------------------------------------------------------

    def create_session(self, user_id: str, email: str) -> AuthSession:
        """
        Create a new session for a user (sign-in).

        Returns:
            AuthSession whose session_id goes in the cookie
        """
        now = utcnow()
        auth_session = AuthSession(
            session_id=secrets.token_urlsafe(SESSION_ID_LENGTH),
            identity=AuthIdentity(user_id=user_id, email=email),
            created_at=now,
            expires_at=now + timedelta(hours=self.expire_hours),
            )
        self._sessions[auth_session.session_id] = auth_session

        logger.info("Session created", user_id=user_id, session_id=auth_session.session_id[:8] + "...")
        self._notify(auth_session.identity)
        return auth_session

    def get_session(self, session_id: str) -> Optional[AuthSession]:
        """
        Get session if valid and not expired. Expired sessions are removed.
        """
        auth_session = self._sessions.get(session_id)

        if not auth_session:
            return None

        if auth_session.is_expired():
            self.delete_session(session_id)
            return None

        return auth_session

    def get_user_id(self, session_id: str) -> Optional[str]:
        """User ID from a valid session, None otherwise."""
        auth_session = self.get_session(session_id)
        return auth_session.user_id if auth_session else None

    def current_identity(self, session_id: Optional[str]) -> Optional[AuthIdentity]:
        """The "current user" query: identity behind a session id, if any."""
        if not session_id:
            return None
        auth_session = self.get_session(session_id)
        return auth_session.identity if auth_session else None

    def delete_session(self, session_id: str) -> bool:
        """
        Delete a session (sign-out).

        Returns:
            True if session was deleted, False if not found
        """
        auth_session = self._sessions.pop(session_id, None)
        if auth_session is None:
            return False
        logger.info("Session deleted", session_id=session_id[:8] + "...")
        self._notify(None)
        return True

    def delete_user_sessions(self, user_id: str) -> int:
        """
        Delete all sessions for a user.

        Returns:
            Number of sessions deleted
        """
        to_delete = [sid for sid, s in self._sessions.items() if s.user_id == user_id]

        for sid in to_delete:
            del self._sessions[sid]

        if to_delete:
            logger.info("User sessions deleted", user_id=user_id, count=len(to_delete))
            self._notify(None)

        return len(to_delete)

    def cleanup_expired_sessions(self) -> int:
        """
        Remove all expired sessions.

        Returns:
            Number of sessions cleaned up
        """
        now = utcnow()
        to_delete = [sid for sid, s in self._sessions.items() if s.is_expired(now)]

        for sid in to_delete:
            del self._sessions[sid]

        if to_delete:
            logger.info("Expired sessions cleaned up", count=len(to_delete))

        return len(to_delete)

    def get_active_session_count(self) -> int:
        """Get count of stored sessions."""
        return len(self._sessions)

    def clear(self) -> None:
        """Drop every session and listener (end of the manager's lifecycle)."""
        self._sessions.clear()
        self._listeners.clear()
