"""
Session Control
================

Cookie-bound sessions for the single administrative identity.

Security Features:
- Cryptographically random session tokens
- Only the SHA-256 hash of a token is stored (tokens never hit disk)
- Absolute expiry: one day, or seven days with "remember me"
- Expired sessions are treated as absent and cleaned up periodically
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Final, Optional

from s3explorer.db.database import Database
from s3explorer.security.constants import (
    REMEMBER_ME_TTL_SECONDS,
    SESSION_TOKEN_BYTES,
    SESSION_TTL_SECONDS,
)

logger = logging.getLogger(__name__)


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _to_text(moment: datetime) -> str:
    return moment.isoformat(timespec="microseconds")


@dataclass
class Session:
    """
    Server-side state of one authenticated client.

    The raw token is handed to the client once, at creation, and is not
    part of this object.
    """

    token_hash: str
    authenticated: bool
    login_time: datetime
    expires_at: datetime
    remember_me: bool = False

    def __repr__(self) -> str:
        """Safe representation without token hash."""
        return (
            f"Session(authenticated={self.authenticated}, "
            f"expires_at={self.expires_at.isoformat()})"
        )


class SessionManager:
    """
    Session management over the durable store.

    Usage:
        manager = SessionManager(db)

        # After a successful login
        token, session = manager.create(remember_me=False)

        # On each request
        session = manager.lookup(cookie_token)
        if session is not None and manager.validate(session):
            ...

        # Logout
        manager.destroy(cookie_token)
    """

    __slots__ = ("_db", "_ttl", "_remember_me_ttl", "_clock")

    _SCHEMA: Final[str] = """
    CREATE TABLE IF NOT EXISTS sessions (
        token_hash TEXT PRIMARY KEY,
        authenticated INTEGER NOT NULL DEFAULT 1,
        login_time TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        remember_me INTEGER NOT NULL DEFAULT 0
    );

    CREATE INDEX IF NOT EXISTS idx_sessions_expires ON sessions(expires_at);
    """

    def __init__(
        self,
        db: Database,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        remember_me_ttl_seconds: int = REMEMBER_ME_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            db: Durable store holding the ``sessions`` table
            ttl_seconds: Lifetime of an ordinary session
            remember_me_ttl_seconds: Lifetime when "remember me" was requested
            clock: Returns the current time in epoch seconds
        """
        self._db = db
        self._ttl = timedelta(seconds=ttl_seconds)
        self._remember_me_ttl = timedelta(seconds=remember_me_ttl_seconds)
        self._clock = clock
        self.initialize_db()

    def initialize_db(self) -> None:
        """Create the ``sessions`` table if it does not exist."""
        self._db.executescript(self._SCHEMA)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def ttl_for(self, remember_me: bool) -> timedelta:
        """Lifetime of a new session: the remember-me TTL or the default one."""
        return self._remember_me_ttl if remember_me else self._ttl

    def create(self, remember_me: bool = False) -> tuple[str, Session]:
        """
        Start a new authenticated session.

        Returns:
            Tuple of (raw token for the cookie, session)
        """
        token = secrets.token_urlsafe(SESSION_TOKEN_BYTES)
        now = self._now()
        session = Session(
            token_hash=_hash_token(token),
            authenticated=True,
            login_time=now,
            expires_at=now + self.ttl_for(remember_me),
            remember_me=remember_me,
        )

        self._db.execute(
            """
            INSERT INTO sessions (token_hash, authenticated, login_time, expires_at, remember_me)
            VALUES (:token_hash, 1, :login_time, :expires_at, :remember_me)
            """,
            {
                "token_hash": session.token_hash,
                "login_time": _to_text(session.login_time),
                "expires_at": _to_text(session.expires_at),
                "remember_me": 1 if remember_me else 0,
            },
        )
        return token, session

    def validate(self, session: Optional[Session]) -> bool:
        """A session is valid while it is authenticated and unexpired."""
        if session is None:
            return False
        return session.authenticated and self._now() < session.expires_at

    def lookup(self, token: Optional[str]) -> Optional[Session]:
        """Load the session for a cookie token; expired sessions count as absent."""
        if not token:
            return None

        token_hash = _hash_token(token)
        row = self._db.fetchone(
            "SELECT * FROM sessions WHERE token_hash = :token_hash",
            {"token_hash": token_hash},
        )
        if row is None:
            return None

        session = self._row_to_session(row)
        if not self.validate(session):
            self._db.execute(
                "DELETE FROM sessions WHERE token_hash = :token_hash",
                {"token_hash": token_hash},
            )
            return None

        return session

    def destroy(self, token: Optional[str]) -> bool:
        """
        Delete server-side session state.

        Returns:
            True if a session was removed
        """
        if not token:
            return False
        removed = self._db.execute(
            "DELETE FROM sessions WHERE token_hash = :token_hash",
            {"token_hash": _hash_token(token)},
        )
        return removed > 0

    @staticmethod
    def status(session: Optional[Session]) -> dict[str, Any]:
        """Report authentication state; ``loginTime`` is epoch milliseconds."""
        if session is None or not session.authenticated:
            return {"authenticated": False, "loginTime": None}
        return {
            "authenticated": True,
            "loginTime": int(session.login_time.timestamp() * 1000),
        }

    def cleanup_expired_sessions(self) -> int:
        """
        Remove expired sessions from the store.

        Returns:
            Number of sessions removed
        """
        removed = self._db.execute(
            "DELETE FROM sessions WHERE expires_at <= :now",
            {"now": _to_text(self._now())},
        )
        if removed:
            logger.debug("Removed %d expired sessions", removed)
        return removed

    @staticmethod
    def _row_to_session(row: dict[str, Any]) -> Session:
        return Session(
            token_hash=row["token_hash"],
            authenticated=bool(row["authenticated"]),
            login_time=datetime.fromisoformat(row["login_time"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
            remember_me=bool(row["remember_me"]),
        )
