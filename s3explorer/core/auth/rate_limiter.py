"""
Login Rate Limiting
===================

Brute-force protection for the login endpoint, keyed by source IP and kept
in the durable store so limits survive restarts and are shared by every
instance.

State per IP::

    Clean --failure--> Accumulating --MAX attempts--> Blocked
      ^                     |                            |
      +-- window expiry / successful login --------------+

The window is measured from the first failure (sliding from that point, not
a calendar interval). Every write is a single conditional statement, and
calls for the same IP are additionally serialized inside the process.
"""

from __future__ import annotations

import logging
import math
import threading
import time
import zlib
from dataclasses import dataclass
from typing import Callable, Final, Optional

from s3explorer.db.database import Database
from s3explorer.security.constants import (
    LOCKOUT_DURATION_SECONDS,
    MAX_LOGIN_ATTEMPTS,
    RATE_LIMIT_RETENTION_SECONDS,
    RATE_LIMIT_WINDOW_SECONDS,
)

logger = logging.getLogger(__name__)

_LOCK_STRIPES: Final[int] = 64


@dataclass(frozen=True, slots=True)
class RateLimitRecord:
    """Persisted attempt accounting for one source IP (times in epoch ms)."""

    ip: str
    attempts: int
    window_start: int
    blocked_until: Optional[int] = None


@dataclass(frozen=True, slots=True)
class RateLimitDecision:
    """Result of ``LoginRateLimiter.check``."""

    allowed: bool
    retry_after: Optional[int] = None


class LoginRateLimiter:
    """
    Per-IP sliding-window attempt cap with temporary lockout.

    Usage:
        limiter = LoginRateLimiter(db)
        decision = limiter.check(ip)
        if not decision.allowed:
            ...  # 429 with decision.retry_after
        limiter.record_failure(ip)   # on a bad password
        limiter.record_success(ip)   # on a good one
    """

    _SCHEMA: Final[dict[str, str]] = {
        "sqlite": """
        CREATE TABLE IF NOT EXISTS rate_limits (
            ip TEXT PRIMARY KEY,
            attempts INTEGER NOT NULL DEFAULT 0,
            window_start INTEGER NOT NULL,
            blocked_until INTEGER
        );
        """,
        "postgresql": """
        CREATE TABLE IF NOT EXISTS rate_limits (
            ip TEXT PRIMARY KEY,
            attempts INTEGER NOT NULL DEFAULT 0,
            window_start BIGINT NOT NULL,
            blocked_until BIGINT
        );
        """,
    }

    _RECORD_FAILURE: Final[str] = """
        INSERT INTO rate_limits (ip, attempts, window_start, blocked_until)
        VALUES (:ip, 1, :now, NULL)
        ON CONFLICT (ip) DO UPDATE SET
            attempts = CASE WHEN :now - rate_limits.window_start > :window
                            THEN 1 ELSE rate_limits.attempts + 1 END,
            blocked_until = CASE WHEN :now - rate_limits.window_start > :window
                                 THEN NULL ELSE rate_limits.blocked_until END,
            window_start = CASE WHEN :now - rate_limits.window_start > :window
                                THEN :now ELSE rate_limits.window_start END
    """

    _BLOCK: Final[str] = """
        UPDATE rate_limits SET blocked_until = :blocked_until
        WHERE ip = :ip
          AND attempts >= :max_attempts
          AND :now - window_start <= :window
          AND (blocked_until IS NULL OR blocked_until <= :now)
    """

    def __init__(
        self,
        db: Database,
        max_attempts: int = MAX_LOGIN_ATTEMPTS,
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        block_seconds: int = LOCKOUT_DURATION_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            db: Durable store holding the ``rate_limits`` table
            max_attempts: Failures allowed inside one window
            window_seconds: Accounting window measured from the first failure
            block_seconds: Lockout length once the cap is reached
            clock: Returns the current time in epoch seconds
        """
        self._db = db
        self.max_attempts = max_attempts
        self._window_ms = window_seconds * 1000
        self._block_ms = block_seconds * 1000
        self._clock = clock
        self._locks = tuple(threading.Lock() for _ in range(_LOCK_STRIPES))
        self.initialize_db()

    def initialize_db(self) -> None:
        """Create the ``rate_limits`` table if it does not exist."""
        self._db.executescript(self._SCHEMA[self._db.dialect])

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _lock_for(self, ip: str) -> threading.Lock:
        return self._locks[zlib.crc32(ip.encode("utf-8")) % _LOCK_STRIPES]

    def get_record(self, ip: str) -> Optional[RateLimitRecord]:
        """Return the stored record for an IP, if any."""
        row = self._db.fetchone(
            "SELECT ip, attempts, window_start, blocked_until FROM rate_limits WHERE ip = :ip",
            {"ip": ip},
        )
        if row is None:
            return None
        return RateLimitRecord(
            ip=row["ip"],
            attempts=row["attempts"],
            window_start=row["window_start"],
            blocked_until=row["blocked_until"],
        )

    def check(self, ip: str) -> RateLimitDecision:
        """
        Decide whether a login attempt from ``ip`` may proceed.

        Returns:
            RateLimitDecision; ``retry_after`` is in whole seconds when denied
        """
        with self._lock_for(ip):
            return self._check(ip, retry=True)

    def _check(self, ip: str, retry: bool) -> RateLimitDecision:
        now = self._now_ms()
        record = self.get_record(ip)

        if record is None:
            return RateLimitDecision(allowed=True)

        if record.blocked_until is not None and record.blocked_until > now:
            return RateLimitDecision(
                allowed=False,
                retry_after=math.ceil((record.blocked_until - now) / 1000),
            )

        if now - record.window_start > self._window_ms:
            # Stale: erase unless another instance already restarted the window
            self._db.execute(
                "DELETE FROM rate_limits WHERE ip = :ip AND window_start = :window_start",
                {"ip": ip, "window_start": record.window_start},
            )
            return RateLimitDecision(allowed=True)

        if record.attempts >= self.max_attempts:
            blocked_until = now + self._block_ms
            updated = self._db.execute(self._BLOCK, {
                "ip": ip,
                "blocked_until": blocked_until,
                "max_attempts": self.max_attempts,
                "now": now,
                "window": self._window_ms,
            })
            if updated or not retry:
                logger.warning("Login blocked for %s after %d failed attempts", ip, record.attempts)
                return RateLimitDecision(allowed=False, retry_after=math.ceil(self._block_ms / 1000))
            # The row changed underneath us; decide again on fresh state
            return self._check(ip, retry=False)

        return RateLimitDecision(allowed=True)

    def record_failure(self, ip: str) -> None:
        """Count a failed attempt, starting a new window if the old one expired."""
        with self._lock_for(ip):
            self._db.execute(self._RECORD_FAILURE, {
                "ip": ip,
                "now": self._now_ms(),
                "window": self._window_ms,
            })

    def record_success(self, ip: str) -> None:
        """Forget all accounting for ``ip``."""
        with self._lock_for(ip):
            self._db.execute("DELETE FROM rate_limits WHERE ip = :ip", {"ip": ip})

    def purge_stale(self) -> int:
        """
        Delete records that no longer influence any decision: window expired
        and no lockout in force.

        Returns:
            Number of records removed
        """
        now = self._now_ms()
        removed = self._db.execute(
            """
            DELETE FROM rate_limits
            WHERE window_start < :window_cutoff
              AND (blocked_until IS NULL OR blocked_until <= :now)
            """,
            {"window_cutoff": now - max(self._window_ms, RATE_LIMIT_RETENTION_SECONDS * 1000), "now": now},
        )
        if removed:
            logger.debug("Purged %d stale rate limit records", removed)
        return removed
