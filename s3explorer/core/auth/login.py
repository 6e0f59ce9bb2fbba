"""
Login flow: rate limiting, password verification and session creation.

Argon2 verification is memory-hard by design, so it runs on a fixed pool of
worker threads with a bounded number of pending requests. A flood of login
attempts fails fast with ServiceBusyError instead of starving other traffic.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from s3explorer.core.auth.argon2_auth import PasswordVerifier
from s3explorer.core.auth.rate_limiter import LoginRateLimiter
from s3explorer.core.auth.session_control import Session, SessionManager
from s3explorer.core.errors import AuthError, RateLimitError, ServiceBusyError, ValidationError
from s3explorer.security.constants import LOGIN_QUEUE_LIMIT, LOGIN_WORKERS

logger = logging.getLogger(__name__)


class LoginService:
    """
    Usage:
        service = LoginService(verifier, password_hash, limiter, sessions)
        token, session = service.login(ip, password, remember_me=False)
    """

    def __init__(
        self,
        verifier: PasswordVerifier,
        password_hash: str,
        rate_limiter: LoginRateLimiter,
        sessions: SessionManager,
        workers: int = LOGIN_WORKERS,
        queue_limit: int = LOGIN_QUEUE_LIMIT,
    ) -> None:
        self._verifier = verifier
        self._password_hash = password_hash
        self._rate_limiter = rate_limiter
        self._sessions = sessions
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="argon2-verify")
        self._pending = threading.BoundedSemaphore(queue_limit)

    def __repr__(self) -> str:
        return "LoginService()"

    def login(self, ip: str, password: Optional[str], remember_me: bool = False) -> tuple[str, Session]:
        """
        Authenticate the administrative password for a client.

        Returns:
            Tuple of (raw session token, session)

        Raises:
            RateLimitError: The IP is blocked
            ValidationError: No password supplied
            AuthError: Wrong password
            ServiceBusyError: Too many verifications already pending
        """
        decision = self._rate_limiter.check(ip)
        if not decision.allowed:
            raise RateLimitError(retry_after=decision.retry_after or 1)

        if not password:
            self._rate_limiter.record_failure(ip)
            raise ValidationError("Password required")

        if not self._verify(password):
            self._rate_limiter.record_failure(ip)
            logger.warning("Failed login attempt from %s", ip)
            raise AuthError("Invalid password")

        self._rate_limiter.record_success(ip)
        token, session = self._sessions.create(remember_me=remember_me)
        logger.info("Successful login from %s", ip)
        return token, session

    def _verify(self, password: str) -> bool:
        if not self._pending.acquire(blocking=False):
            raise ServiceBusyError("Too many login attempts in progress, try again shortly")
        try:
            future = self._executor.submit(self._verifier.verify, self._password_hash, password)
            return future.result()
        finally:
            self._pending.release()

    def shutdown(self) -> None:
        """Stop the verification pool, waiting for in-flight work."""
        self._executor.shutdown(wait=True)
