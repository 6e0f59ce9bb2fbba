"""
Background maintenance: periodic cleanup of expired sessions and stale
rate-limit records.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from s3explorer.core.auth.rate_limiter import LoginRateLimiter
from s3explorer.core.auth.session_control import SessionManager

logger = logging.getLogger(__name__)


class MaintenanceWorker:
    """
    Daemon thread running ``run_once`` every ``interval`` seconds.

    Usage:
        worker = MaintenanceWorker(sessions, limiter, interval=3600)
        worker.start()
        ...
        worker.stop()
    """

    def __init__(self, sessions: SessionManager, rate_limiter: LoginRateLimiter, interval: float = 3600) -> None:
        self._sessions = sessions
        self._rate_limiter = rate_limiter
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the maintenance thread."""
        if self.running:
            return

        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            daemon=True,
            name="S3Explorer-Maintenance",
        )
        self._thread.start()
        logger.info("Maintenance worker started (interval %ss)", self._interval)

    def stop(self) -> None:
        """Stop the maintenance thread."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    def run_once(self) -> tuple[int, int]:
        """
        Returns:
            Tuple of (sessions removed, rate-limit records removed)
        """
        return self._sessions.cleanup_expired_sessions(), self._rate_limiter.purge_stale()

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                sessions_removed, records_removed = self.run_once()
            except Exception:
                logger.exception("Maintenance run failed")
                continue
            if sessions_removed or records_removed:
                logger.info(
                    "Maintenance removed %d sessions and %d rate limit records",
                    sessions_removed,
                    records_removed,
                )
