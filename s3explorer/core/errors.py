"""
Error Taxonomy
==============

Every failure the access-control core reports to a caller is one of the
exceptions below. Each carries a stable ``kind`` and the HTTP status the web
layer renders it with.

Recoverable (rendered as structured JSON):
    ValidationError, AuthError, RateLimitError, ConflictError,
    CapacityError, NotFoundError, ConnectionTestError, ServiceBusyError

Hard failures:
    IntegrityError - decryption or tamper failure, never replaced by a default
    StartupError   - the process must not begin serving
"""

from __future__ import annotations

from typing import Any, ClassVar


class ExplorerError(Exception):
    """Base class for all S3 Explorer errors."""

    kind: ClassVar[str] = "error"
    http_status: ClassVar[int] = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> dict[str, Any]:
        """Structured representation returned to API callers."""
        return {"error": self.message, "kind": self.kind}


class ValidationError(ExplorerError):
    """Malformed or missing input."""

    kind = "validation"
    http_status = 400


class AuthError(ExplorerError):
    """Bad credentials."""

    kind = "auth"
    http_status = 401


class RateLimitError(ExplorerError):
    """Too many login attempts from one source address."""

    kind = "rate_limited"
    http_status = 429

    def __init__(self, retry_after: int, message: str = "Too many login attempts") -> None:
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retryAfter"] = self.retry_after
        return data


class IntegrityError(ExplorerError):
    """Ciphertext failed authentication (tampered data or wrong key)."""

    kind = "integrity"
    http_status = 500


class ConflictError(ExplorerError):
    """A connection profile with the same name already exists."""

    kind = "conflict"
    http_status = 400


class CapacityError(ExplorerError):
    """The connection registry is full."""

    kind = "capacity"
    http_status = 400


class NotFoundError(ExplorerError):
    """Unknown connection profile id."""

    kind = "not_found"
    http_status = 404


class ConnectionTestError(ExplorerError):
    """The object store rejected the supplied connection settings."""

    kind = "connection_failed"
    http_status = 400


class ServiceBusyError(ExplorerError):
    """The password verification pool is saturated."""

    kind = "busy"
    http_status = 503


class StartupError(ExplorerError):
    """Initialization failed; the service must not start."""

    kind = "startup"
    http_status = 500
