"""
S3 Explorer Authentication Module
=================================

Provides authentication of the single administrative password with:
- Argon2id password hashing
- Per-IP login rate limiting with temporary lockout
- Session management with expiration

Security Properties:
- Memory-hard password hashing on a bounded worker pool
- Constant-time verification
- Secure session tokens, stored only as hashes
"""

from s3explorer.core.auth.argon2_auth import PasswordVerifier, StrengthResult
from s3explorer.core.auth.login import LoginService
from s3explorer.core.auth.rate_limiter import (
    LoginRateLimiter,
    RateLimitDecision,
    RateLimitRecord,
)
from s3explorer.core.auth.session_control import Session, SessionManager

__all__ = [
    "PasswordVerifier",
    "StrengthResult",
    "LoginService",
    "LoginRateLimiter",
    "RateLimitDecision",
    "RateLimitRecord",
    "SessionManager",
    "Session",
]
