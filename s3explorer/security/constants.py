"""
Security Constants
==================

Defines security-related constants used throughout the application.
These values should not be modified without careful security review.
Configurable counterparts live in ``s3explorer.core.config.SecurityConfig``;
the values here are their defaults.
"""

from typing import Final

# Password Requirements
MIN_PASSWORD_LENGTH: Final[int] = 12

# Argon2id (argon2-cffi defaults follow RFC 9106 / OWASP)
ARGON2_MEMORY_COST: Final[int] = 65536  # 64 MiB in KiB
ARGON2_MIN_MEMORY_COST: Final[int] = 19456  # OWASP minimum, 19 MiB
ARGON2_TIME_COST: Final[int] = 3
ARGON2_PARALLELISM: Final[int] = 4
ARGON2_HASH_LENGTH: Final[int] = 32
ARGON2_SALT_LENGTH: Final[int] = 16

# Encryption Settings
KEY_LENGTH_BYTES: Final[int] = 32  # 256 bits
IV_LENGTH_BYTES: Final[int] = 12  # 96 bits for GCM
MIN_IV_LENGTH_BYTES: Final[int] = 8
MAX_IV_LENGTH_BYTES: Final[int] = 128
TAG_LENGTH_BYTES: Final[int] = 16  # 128 bits
KEY_FILE_MODE: Final[int] = 0o600

# Login Rate Limiting
RATE_LIMIT_WINDOW_SECONDS: Final[int] = 15 * 60
MAX_LOGIN_ATTEMPTS: Final[int] = 10
LOCKOUT_DURATION_SECONDS: Final[int] = 30 * 60
RATE_LIMIT_RETENTION_SECONDS: Final[int] = 24 * 60 * 60

# Session Security
SESSION_TTL_SECONDS: Final[int] = 24 * 60 * 60  # 1 day
REMEMBER_ME_TTL_SECONDS: Final[int] = 7 * 24 * 60 * 60  # 7 days
SESSION_TOKEN_BYTES: Final[int] = 32
SESSION_COOKIE_NAME: Final[str] = "sid"

# Login Worker Pool
LOGIN_WORKERS: Final[int] = 4
LOGIN_QUEUE_LIMIT: Final[int] = 32

# Connection Registry
MAX_CONNECTIONS: Final[int] = 100
DEFAULT_REGION: Final[str] = "us-east-1"
