"""
Argon2id Password Verification
==============================

Hashes and verifies the single administrative password.

Security Properties:
- Memory-hard (resistant to GPU/ASIC attacks)
- Salt automatically managed by argon2-cffi
- Constant-time verification inside the library
- Complexity rules checked in a fixed order; the first failure wins

References:
- RFC 9106: Argon2 Memory-Hard Function
- OWASP Password Storage Cheat Sheet
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final, Optional

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from s3explorer.core.errors import StartupError
from s3explorer.security.constants import (
    ARGON2_HASH_LENGTH,
    ARGON2_MEMORY_COST,
    ARGON2_PARALLELISM,
    ARGON2_SALT_LENGTH,
    ARGON2_TIME_COST,
    MIN_PASSWORD_LENGTH,
)

# Checked in this order; only the first failing rule is reported
_STRENGTH_RULES: Final[tuple[tuple[str, Optional[re.Pattern[str]]], ...]] = (
    (f"Password must be at least {MIN_PASSWORD_LENGTH} characters", None),
    ("Password must contain lowercase letter", re.compile(r"[a-z]")),
    ("Password must contain uppercase letter", re.compile(r"[A-Z]")),
    ("Password must contain number", re.compile(r"[0-9]")),
    ("Password must contain special character", re.compile(r"[^a-zA-Z0-9]")),
)


@dataclass(frozen=True, slots=True)
class StrengthResult:
    """Outcome of a complexity check."""

    ok: bool
    reason: Optional[str] = None


class PasswordVerifier:
    """
    Argon2id password hasher with secure defaults.

    Usage:
        verifier = PasswordVerifier()
        digest = verifier.hash("Str0ngP@ssword!")
        verifier.verify(digest, candidate)
    """

    __slots__ = ("_hasher",)

    def __init__(
        self,
        memory_cost: int = ARGON2_MEMORY_COST,
        time_cost: int = ARGON2_TIME_COST,
        parallelism: int = ARGON2_PARALLELISM,
    ) -> None:
        """
        Args:
            memory_cost: Memory usage in KiB
            time_cost: Number of iterations
            parallelism: Degree of parallelism
        """
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=ARGON2_HASH_LENGTH,
            salt_len=ARGON2_SALT_LENGTH,
            type=Type.ID,
        )

    @property
    def parameters(self) -> dict[str, int]:
        """Get current hashing parameters."""
        return {
            "memory_cost": self._hasher.memory_cost,
            "time_cost": self._hasher.time_cost,
            "parallelism": self._hasher.parallelism,
        }

    @staticmethod
    def check_strength(password: str) -> StrengthResult:
        """
        Evaluate minimum length, then lowercase, uppercase, digit and special
        character, returning the first rule that fails.
        """
        for reason, pattern in _STRENGTH_RULES:
            if pattern is None:
                if len(password) < MIN_PASSWORD_LENGTH:
                    return StrengthResult(ok=False, reason=reason)
            elif not pattern.search(password):
                return StrengthResult(ok=False, reason=reason)

        return StrengthResult(ok=True)

    def hash(self, password: str) -> str:
        """
        Hash a password with a random salt.

        Returns:
            Encoded ``$argon2id$...`` string
        """
        if not password:
            raise ValueError("Password cannot be empty")
        return self._hasher.hash(password)

    def verify(self, digest: str, candidate: str) -> bool:
        """
        Compare a candidate with a digest.

        Returns:
            True if the candidate matches, False on mismatch or malformed input
        """
        if not digest or not candidate:
            return False

        try:
            return self._hasher.verify(digest, candidate)
        except (VerifyMismatchError, VerificationError, InvalidHashError):
            return False

    def initialize_admin_password(self, password: Optional[str]) -> str:
        """
        Validate and hash the configured administrative password.

        Runs once during startup; the returned digest is cached by the
        login service for the process lifetime.

        Raises:
            StartupError: If the password is missing or too weak
        """
        if not password:
            raise StartupError("APP_PASSWORD environment variable is required")

        result = self.check_strength(password)
        if not result.ok:
            raise StartupError(f"APP_PASSWORD rejected: {result.reason}")

        return self.hash(password)
