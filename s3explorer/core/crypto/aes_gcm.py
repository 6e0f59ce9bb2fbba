"""
AES-256-GCM Authenticated Encryption
====================================

Thin AEAD layer over ``cryptography``'s AESGCM for secrets at rest.

Security Properties:
    - 256-bit key, supplied by the vault (never generated here per call)
    - 96-bit random nonce per encryption (NIST SP 800-38D)
    - 128-bit authentication tag, kept separately from the ciphertext
    - Integrity is verified before any plaintext is released

WARNING:
    - Never reuse (key, nonce) pairs
    - InvalidTag means tampering or a wrong key; never swallow it
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from s3explorer.core.errors import IntegrityError
from s3explorer.security.constants import (
    IV_LENGTH_BYTES,
    KEY_LENGTH_BYTES,
    MAX_IV_LENGTH_BYTES,
    MIN_IV_LENGTH_BYTES,
    TAG_LENGTH_BYTES,
)

AES_KEY_SIZE: Final[int] = KEY_LENGTH_BYTES
AES_NONCE_SIZE: Final[int] = IV_LENGTH_BYTES
AES_TAG_SIZE: Final[int] = TAG_LENGTH_BYTES


@dataclass(frozen=True, slots=True)
class EncryptedSecret:
    """
    Immutable result of AES-GCM encryption.

    Attributes:
        ciphertext: Encrypted bytes, without the tag
        iv: Nonce used for this encryption
        tag: 16-byte authentication tag
    """

    ciphertext: bytes
    iv: bytes
    tag: bytes

    def __repr__(self) -> str:
        """Safe representation without exposing ciphertext."""
        return f"EncryptedSecret(ciphertext_len={len(self.ciphertext)}, iv_len={len(self.iv)})"


class AesGcmCipher:
    """
    AES-256-GCM bound to a single key.

    Usage:
        cipher = AesGcmCipher(key)
        secret = cipher.encrypt(b"value")
        assert cipher.decrypt(secret) == b"value"
    """

    __slots__ = ("_aesgcm",)

    def __init__(self, key: bytes) -> None:
        """
        Args:
            key: Exactly 32 bytes

        Raises:
            ValueError: If the key has the wrong size
        """
        if len(key) != AES_KEY_SIZE:
            raise ValueError(f"Key must be exactly {AES_KEY_SIZE} bytes")
        self._aesgcm = AESGCM(key)

    def __repr__(self) -> str:
        return "AesGcmCipher()"

    @staticmethod
    def generate_nonce() -> bytes:
        """
        Generate a cryptographically secure random nonce.

        96-bit random nonces have negligible collision probability for
        up to 2^32 encryptions under the same key.
        """
        return secrets.token_bytes(AES_NONCE_SIZE)

    def encrypt(self, plaintext: bytes) -> EncryptedSecret:
        """
        Encrypt plaintext (may be empty) under a fresh nonce.

        Args:
            plaintext: Data to encrypt
        """
        nonce = self.generate_nonce()
        sealed = self._aesgcm.encrypt(nonce, plaintext, None)

        return EncryptedSecret(
            ciphertext=sealed[:-AES_TAG_SIZE],
            iv=nonce,
            tag=sealed[-AES_TAG_SIZE:],
        )

    def decrypt(self, secret: EncryptedSecret) -> bytes:
        """
        Verify the tag and decrypt.

        Args:
            secret: Ciphertext, nonce and tag

        Returns:
            Decrypted plaintext bytes

        Raises:
            IntegrityError: If the tag does not verify or the parameters are malformed
        """
        if not MIN_IV_LENGTH_BYTES <= len(secret.iv) <= MAX_IV_LENGTH_BYTES:
            raise IntegrityError("Invalid nonce length")
        if len(secret.tag) != AES_TAG_SIZE:
            raise IntegrityError("Invalid authentication tag length")

        try:
            return self._aesgcm.decrypt(secret.iv, secret.ciphertext + secret.tag, None)
        except InvalidTag:
            raise IntegrityError("Authentication failed: data was tampered with or the key does not match") from None
