"""
Credential Vault
================

The only component that can decrypt stored storage credentials.

The key is obtained from a KeyProvider exactly once, when the vault is
constructed during startup, and is shared read-only afterwards.

Packed format (the on-disk contract of the connection registry)::

    {"encrypted": "<hex>", "iv": "<hex>", "tag": "<hex>"}
"""

from __future__ import annotations

import json
from typing import Any

from s3explorer.core.crypto.aes_gcm import AesGcmCipher, EncryptedSecret
from s3explorer.core.crypto.key_provider import KeyProvider
from s3explorer.core.errors import IntegrityError, StartupError

_PACKED_FIELDS = ("encrypted", "iv", "tag")


class CredentialVault:
    """
    Symmetric authenticated encryption for secrets at rest.

    Usage:
        vault = CredentialVault(FileKeyProvider(config.paths.key_file))
        packed = vault.encrypt_and_pack("AKIA...")
        secret_key = vault.unpack_and_decrypt(packed)
    """

    __slots__ = ("_cipher",)

    def __init__(self, key_provider: KeyProvider) -> None:
        """
        Raises:
            StartupError: If the provider cannot supply a valid key
        """
        key = key_provider.load_or_create()
        try:
            self._cipher = AesGcmCipher(key)
        except ValueError as exc:
            raise StartupError(str(exc)) from exc

    def __repr__(self) -> str:
        return "CredentialVault()"

    def encrypt(self, plaintext: str) -> EncryptedSecret:
        """Encrypt a UTF-8 string under a fresh nonce."""
        return self._cipher.encrypt(plaintext.encode("utf-8"))

    def decrypt(self, secret: EncryptedSecret) -> str:
        """
        Raises:
            IntegrityError: If the tag does not verify (tamper or wrong key)
        """
        plaintext = self._cipher.decrypt(secret)
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise IntegrityError("Decrypted secret is not valid UTF-8") from None

    @staticmethod
    def pack(secret: EncryptedSecret) -> str:
        """Serialize an EncryptedSecret to a single storage string."""
        return json.dumps({
            "encrypted": secret.ciphertext.hex(),
            "iv": secret.iv.hex(),
            "tag": secret.tag.hex(),
        })

    @staticmethod
    def unpack(packed: str) -> EncryptedSecret:
        """
        Parse a packed string.

        Raises:
            IntegrityError: If the string is not a well-formed packed secret
        """
        try:
            data: Any = json.loads(packed)
        except (TypeError, ValueError):
            raise IntegrityError("Stored secret is not a packed EncryptedSecret") from None

        if not isinstance(data, dict) or not all(isinstance(data.get(f), str) for f in _PACKED_FIELDS):
            raise IntegrityError("Stored secret is missing encrypted, iv or tag")

        try:
            return EncryptedSecret(
                ciphertext=bytes.fromhex(data["encrypted"]),
                iv=bytes.fromhex(data["iv"]),
                tag=bytes.fromhex(data["tag"]),
            )
        except ValueError:
            raise IntegrityError("Stored secret contains invalid hex") from None

    def encrypt_and_pack(self, plaintext: str) -> str:
        return self.pack(self.encrypt(plaintext))

    def unpack_and_decrypt(self, packed: str) -> str:
        return self.decrypt(self.unpack(packed))
