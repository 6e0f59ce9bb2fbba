"""
S3 Explorer Cryptographic Core
==============================

Protects stored storage credentials with authenticated encryption.

Architecture:
    1. KeyProvider: loads or creates the single 32-byte key once per process
    2. AesGcmCipher: AES-256-GCM with a fresh nonce per encryption
    3. CredentialVault: string-level encrypt/decrypt and the packed storage format

Security Properties:
    - All encryption is authenticated (AEAD)
    - Tampering or a wrong key fails closed with IntegrityError
    - No automatic key rotation
"""

from s3explorer.core.crypto.aes_gcm import AesGcmCipher, EncryptedSecret
from s3explorer.core.crypto.key_provider import (
    EnvironmentKeyProvider,
    FileKeyProvider,
    KeyProvider,
)
from s3explorer.core.crypto.vault import CredentialVault

__all__ = [
    "AesGcmCipher",
    "EncryptedSecret",
    "KeyProvider",
    "FileKeyProvider",
    "EnvironmentKeyProvider",
    "CredentialVault",
]
