"""
Encryption Key Providers
========================

A key provider supplies the vault's single 32-byte key. The contract is the
same for every medium: load (or, where the medium allows it, generate) the key
once per process lifetime, and never rotate it automatically.

Providers:
    FileKeyProvider        - key file in the data directory, created 0600 on
                             first activation
    EnvironmentKeyProvider - base64 key injected by a secret manager through an
                             environment variable; never generates
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import platform
import secrets
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from s3explorer.core.errors import StartupError
from s3explorer.security.constants import KEY_FILE_MODE, KEY_LENGTH_BYTES

logger = logging.getLogger(__name__)


class KeyProvider(ABC):
    """Source of the vault encryption key."""

    @abstractmethod
    def load_or_create(self) -> bytes:
        """
        Return the 32-byte key.

        Raises:
            StartupError: If the key cannot be loaded or created
        """


class FileKeyProvider(KeyProvider):
    """
    Key persisted as raw bytes in a file readable only by its owner.

    The first activation writes the key to a private staging file in the same
    directory and hard-links it into place. The link fails if the key already
    exists, so two processes starting at once agree on one key, and a failed
    write never leaves a truncated key behind.
    """

    __slots__ = ("_path",)

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def __repr__(self) -> str:
        return f"FileKeyProvider(path={str(self._path)!r})"

    def load_or_create(self) -> bytes:
        if self._path.exists():
            return self._read()

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, staging = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=self._path.parent)
        except OSError as exc:
            raise StartupError(f"Cannot write encryption key to {self._path}: {exc}") from exc

        key = secrets.token_bytes(KEY_LENGTH_BYTES)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(key)
                handle.flush()
                os.fsync(handle.fileno())

            if platform.system().lower() != "windows":
                os.chmod(staging, KEY_FILE_MODE)

            # Publishing by hard link never exposes a partially written key
            try:
                os.link(staging, self._path)
            except FileExistsError:
                return self._read()
        except OSError as exc:
            raise StartupError(f"Cannot write encryption key to {self._path}: {exc}") from exc
        finally:
            Path(staging).unlink(missing_ok=True)

        logger.info("Generated new encryption key at %s", self._path)
        return key

    def _read(self) -> bytes:
        try:
            key = self._path.read_bytes()
        except OSError as exc:
            raise StartupError(f"Cannot read encryption key {self._path}: {exc}") from exc

        if len(key) != KEY_LENGTH_BYTES:
            raise StartupError(
                f"Encryption key {self._path} must be exactly {KEY_LENGTH_BYTES} bytes"
            )

        if platform.system().lower() != "windows" and self._path.stat().st_mode & 0o077:
            logger.warning("Encryption key %s is accessible by group or others", self._path)

        return key


class EnvironmentKeyProvider(KeyProvider):
    """Base64-encoded key from an environment variable."""

    __slots__ = ("_variable", "_environ")

    def __init__(self, variable: str = "S3EXPLORER_ENCRYPTION_KEY", environ: Optional[dict[str, str]] = None) -> None:
        self._variable = variable
        self._environ = environ

    def __repr__(self) -> str:
        return f"EnvironmentKeyProvider(variable={self._variable!r})"

    def load_or_create(self) -> bytes:
        env = os.environ if self._environ is None else self._environ
        encoded = env.get(self._variable)
        if not encoded:
            raise StartupError(f"{self._variable} is not set")

        try:
            key = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise StartupError(f"{self._variable} is not valid base64") from exc

        if len(key) != KEY_LENGTH_BYTES:
            raise StartupError(f"{self._variable} must decode to exactly {KEY_LENGTH_BYTES} bytes")

        return key
