"""
Connection Registry
===================

Named connection profiles for S3-compatible services.

Invariants:
- Profile names are unique
- At most one profile is active at any time
- No more than ``MAX_CONNECTIONS`` profiles exist
- Access and secret keys are stored only as packed EncryptedSecrets and
  never leave this module except as a decrypted ``ConnectionConfig``

Connectivity is probed on every save, but a failed probe never blocks
persistence: the caller learns the outcome through ``SaveResult.verified``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Final, Optional

from s3explorer.connections.object_store import ConnectionConfig, ObjectStore
from s3explorer.core.crypto.vault import CredentialVault
from s3explorer.core.errors import (
    CapacityError,
    ConflictError,
    ConnectionTestError,
    NotFoundError,
)
from s3explorer.db.database import Database
from s3explorer.security.constants import DEFAULT_REGION, MAX_CONNECTIONS
from s3explorer.utils.validators import (
    validate_bool,
    validate_endpoint,
    validate_region,
    validate_string_safe,
)

logger = logging.getLogger(__name__)


@dataclass
class ConnectionProfile:
    """A stored profile. Credential fields hold packed ciphertext only."""

    id: int
    name: str
    endpoint: str
    region: str
    force_path_style: bool
    access_key_enc: str
    secret_key_enc: str
    is_active: bool
    created_at: str

    def __repr__(self) -> str:
        """Safe representation without credentials."""
        return f"ConnectionProfile(id={self.id}, name={self.name!r}, is_active={self.is_active})"

    def to_public_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "endpoint": self.endpoint,
            "region": self.region,
            "forcePathStyle": self.force_path_style,
            "isActive": self.is_active,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True, slots=True)
class SaveResult:
    """Outcome of create/update. ``verified`` reports the connectivity probe."""

    id: int
    verified: bool


class ConnectionStore:
    """
    Persistence and lifecycle of connection profiles.

    Usage:
        store = ConnectionStore(db, vault, Boto3ObjectStore())
        result = store.create("minio", "http://localhost:9000", "AKIA...", "secret")
        store.activate(result.id)
        config = store.active_config()
    """

    _SCHEMA: Final[dict[str, str]] = {
        "sqlite": """
        CREATE TABLE IF NOT EXISTS connections (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            endpoint TEXT NOT NULL,
            region TEXT NOT NULL DEFAULT 'us-east-1',
            access_key_enc TEXT NOT NULL,
            secret_key_enc TEXT NOT NULL,
            force_path_style INTEGER NOT NULL DEFAULT 1,
            is_active INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );
        """,
        "postgresql": """
        CREATE TABLE IF NOT EXISTS connections (
            id SERIAL PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            endpoint TEXT NOT NULL,
            region TEXT NOT NULL DEFAULT 'us-east-1',
            access_key_enc TEXT NOT NULL,
            secret_key_enc TEXT NOT NULL,
            force_path_style INTEGER NOT NULL DEFAULT 1,
            is_active INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL
        );
        """,
    }

    # Capacity guard and insert in one statement, run under a table lock
    _INSERT: Final[str] = """
        INSERT INTO connections
            (name, endpoint, region, access_key_enc, secret_key_enc, force_path_style, is_active, created_at)
        SELECT :name, :endpoint, :region, :access_key_enc, :secret_key_enc, :force_path_style, 0, :created_at
        WHERE (SELECT COUNT(*) FROM connections) < :max_connections
    """

    # Exactly the target ends up active; a missing target changes nothing.
    # Runs under a table lock so concurrent activations cannot both win.
    _ACTIVATE: Final[str] = """
        UPDATE connections
        SET is_active = CASE WHEN id = :id THEN 1 ELSE 0 END
        WHERE (is_active = 1 OR id = :id)
          AND EXISTS (SELECT 1 FROM connections WHERE id = :id)
    """

    def __init__(
        self,
        db: Database,
        vault: CredentialVault,
        object_store: ObjectStore,
        max_connections: int = MAX_CONNECTIONS,
    ) -> None:
        self._db = db
        self._vault = vault
        self._object_store = object_store
        self.max_connections = max_connections
        self.initialize_db()

    def initialize_db(self) -> None:
        """Create the ``connections`` table if it does not exist."""
        self._db.executescript(self._SCHEMA[self._db.dialect])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def count(self) -> int:
        return int(self._db.scalar("SELECT COUNT(*) AS n FROM connections") or 0)

    def get(self, profile_id: int) -> Optional[ConnectionProfile]:
        row = self._db.fetchone("SELECT * FROM connections WHERE id = :id", {"id": profile_id})
        return self._row_to_profile(row) if row else None

    def list_profiles(self) -> list[dict[str, Any]]:
        """All profiles, sanitized and ordered by name."""
        rows = self._db.fetchall("SELECT * FROM connections ORDER BY name")
        return [self._row_to_profile(row).to_public_dict() for row in rows]

    def _active_profile(self) -> Optional[ConnectionProfile]:
        row = self._db.fetchone("SELECT * FROM connections WHERE is_active = 1")
        return self._row_to_profile(row) if row else None

    def get_active(self) -> Optional[dict[str, Any]]:
        """Sanitized view of the active profile, if any."""
        profile = self._active_profile()
        if profile is None:
            return None
        public = profile.to_public_dict()
        return {key: public[key] for key in ("id", "name", "endpoint", "region", "forcePathStyle")}

    def active_config(self) -> Optional[ConnectionConfig]:
        """
        Decrypted parameters of the active profile.

        Raises:
            IntegrityError: If stored credentials fail authentication
        """
        profile = self._active_profile()
        if profile is None:
            return None
        return self._decrypt_config(profile)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(
        self,
        name: Any,
        endpoint: Any,
        access_key: Any,
        secret_key: Any,
        region: Any = None,
        force_path_style: Any = None,
    ) -> SaveResult:
        """
        Store a new profile.

        Raises:
            ValidationError: Missing or malformed fields
            CapacityError: The registry already holds ``max_connections`` profiles
            ConflictError: The name is taken
        """
        name = self._validate_name(name)
        config = ConnectionConfig(
            endpoint=validate_endpoint(endpoint),
            access_key=validate_string_safe(access_key, max_length=256, field_name="accessKey"),
            secret_key=validate_string_safe(secret_key, max_length=256, field_name="secretKey"),
            region=validate_region(region) if region else DEFAULT_REGION,
            force_path_style=validate_bool(force_path_style, "forcePathStyle", default=True),
        )

        if self.count() >= self.max_connections:
            raise CapacityError(self._capacity_message())

        verified = self._probe(name, config)

        try:
            new_id = self._db.insert(self._INSERT, {
                **self._encrypted_columns(name, config),
                "created_at": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
                "max_connections": self.max_connections,
            }, lock="connections")
        except self._db.unique_violation as exc:
            raise ConflictError("Connection name already exists") from exc

        if new_id is None:
            raise CapacityError(self._capacity_message())

        logger.info("Created connection profile %d (%s)", new_id, name)
        return SaveResult(id=new_id, verified=verified)

    def update(
        self,
        profile_id: int,
        name: Any = None,
        endpoint: Any = None,
        access_key: Any = None,
        secret_key: Any = None,
        region: Any = None,
        force_path_style: Any = None,
    ) -> SaveResult:
        """
        Partially update a profile. Omitted (None or empty) fields keep their
        stored values; omitted secrets are decrypted from storage.

        Raises:
            NotFoundError: Unknown id
            ValidationError: Malformed fields
            ConflictError: The new name is taken by another profile
            IntegrityError: Stored secrets fail authentication
        """
        existing = self.get(profile_id)
        if existing is None:
            raise NotFoundError("Connection not found")

        new_name = (
            self._validate_name(name)
            if name else existing.name
        )
        config = ConnectionConfig(
            endpoint=validate_endpoint(endpoint) if endpoint else existing.endpoint,
            access_key=(
                validate_string_safe(access_key, max_length=256, field_name="accessKey")
                if access_key else self._vault.unpack_and_decrypt(existing.access_key_enc)
            ),
            secret_key=(
                validate_string_safe(secret_key, max_length=256, field_name="secretKey")
                if secret_key else self._vault.unpack_and_decrypt(existing.secret_key_enc)
            ),
            region=validate_region(region) if region else existing.region,
            force_path_style=validate_bool(
                force_path_style, "forcePathStyle", default=existing.force_path_style
            ),
        )

        verified = self._probe(new_name, config)

        try:
            updated = self._db.execute(
                """
                UPDATE connections
                SET name = :name, endpoint = :endpoint, region = :region,
                    access_key_enc = :access_key_enc, secret_key_enc = :secret_key_enc,
                    force_path_style = :force_path_style
                WHERE id = :id
                """,
                {**self._encrypted_columns(new_name, config), "id": profile_id},
            )
        except self._db.unique_violation as exc:
            raise ConflictError("Connection name already exists") from exc

        if not updated:
            raise NotFoundError("Connection not found")

        logger.info("Updated connection profile %d", profile_id)
        return SaveResult(id=profile_id, verified=verified)

    def delete(self, profile_id: int) -> None:
        """
        Raises:
            NotFoundError: Unknown id
        """
        removed = self._db.execute("DELETE FROM connections WHERE id = :id", {"id": profile_id})
        if not removed:
            raise NotFoundError("Connection not found")
        logger.info("Deleted connection profile %d", profile_id)

    def activate(self, profile_id: int) -> None:
        """
        Make ``profile_id`` the single active profile.

        Raises:
            NotFoundError: Unknown id
        """
        if not self._db.execute(self._ACTIVATE, {"id": profile_id}, lock="connections"):
            raise NotFoundError("Connection not found")
        logger.info("Activated connection profile %d", profile_id)

    def deactivate(self) -> None:
        """Clear the active profile."""
        self._db.execute("UPDATE connections SET is_active = 0 WHERE is_active = 1")

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------

    def test(
        self,
        endpoint: Any,
        access_key: Any,
        secret_key: Any,
        region: Any = None,
        force_path_style: Any = None,
    ) -> int:
        """
        Probe credentials without storing anything.

        Returns:
            Number of buckets visible

        Raises:
            ValidationError: Missing or malformed fields
            ConnectionTestError: The probe failed
        """
        config = ConnectionConfig(
            endpoint=validate_endpoint(endpoint),
            access_key=validate_string_safe(access_key, max_length=256, field_name="accessKey"),
            secret_key=validate_string_safe(secret_key, max_length=256, field_name="secretKey"),
            region=validate_region(region) if region else DEFAULT_REGION,
            force_path_style=validate_bool(force_path_style, "forcePathStyle", default=True),
        )
        return len(self._object_store.list_buckets(config))

    def _probe(self, name: str, config: ConnectionConfig) -> bool:
        try:
            self._object_store.list_buckets(config)
        except ConnectionTestError as exc:
            logger.warning("Connection test failed for %r: %s", name, exc.message)
            return False
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_name(name: Any) -> str:
        if isinstance(name, str):
            name = name.strip()
        return validate_string_safe(name, max_length=100, field_name="name")

    def _capacity_message(self) -> str:
        return f"Maximum connections limit reached ({self.max_connections})"

    def _encrypted_columns(self, name: str, config: ConnectionConfig) -> dict[str, Any]:
        return {
            "name": name,
            "endpoint": config.endpoint,
            "region": config.region,
            "access_key_enc": self._vault.encrypt_and_pack(config.access_key),
            "secret_key_enc": self._vault.encrypt_and_pack(config.secret_key),
            "force_path_style": 1 if config.force_path_style else 0,
        }

    def _decrypt_config(self, profile: ConnectionProfile) -> ConnectionConfig:
        return ConnectionConfig(
            endpoint=profile.endpoint,
            access_key=self._vault.unpack_and_decrypt(profile.access_key_enc),
            secret_key=self._vault.unpack_and_decrypt(profile.secret_key_enc),
            region=profile.region,
            force_path_style=profile.force_path_style,
        )

    @staticmethod
    def _row_to_profile(row: dict[str, Any]) -> ConnectionProfile:
        return ConnectionProfile(
            id=row["id"],
            name=row["name"],
            endpoint=row["endpoint"],
            region=row["region"],
            force_path_style=bool(row["force_path_style"]),
            access_key_enc=row["access_key_enc"],
            secret_key_enc=row["secret_key_enc"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
        )
