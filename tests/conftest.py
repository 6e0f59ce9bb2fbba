"""
Pytest configuration and shared fixtures for the S3 Explorer test suite.

Provides:
- A controllable clock
- Temporary SQLite storage and key file
- A fake object store standing in for the S3 service
- A Flask test client wired with low-cost Argon2 parameters
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from s3explorer.connections.object_store import ConnectionConfig, ObjectStore
from s3explorer.connections.store import ConnectionStore
from s3explorer.core.auth.argon2_auth import PasswordVerifier
from s3explorer.core.auth.rate_limiter import LoginRateLimiter
from s3explorer.core.auth.session_control import SessionManager
from s3explorer.core.config import AppConfig, ExplorerConfig, PathConfig, SecurityConfig
from s3explorer.core.crypto.key_provider import FileKeyProvider
from s3explorer.core.crypto.vault import CredentialVault
from s3explorer.core.errors import ConnectionTestError
from s3explorer.db.database import SQLiteDatabase
from s3explorer.web.app import create_app
from s3explorer.web.routes import EXTENSION_KEY

ADMIN_PASSWORD = "Str0ngP@ssword!"

# Cheapest parameters the configuration accepts
FAST_ARGON2 = {"memory_cost": 19456, "time_cost": 1, "parallelism": 1}


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeObjectStore(ObjectStore):
    """Records probes; fails them while ``fail`` is set."""

    def __init__(self, buckets: list[str] | None = None) -> None:
        self.buckets = buckets if buckets is not None else ["photos", "backups"]
        self.fail = False
        self.calls: list[ConnectionConfig] = []

    def list_buckets(self, config: ConnectionConfig) -> list[str]:
        self.calls.append(config)
        if self.fail:
            raise ConnectionTestError("Connection failed: InvalidAccessKeyId")
        return list(self.buckets)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db(tmp_path: Path) -> SQLiteDatabase:
    return SQLiteDatabase(tmp_path / "test.db")


@pytest.fixture
def key_provider(tmp_path: Path) -> FileKeyProvider:
    return FileKeyProvider(tmp_path / "keys" / "encryption.key")


@pytest.fixture
def vault(key_provider: FileKeyProvider) -> CredentialVault:
    return CredentialVault(key_provider)


@pytest.fixture
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def verifier() -> PasswordVerifier:
    return PasswordVerifier(**FAST_ARGON2)


@pytest.fixture
def rate_limiter(db: SQLiteDatabase, clock: FakeClock) -> LoginRateLimiter:
    return LoginRateLimiter(db, clock=clock)


@pytest.fixture
def sessions(db: SQLiteDatabase, clock: FakeClock) -> SessionManager:
    return SessionManager(db, clock=clock)


@pytest.fixture
def store(db: SQLiteDatabase, vault: CredentialVault, object_store: FakeObjectStore) -> ConnectionStore:
    return ConnectionStore(db, vault, object_store)


@pytest.fixture
def config(tmp_path: Path) -> ExplorerConfig:
    return ExplorerConfig(
        paths=PathConfig(data_dir=tmp_path / "data", log_dir=tmp_path / "logs"),
        security=SecurityConfig(
            argon2_memory_cost=FAST_ARGON2["memory_cost"],
            argon2_time_cost=FAST_ARGON2["time_cost"],
            argon2_parallelism=FAST_ARGON2["parallelism"],
            login_workers=2,
            login_queue_limit=8,
        ),
        app=AppConfig(environment="test", maintenance_interval_seconds=0),
    )


@pytest.fixture
def app(config: ExplorerConfig, object_store: FakeObjectStore, clock: FakeClock) -> Iterator:
    application = create_app(
        config,
        object_store=object_store,
        environ={"APP_PASSWORD": ADMIN_PASSWORD},
        clock=clock,
    )
    yield application
    application.extensions[EXTENSION_KEY].shutdown()


@pytest.fixture
def services(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_client(client):
    """Test client holding a valid session cookie."""
    response = client.post("/api/auth/login", json={"password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return client
