"""
S3 Explorer Web API
===================

Flask application factory. ``create_app`` is the explicit initialization
phase: configuration, password hashing, storage and the vault key are all
ready before the app object exists, and any failure raises StartupError so
the process never starts serving in a half-initialized state.

Run with ``python -m s3explorer`` or any WSGI server pointed at the
factory, e.g. ``gunicorn "s3explorer.web.app:create_app()"``.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from s3explorer.connections.object_store import Boto3ObjectStore, ObjectStore
from s3explorer.connections.store import ConnectionStore
from s3explorer.core.auth.argon2_auth import PasswordVerifier
from s3explorer.core.auth.login import LoginService
from s3explorer.core.auth.rate_limiter import LoginRateLimiter
from s3explorer.core.auth.session_control import SessionManager
from s3explorer.core.config import ExplorerConfig, load_admin_password
from s3explorer.core.crypto.key_provider import EnvironmentKeyProvider, FileKeyProvider, KeyProvider
from s3explorer.core.crypto.vault import CredentialVault
from s3explorer.core.errors import ExplorerError, IntegrityError, RateLimitError, StartupError
from s3explorer.core.logging import configure_root_logger
from s3explorer.core.maintenance import MaintenanceWorker
from s3explorer.db.database import Database, connect_database
from s3explorer.web.routes import EXTENSION_KEY, auth_bp, connections_bp, system_bp

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_VARIABLE = "S3EXPLORER_ENCRYPTION_KEY"


@dataclass
class ExplorerServices:
    """Process-wide components shared by all request handlers."""

    config: ExplorerConfig
    db: Database
    sessions: SessionManager
    rate_limiter: LoginRateLimiter
    login: LoginService
    connections: ConnectionStore
    maintenance: Optional[MaintenanceWorker] = None

    def __repr__(self) -> str:
        return f"ExplorerServices({self.config!r})"

    def shutdown(self) -> None:
        """Stop background work and release storage."""
        if self.maintenance is not None:
            self.maintenance.stop()
        self.login.shutdown()
        self.db.close()


def _default_key_provider(config: ExplorerConfig, environ: Mapping[str, str]) -> KeyProvider:
    if environ.get(ENCRYPTION_KEY_VARIABLE):
        return EnvironmentKeyProvider(ENCRYPTION_KEY_VARIABLE, environ=dict(environ))
    return FileKeyProvider(config.paths.key_file)


def create_app(
    config: Optional[ExplorerConfig] = None,
    object_store: Optional[ObjectStore] = None,
    environ: Optional[Mapping[str, str]] = None,
    key_provider: Optional[KeyProvider] = None,
    clock: Callable[[], float] = time.time,
) -> Flask:
    """
    Build the application.

    Args:
        config: Loaded configuration (``ExplorerConfig.load()`` if omitted)
        object_store: Connectivity probe (boto3 if omitted)
        environ: Source of APP_PASSWORD and the key variable (``os.environ`` if omitted)
        key_provider: Vault key source (environment key if set, else the key file)
        clock: Returns the current time in epoch seconds

    Raises:
        StartupError: If any part of initialization fails
    """
    config = config or ExplorerConfig.load()
    env = os.environ if environ is None else environ
    security = config.security

    config.ensure_directories()

    # Hash once, before anything can serve a login
    verifier = PasswordVerifier(
        memory_cost=security.argon2_memory_cost,
        time_cost=security.argon2_time_cost,
        parallelism=security.argon2_parallelism,
    )
    password_hash = verifier.initialize_admin_password(load_admin_password(dict(env)))

    db = connect_database(config.database.url, config.paths.database_file, config.database.timeout_seconds)
    rate_limiter = LoginRateLimiter(
        db,
        max_attempts=security.max_login_attempts,
        window_seconds=security.rate_limit_window_seconds,
        block_seconds=security.lockout_duration_seconds,
        clock=clock,
    )
    sessions = SessionManager(
        db,
        ttl_seconds=security.session_ttl_seconds,
        remember_me_ttl_seconds=security.remember_me_ttl_seconds,
        clock=clock,
    )
    vault = CredentialVault(key_provider or _default_key_provider(config, env))
    connections = ConnectionStore(db, vault, object_store or Boto3ObjectStore())
    login_service = LoginService(
        verifier,
        password_hash,
        rate_limiter,
        sessions,
        workers=security.login_workers,
        queue_limit=security.login_queue_limit,
    )

    services = ExplorerServices(
        config=config,
        db=db,
        sessions=sessions,
        rate_limiter=rate_limiter,
        login=login_service,
        connections=connections,
    )

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 1024 * 1024
    app.config["TESTING"] = config.app.environment == "test"
    app.extensions[EXTENSION_KEY] = services

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(connections_bp)
    _register_error_handlers(app)
    _register_security_headers(app)

    if config.app.maintenance_interval_seconds > 0:
        services.maintenance = MaintenanceWorker(
            sessions, rate_limiter, interval=config.app.maintenance_interval_seconds
        )
        services.maintenance.start()

    logger.info("%s initialized (%s)", config.app.app_name, config.app.environment)
    return app


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ExplorerError)
    def handle_explorer_error(error: ExplorerError):
        if isinstance(error, IntegrityError):
            logger.error("Integrity failure: %s", error.message)
        response = jsonify(error.to_dict())
        response.status_code = error.http_status
        if isinstance(error, RateLimitError):
            response.headers["Retry-After"] = str(error.retry_after)
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        response = jsonify({"error": error.description, "kind": "http"})
        response.status_code = error.code or 500
        return response

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        logger.exception("Unhandled error: %s", error.__class__.__name__)
        return jsonify({"error": "Internal error", "kind": "internal"}), 500


def _register_security_headers(app: Flask) -> None:
    @app.after_request
    def add_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cache-Control"] = "no-store"
        return response


def main() -> None:
    """Entry point: initialize, then serve. Startup failures exit with status 1."""
    try:
        config = ExplorerConfig.load()
        configure_root_logger(config)
        app = create_app(config)
    except StartupError as exc:
        logger.critical("FATAL: %s", exc.message)
        sys.exit(1)

    atexit.register(app.extensions[EXTENSION_KEY].shutdown)
    app.run(host=config.app.host, port=config.app.port, threaded=True)
