"""
Configuration Module
====================

Provides immutable, environment-aware configuration with security-first defaults.

Security Features:
- Immutable configuration after initialization
- Environment variable override support
- No secrets in default values or environment overrides
- OS-aware path handling

The administrative password is deliberately not part of this object; it is
read once by ``load_admin_password`` during startup and never stored here.
"""

from __future__ import annotations

import dataclasses
import os
import platform
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Optional

from s3explorer.core.errors import StartupError
from s3explorer.security import constants


# Security Constants
_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset({
    "password", "secret", "token", "api_key",
    "private", "credential", "salt",
})

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


def _is_sensitive_key(key: str) -> bool:
    """Check if a configuration key might contain sensitive data."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS)


def _get_default_data_dir() -> Path:
    """Get OS-appropriate default data directory (``DATA_DIR`` wins)."""
    if os.environ.get("DATA_DIR"):
        return Path(os.environ["DATA_DIR"]).resolve()

    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif system == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:  # Linux and others
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))

    return base / "S3Explorer"


def _get_default_log_dir() -> Path:
    """Get OS-appropriate default log directory."""
    system = platform.system().lower()

    if system == "windows":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
        return base / "S3Explorer" / "Logs"
    elif system == "darwin":
        return Path.home() / "Library" / "Logs" / "S3Explorer"
    else:  # Linux and others
        return Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / "S3Explorer" / "logs"


@dataclass(frozen=True, slots=True)
class PathConfig:
    """Immutable path configuration with OS-aware defaults."""

    data_dir: Path = field(default_factory=_get_default_data_dir)
    log_dir: Path = field(default_factory=_get_default_log_dir)

    def __post_init__(self) -> None:
        """Validate paths after initialization."""
        for field_name in ["data_dir", "log_dir"]:
            path = getattr(self, field_name)
            if not path.is_absolute():
                raise ValueError(f"{field_name} must be an absolute path: {path}")

    @property
    def key_file(self) -> Path:
        """Location of the 32-byte credential encryption key."""
        return self.data_dir / "encryption.key"

    @property
    def database_file(self) -> Path:
        """Location of the SQLite database used when no DATABASE_URL is set."""
        return self.data_dir / "s3explorer.db"


@dataclass(frozen=True, slots=True)
class SecurityConfig:
    """Immutable security configuration."""

    # Login rate limiting
    rate_limit_window_seconds: int = constants.RATE_LIMIT_WINDOW_SECONDS
    max_login_attempts: int = constants.MAX_LOGIN_ATTEMPTS
    lockout_duration_seconds: int = constants.LOCKOUT_DURATION_SECONDS
    trust_forwarded_for: bool = False

    # Session settings
    session_ttl_seconds: int = constants.SESSION_TTL_SECONDS
    remember_me_ttl_seconds: int = constants.REMEMBER_ME_TTL_SECONDS

    # Password hashing
    argon2_memory_cost: int = constants.ARGON2_MEMORY_COST
    argon2_time_cost: int = constants.ARGON2_TIME_COST
    argon2_parallelism: int = constants.ARGON2_PARALLELISM

    # Verification pool
    login_workers: int = constants.LOGIN_WORKERS
    login_queue_limit: int = constants.LOGIN_QUEUE_LIMIT

    def __post_init__(self) -> None:
        """Validate security settings."""
        if self.max_login_attempts < 1:
            raise ValueError("max_login_attempts must be at least 1")
        if self.rate_limit_window_seconds < 1 or self.lockout_duration_seconds < 1:
            raise ValueError("Rate limit durations must be positive")
        if self.session_ttl_seconds < 60:
            raise ValueError("session_ttl_seconds must be at least 60")
        if self.remember_me_ttl_seconds < self.session_ttl_seconds:
            raise ValueError("remember_me_ttl_seconds must not be shorter than session_ttl_seconds")
        if self.argon2_memory_cost < constants.ARGON2_MIN_MEMORY_COST:
            raise ValueError(
                f"argon2_memory_cost must be at least {constants.ARGON2_MIN_MEMORY_COST} KiB"
            )
        if self.argon2_time_cost < 1 or self.argon2_parallelism < 1:
            raise ValueError("argon2 time cost and parallelism must be at least 1")
        if self.login_workers < 1:
            raise ValueError("login_workers must be at least 1")
        if self.login_queue_limit < self.login_workers:
            raise ValueError("login_queue_limit must be at least login_workers")


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "INFO"
    max_file_size_bytes: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5
    enable_console: bool = True
    enable_file: bool = False
    enable_json: bool = False

    def __post_init__(self) -> None:
        """Validate logging settings."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Immutable application configuration."""

    app_name: str = "S3 Explorer"
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    maintenance_interval_seconds: int = 3600

    def __post_init__(self) -> None:
        if self.environment not in {"development", "production", "test"}:
            raise ValueError(f"Invalid environment: {self.environment}")
        if self.maintenance_interval_seconds < 0:
            raise ValueError("maintenance_interval_seconds cannot be negative")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Immutable storage configuration. ``url`` of None selects SQLite."""

    url: Optional[str] = None
    timeout_seconds: float = 30.0

    def __repr__(self) -> str:
        """Safe representation; URLs may embed credentials."""
        backend = "postgresql" if self.url else "sqlite"
        return f"DatabaseConfig(backend={backend})"


class ExplorerConfig:
    """
    Centralized, immutable configuration loader with environment override support.

    Usage:
        config = ExplorerConfig.load()
        key_file = config.paths.key_file
        window = config.security.rate_limit_window_seconds

    Environment variables use the ``S3EXPLORER_`` prefix and double underscores
    for nested values:

        S3EXPLORER_LOGGING__LEVEL=DEBUG
        S3EXPLORER_SECURITY__MAX_LOGIN_ATTEMPTS=5
        S3EXPLORER_PATHS__DATA_DIR=/data

    The deployment variables ``DATA_DIR``, ``DATABASE_URL``, ``PORT`` and
    ``NODE_ENV`` are honoured as well.
    """

    __slots__ = ("_paths", "_security", "_logging", "_app", "_database", "_frozen")

    def __init__(
        self,
        paths: Optional[PathConfig] = None,
        security: Optional[SecurityConfig] = None,
        logging: Optional[LoggingConfig] = None,
        app: Optional[AppConfig] = None,
        database: Optional[DatabaseConfig] = None,
    ) -> None:
        """Initialize configuration. Use ExplorerConfig.load() for standard initialization."""
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_paths", paths or PathConfig())
        object.__setattr__(self, "_security", security or SecurityConfig())
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_app", app or AppConfig())
        object.__setattr__(self, "_database", database or DatabaseConfig())
        object.__setattr__(self, "_frozen", True)

    @property
    def paths(self) -> PathConfig:
        return self._paths

    @property
    def security(self) -> SecurityConfig:
        return self._security

    @property
    def logging(self) -> LoggingConfig:
        return self._logging

    @property
    def app(self) -> AppConfig:
        return self._app

    @property
    def database(self) -> DatabaseConfig:
        return self._database

    @classmethod
    def load(cls, env_prefix: str = "S3EXPLORER") -> ExplorerConfig:
        """
        Load configuration with environment variable overrides.

        Args:
            env_prefix: Prefix for environment variables (default: S3EXPLORER)

        Returns:
            Configured ExplorerConfig instance

        Raises:
            StartupError: If an override cannot be applied
        """
        overrides = cls._parse_env_overrides(env_prefix)

        if os.environ.get("DATABASE_URL"):
            overrides.setdefault("database.url", os.environ["DATABASE_URL"])
        if os.environ.get("PORT"):
            overrides.setdefault("app.port", os.environ["PORT"])
        if os.environ.get("NODE_ENV") in {"development", "production", "test"}:
            overrides.setdefault("app.environment", os.environ["NODE_ENV"])

        try:
            return cls(
                paths=cls._build(PathConfig, "paths", overrides),
                security=cls._build(SecurityConfig, "security", overrides),
                logging=cls._build(LoggingConfig, "logging", overrides),
                app=cls._build(AppConfig, "app", overrides),
                database=cls._build(DatabaseConfig, "database", overrides),
            )
        except (TypeError, ValueError) as exc:
            raise StartupError(f"Invalid configuration: {exc}") from exc

    @staticmethod
    def _build(section_cls: type, section: str, overrides: dict[str, str]) -> Any:
        """Instantiate one section, coercing overrides to the field's default type."""
        defaults = section_cls()
        kwargs: dict[str, Any] = {}

        for section_field in dataclasses.fields(section_cls):
            raw = overrides.get(f"{section}.{section_field.name}")
            if raw is None:
                continue

            current = getattr(defaults, section_field.name)
            if isinstance(current, bool):
                kwargs[section_field.name] = raw.strip().lower() in _TRUE_VALUES
            elif isinstance(current, int):
                kwargs[section_field.name] = int(raw)
            elif isinstance(current, float):
                kwargs[section_field.name] = float(raw)
            elif isinstance(current, Path):
                kwargs[section_field.name] = Path(raw).resolve()
            else:
                kwargs[section_field.name] = raw

        return section_cls(**kwargs) if kwargs else defaults

    @staticmethod
    def _parse_env_overrides(prefix: str) -> dict[str, str]:
        """Parse environment variables with the given prefix."""
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in os.environ.items():
            if key.startswith(prefix_upper):
                # Convert S3EXPLORER_SECTION__KEY to section.key
                config_key = key[len(prefix_upper):].lower().replace("__", ".")

                # Secrets never come from generic overrides
                if _is_sensitive_key(config_key):
                    continue

                overrides[config_key] = value

        return overrides

    def ensure_directories(self) -> None:
        """
        Create the data and log directories with owner-only permissions.

        Raises:
            StartupError: If a directory cannot be created
        """
        directories = [self._paths.data_dir]
        if self._logging.enable_file:
            directories.append(self._paths.log_dir)

        for directory in directories:
            try:
                directory.mkdir(parents=True, exist_ok=True)
                if platform.system().lower() != "windows":
                    directory.chmod(stat.S_IRWXU)  # 700 - owner only
            except OSError as exc:
                raise StartupError(f"Cannot prepare directory {directory}: {exc}") from exc

    def __repr__(self) -> str:
        """Safe string representation without sensitive data."""
        return (
            f"ExplorerConfig(app={self._app.app_name!r}, "
            f"environment={self._app.environment!r}, {self._database!r})"
        )

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if hasattr(self, "_frozen") and self._frozen:
            raise AttributeError("ExplorerConfig is immutable after initialization")
        super().__setattr__(name, value)


def load_admin_password(environ: Optional[dict[str, str]] = None) -> Optional[str]:
    """
    Read the administrative password from ``APP_PASSWORD`` or the file named
    by ``APP_PASSWORD_FILE`` (container secrets).

    Returns:
        The password, or None if neither is set
    """
    env = os.environ if environ is None else environ

    password = env.get("APP_PASSWORD")
    if password:
        return password

    password_file = env.get("APP_PASSWORD_FILE")
    if password_file:
        try:
            return Path(password_file).read_text(encoding="utf-8").rstrip("\r\n") or None
        except OSError as exc:
            raise StartupError(f"Cannot read APP_PASSWORD_FILE: {exc}") from exc

    return None
