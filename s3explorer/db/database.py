"""
Durable Storage
===============

A small storage abstraction shared by the rate limiter, the session manager
and the connection registry. Two backends are provided:

- SQLite (default, single host, file under the data directory)
- PostgreSQL via psycopg2 (``DATABASE_URL``, horizontally scaled deployments)

SQL is written once with named ``:param`` placeholders. Components that need
dialect-specific DDL keep one schema per ``Database.dialect``.

Every read-modify-write the components perform is a single conditional
statement (``INSERT ... ON CONFLICT DO UPDATE``, ``UPDATE ... WHERE``).
Statements whose guard reads rows other than the ones they write (a row count,
another row's flag) pass ``lock=<table>``. SQLite already holds the database
write lock from ``BEGIN IMMEDIATE``. PostgreSQL takes ``LOCK TABLE ... IN SHARE
ROW EXCLUSIVE MODE`` first, because READ COMMITTED only re-checks the rows a
statement already matched.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Final, Iterator, Mapping, Optional

import psycopg2
import psycopg2.extras

from s3explorer.core.errors import StartupError

logger = logging.getLogger(__name__)

Params = Mapping[str, Any]

_NAMED_PARAM: Final[re.Pattern[str]] = re.compile(r"(?<![:\w]):([A-Za-z_]\w*)")
_IDENTIFIER: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Database(ABC):
    """Backend-neutral access to the durable store."""

    dialect: str = ""

    #: Driver exception raised on UNIQUE / constraint violations
    unique_violation: type[Exception] = Exception

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Yield a cursor inside a write transaction; commit on success."""

    def execute(self, sql: str, params: Optional[Params] = None, lock: Optional[str] = None) -> int:
        """
        Run one statement and return the affected row count.

        Args:
            lock: Table to lock against concurrent writers for the statement
        """
        with self.transaction() as cursor:
            if lock:
                self._lock(cursor, lock)
            cursor.execute(self._prepare(sql), dict(params or {}))
            return cursor.rowcount

    def fetchone(self, sql: str, params: Optional[Params] = None) -> Optional[dict[str, Any]]:
        with self.transaction() as cursor:
            cursor.execute(self._prepare(sql), dict(params or {}))
            row = cursor.fetchone()
            return dict(row) if row is not None else None

    def fetchall(self, sql: str, params: Optional[Params] = None) -> list[dict[str, Any]]:
        with self.transaction() as cursor:
            cursor.execute(self._prepare(sql), dict(params or {}))
            return [dict(row) for row in cursor.fetchall()]

    def scalar(self, sql: str, params: Optional[Params] = None) -> Any:
        """Return the first column of the first row, or None."""
        row = self.fetchone(sql, params)
        if row is None:
            return None
        return next(iter(row.values()))

    @abstractmethod
    def insert(self, sql: str, params: Optional[Params] = None, lock: Optional[str] = None) -> Optional[int]:
        """
        Run an INSERT into a table with an ``id`` key.

        Args:
            lock: Table to lock against concurrent writers for the statement

        Returns:
            The new row id, or None if the statement inserted nothing
        """

    @abstractmethod
    def executescript(self, script: str) -> None:
        """Run a multi-statement DDL script."""

    def _prepare(self, sql: str) -> str:
        return sql

    def _lock(self, cursor: Any, table: str) -> None:
        """
        Serialize writers to ``table`` until the transaction ends.

        SQLite needs nothing more: ``BEGIN IMMEDIATE`` already holds the write lock.
        """
        if not _IDENTIFIER.match(table):
            raise ValueError(f"Invalid table name: {table!r}")

    def close(self) -> None:
        """Release backend resources (connections are per operation)."""


class SQLiteDatabase(Database):
    """
    SQLite backend.

    A fresh connection is opened per operation, so the object is safe to
    share between request threads. WAL mode lets readers proceed while a
    writer holds the lock; writers queue on ``busy_timeout``.
    """

    dialect = "sqlite"
    unique_violation = sqlite3.IntegrityError

    __slots__ = ("_db_path", "_timeout")

    def __init__(self, db_path: Path | str, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.execute("PRAGMA journal_mode = WAL")
        except (OSError, sqlite3.Error) as exc:
            raise StartupError(f"Cannot open database {self._db_path}: {exc}") from exc

    def __repr__(self) -> str:
        return f"SQLiteDatabase(path={str(self._db_path)!r})"

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly below
        conn = sqlite3.connect(self._db_path, timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.cursor()
            try:
                yield cursor
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def insert(self, sql: str, params: Optional[Params] = None, lock: Optional[str] = None) -> Optional[int]:
        with self.transaction() as cursor:
            if lock:
                self._lock(cursor, lock)
            cursor.execute(sql, dict(params or {}))
            if cursor.rowcount < 1:
                return None
            return cursor.lastrowid

    def executescript(self, script: str) -> None:
        conn = self._connect()
        try:
            conn.executescript(script)
        finally:
            conn.close()


class PostgresDatabase(Database):
    """
    PostgreSQL backend over psycopg2.

    One short-lived connection per operation, mirroring the request-scoped
    connections of the web layer. Named ``:param`` placeholders are rewritten
    to psycopg2's ``%(param)s`` style.
    """

    dialect = "postgresql"
    unique_violation = psycopg2.IntegrityError

    __slots__ = ("_dsn", "_timeout")

    def __init__(self, dsn: str, timeout: float = 30.0) -> None:
        self._dsn = dsn
        self._timeout = timeout

        try:
            conn = self._connect()
            conn.close()
        except psycopg2.Error as exc:
            raise StartupError(f"Cannot connect to PostgreSQL: {exc.__class__.__name__}") from exc

    def __repr__(self) -> str:
        """Safe representation; the DSN may contain a password."""
        return "PostgresDatabase()"

    def _connect(self):
        return psycopg2.connect(
            self._dsn,
            connect_timeout=max(1, int(self._timeout)),
            cursor_factory=psycopg2.extras.RealDictCursor,
        )

    def _prepare(self, sql: str) -> str:
        return _NAMED_PARAM.sub(r"%(\1)s", sql)

    def _lock(self, cursor: Any, table: str) -> None:
        super()._lock(cursor, table)
        cursor.execute(f"LOCK TABLE {table} IN SHARE ROW EXCLUSIVE MODE")

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        conn = self._connect()
        try:
            with conn:
                with conn.cursor() as cursor:
                    yield cursor
        finally:
            conn.close()

    def insert(self, sql: str, params: Optional[Params] = None, lock: Optional[str] = None) -> Optional[int]:
        with self.transaction() as cursor:
            if lock:
                self._lock(cursor, lock)
            cursor.execute(self._prepare(sql) + " RETURNING id", dict(params or {}))
            row = cursor.fetchone()
            return row["id"] if row else None

    def executescript(self, script: str) -> None:
        with self.transaction() as cursor:
            cursor.execute(script)


def connect_database(url: Optional[str], sqlite_path: Path, timeout: float = 30.0) -> Database:
    """
    Open the configured backend.

    Args:
        url: ``postgres://`` / ``postgresql://`` URL, or None for SQLite
        sqlite_path: SQLite file used when ``url`` is None
        timeout: Lock / connect timeout in seconds

    Raises:
        StartupError: If the URL scheme is unsupported or the store is unreachable
    """
    if not url:
        logger.info("Using SQLite storage at %s", sqlite_path)
        return SQLiteDatabase(sqlite_path, timeout=timeout)

    if url.startswith(("postgres://", "postgresql://")):
        logger.info("Using PostgreSQL storage")
        return PostgresDatabase(url, timeout=timeout)

    if url.startswith("sqlite:///"):
        return SQLiteDatabase(url[len("sqlite:///"):], timeout=timeout)

    raise StartupError("DATABASE_URL must be a postgresql:// or sqlite:/// URL")
