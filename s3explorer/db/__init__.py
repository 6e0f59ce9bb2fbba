"""
Database module - Durable storage backends (SQLite and PostgreSQL).
"""

from s3explorer.db.database import (
    Database,
    PostgresDatabase,
    SQLiteDatabase,
    connect_database,
)

__all__ = ["Database", "SQLiteDatabase", "PostgresDatabase", "connect_database"]
