"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from tallyup.database.sqlalchemy_db import SQLAlchemyDatabase


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, checks TALLYUP_DB_PATH
            environment variable, then defaults to ~/.tallyup/tallyup.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = os.environ.get("TALLYUP_DB_PATH")

    if database_path is None:
        db_dir = Path.home() / ".tallyup"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "tallyup.db")

    return SQLAlchemyDatabase(f"sqlite:///{database_path}")


def create_database(
    database_url: Optional[str] = None, database_path: Optional[str] = None
) -> SQLAlchemyDatabase:
    """Create a database from a URL, falling back to SQLite.

    TALLYUP_DATABASE_URL (e.g. a PostgreSQL URL; the pg_trgm extension must be
    installed) takes precedence over a SQLite path.
    """
    if database_url is None:
        database_url = os.environ.get("TALLYUP_DATABASE_URL")
    if database_url:
        return SQLAlchemyDatabase(database_url)
    return create_sqlite_database(database_path=database_path)
