"""Database layer for tallyup application."""

from tallyup.database.base import Database
from tallyup.database.factories import create_database, create_sqlite_database

__all__ = ["Database", "create_database", "create_sqlite_database"]
