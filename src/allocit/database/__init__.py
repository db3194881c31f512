"""Database layer for allocit application."""

from allocit.database.base import Database
from allocit.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
