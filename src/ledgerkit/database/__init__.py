"""Database layer for ledgerkit."""

from ledgerkit.database.base import Database, WriteBatch
from ledgerkit.database.factories import create_sqlite_database

__all__ = ["Database", "WriteBatch", "create_sqlite_database"]
