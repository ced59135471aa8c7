"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from ledgerkit.config import LedgerSettings, resolve_settings
from ledgerkit.database.sqlalchemy_db import SQLAlchemyDatabase
from ledgerkit.utils.date_parser import DateResolver


def create_sqlite_database(
    database_path: Optional[str] = None,
    settings: Optional[LedgerSettings] = None,
) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, checks LEDGERKIT_DB_PATH
            environment variable, then defaults to ~/.ledgerkit/ledgerkit.db
        settings: Engine settings; the batch limit and date formats are taken from here

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = os.environ.get("LEDGERKIT_DB_PATH")

    if database_path is None:
        db_dir = Path.home() / ".ledgerkit"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "ledgerkit.db")

    settings = resolve_settings(settings)
    return SQLAlchemyDatabase(
        f"sqlite:///{database_path}",
        max_batch_size=settings.max_batch_size,
        resolver=DateResolver(settings.date_formats),
    )
