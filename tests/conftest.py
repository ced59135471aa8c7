"""Shared pytest fixtures for ledgerkit tests."""

import os
import tempfile
from decimal import Decimal

import pytest

from ledgerkit.config import LedgerSettings
from ledgerkit.database.factories import create_sqlite_database
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.bulk import BulkWriteCoordinator
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.domain.split import SplitService
from ledgerkit.domain.year_end_cache import YearEndBalanceCache


@pytest.fixture
def settings():
    """Engine settings without retry or wave delays."""
    return LedgerSettings(retry_base_delay=0.0, retry_max_delay=0.0, wave_pause=0.0)


@pytest.fixture
def temp_db(settings):
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path, settings=settings)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def ledger(temp_db, settings):
    """Create a LedgerService with a temporary database."""
    return LedgerService(temp_db, settings=settings)


@pytest.fixture
def coordinator(temp_db, settings):
    """Create a BulkWriteCoordinator with a temporary database."""
    return BulkWriteCoordinator(temp_db, settings=settings)


@pytest.fixture
def split_service(temp_db):
    """Create a SplitService with a temporary database."""
    return SplitService(temp_db)


@pytest.fixture
def year_end_cache(temp_db):
    """Create a YearEndBalanceCache with a temporary database."""
    return YearEndBalanceCache(temp_db)


@pytest.fixture
async def sample_account(account_service):
    """Create a sample bank account with an opening balance of 1000.00."""
    account_id = await account_service.create_account(
        account_name="Main Account",
        account_number="1234-5678",
        initial_amount=Decimal("1000.00"),
        bank_name="Test Bank",
    )
    return await account_service.get_account(account_id)


@pytest.fixture
async def sample_accounts(account_service):
    """Create three bank accounts with different opening balances."""
    ids = []
    for name, number, initial in (
        ("Operations", "111-0001", "500.00"),
        ("Events", "222-0002", "0.00"),
        ("Reserve", None, "2500.00"),
    ):
        ids.append(
            await account_service.create_account(
                account_name=name, account_number=number, initial_amount=Decimal(initial)
            )
        )
    return [await account_service.get_account(account_id) for account_id in ids]


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
