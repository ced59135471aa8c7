"""Tests for the year-end balance cache."""

from decimal import Decimal

import pytest

from ledgerkit.domain.balance import year_start_balance
from ledgerkit.domain.errors import NotFoundError


async def add(db, account_id, when, income="0", expense="0", number=None):
    return await db.create_transaction(
        bank_account_id=account_id,
        transaction_number=number,
        transaction_date=when,
        income=Decimal(income),
        expense=Decimal(expense),
    )


async def seed(db, account_id):
    await add(db, account_id, "10-Mar-2023", income="500")
    await add(db, account_id, "11-Jul-2023", expense="200")
    await add(db, account_id, "12-Dec-2023", income="300")
    await add(db, account_id, "05-Feb-2024", expense="100")


class TestInitializeAll:
    """Tests for initialize_all."""

    async def test_year_start_comes_from_cache(self, temp_db, year_end_cache, sample_account):
        """Test the 2024 opening balance equals the cached 2023 closing balance."""
        await seed(temp_db, sample_account.id)

        computed = await year_end_cache.initialize_all()

        assert computed[sample_account.id] == {2023: Decimal("1600.00"), 2024: Decimal("1500.00")}
        assert await year_end_cache.get(sample_account.id, 2023) == Decimal("1600.00")

        account = await temp_db.get_account(sample_account.id)
        assert year_start_balance(account, 2024, []) == Decimal("1600.00")

    async def test_is_idempotent(self, temp_db, year_end_cache, sample_account):
        """Test running twice without ledger changes stores the same values."""
        await seed(temp_db, sample_account.id)

        first = await year_end_cache.initialize_all()
        second = await year_end_cache.initialize_all()

        assert first == second
        assert await temp_db.get_year_end_balances(sample_account.id) == first[sample_account.id]

    async def test_drops_years_without_transactions(self, temp_db, year_end_cache, sample_account):
        """Test stale entries for years with no transactions are removed."""
        await year_end_cache.set(sample_account.id, 2019, Decimal("1.00"))
        await seed(temp_db, sample_account.id)

        await year_end_cache.initialize_all()

        assert await year_end_cache.get(sample_account.id, 2019) is None

    async def test_account_without_transactions(self, year_end_cache, sample_account):
        """Test an empty account has nothing cached."""
        computed = await year_end_cache.initialize_all()
        assert computed == {sample_account.id: {}}


class TestRefresh:
    """Tests for refresh."""

    async def test_refresh_rewrites_later_years(self, temp_db, year_end_cache, sample_account):
        """Test a change in an early year carries into every later cached year."""
        await seed(temp_db, sample_account.id)
        await year_end_cache.initialize_all()

        await add(temp_db, sample_account.id, "01-Jan-2023", income="50")
        written = await year_end_cache.refresh(sample_account.id, 2023)

        assert written == {2023: Decimal("1650.00"), 2024: Decimal("1550.00")}
        assert await year_end_cache.get(sample_account.id, 2024) == Decimal("1550.00")

    async def test_refresh_leaves_earlier_years(self, temp_db, year_end_cache, sample_account):
        """Test years before the changed one are not touched."""
        await year_end_cache.set(sample_account.id, 2022, Decimal("42.00"))
        await seed(temp_db, sample_account.id)

        written = await year_end_cache.refresh(sample_account.id, 2024)

        assert written == {2024: Decimal("1500.00")}
        assert await year_end_cache.get(sample_account.id, 2022) == Decimal("42.00")

    async def test_refresh_unknown_account(self, year_end_cache):
        """Test refreshing a missing account raises."""
        with pytest.raises(NotFoundError):
            await year_end_cache.refresh(999, 2024)


class TestValidateAll:
    """Tests for validate_all."""

    async def test_fresh_cache_is_valid(self, temp_db, year_end_cache, sample_account):
        """Test a freshly initialized cache validates."""
        await seed(temp_db, sample_account.id)
        await year_end_cache.initialize_all()

        report = await year_end_cache.validate_all()
        assert report.is_valid

    async def test_stale_entry_is_reported_not_fixed(self, temp_db, year_end_cache, sample_account):
        """Test a wrong cached value is reported and left in place."""
        await seed(temp_db, sample_account.id)
        await year_end_cache.initialize_all()
        await year_end_cache.set(sample_account.id, 2023, Decimal("1234.00"))

        report = await year_end_cache.validate_all()

        assert not report.is_valid
        assert report.errors == [
            "Account Main Account year 2023: computed 1600.00, cached 1234.00 (difference 366.00)"
        ]
        assert await year_end_cache.get(sample_account.id, 2023) == Decimal("1234.00")
