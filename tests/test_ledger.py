"""Tests for LedgerService."""

from datetime import date
from decimal import Decimal

import pytest

from ledgerkit.database.sqlalchemy_db import SQLAlchemyDatabase
from ledgerkit.domain.entities import SplitDraft, TransactionDraft
from ledgerkit.domain.errors import NotFoundError, ValidationError
from ledgerkit.domain.ledger import LedgerService


def draft(account_id, when, income="0", expense="0", description="", **fields):
    return TransactionDraft(
        bank_account_id=account_id,
        transaction_date=when,
        income=Decimal(income),
        expense=Decimal(expense),
        main_description=description,
        **fields,
    )


async def seed_scenario(ledger, account_id):
    """Income 500, expense 200, income 300 in January 2024."""
    return [
        await ledger.create_transaction(draft(account_id, "01-Jan-2024", income="500", description="Grant")),
        await ledger.create_transaction(draft(account_id, "02-Jan-2024", expense="200", description="Rent")),
        await ledger.create_transaction(draft(account_id, "03-Jan-2024", income="300", description="Donation")),
    ]


class TestCreateTransaction:
    """Tests for create_transaction."""

    async def test_assigns_number_and_refreshes_balances(self, ledger, temp_db, sample_account):
        """Test a new transaction is numbered and the balances follow."""
        transaction_id = await ledger.create_transaction(draft(sample_account.id, "2024-01-15", income="500"))

        transaction = await ledger.get_transaction(transaction_id)
        assert transaction.transaction_number == "TXN-2024-5678-0001"
        assert transaction.raw_date == "15-Jan-2024"
        assert transaction.transaction_date == date(2024, 1, 15)

        account = await temp_db.get_account(sample_account.id)
        assert account.current_balance == Decimal("1500.00")
        assert account.year_end_balances == {2024: Decimal("1500.00")}

    async def test_unknown_account(self, ledger):
        """Test creating for a missing account raises."""
        with pytest.raises(NotFoundError, match="Bank account 999 not found"):
            await ledger.create_transaction(draft(999, "2024-01-15", income="5"))

    @pytest.mark.parametrize(
        "income,expense",
        [("0", "0"), ("5", "5"), ("-5", "0")],
    )
    async def test_invalid_amounts(self, ledger, temp_db, sample_account, income, expense):
        """Test exactly one positive amount is required."""
        with pytest.raises(ValidationError, match="exactly one of income or expense"):
            await ledger.create_transaction(draft(sample_account.id, "2024-01-15", income, expense))
        assert await temp_db.list_transactions() == []

    async def test_unparsable_date(self, ledger, sample_account):
        """Test a date that cannot be resolved is rejected."""
        with pytest.raises(ValidationError):
            await ledger.create_transaction(draft(sample_account.id, "sometime", income="5"))

    async def test_failed_balance_refresh_keeps_the_transaction(self, temp_db, settings, ledger, sample_account):
        """Test a refresh failure after the write is logged and the id still returned."""

        class RejectBalanceWrite(SQLAlchemyDatabase):
            async def update_account_balance(self, account_id, current_balance):
                raise RuntimeError("balance write rejected")

        db = RejectBalanceWrite(temp_db.database_url)
        failing = LedgerService(db, settings=settings)

        transaction_id = await failing.create_transaction(draft(sample_account.id, "2024-01-15", income="500"))

        assert (await ledger.get_transaction(transaction_id)).transaction_number == "TXN-2024-5678-0001"
        assert (await temp_db.get_account(sample_account.id)).current_balance == Decimal("1000.00")
        assert not (await ledger.validate()).is_valid

        await ledger.sync_all_account_balances()
        assert (await temp_db.get_account(sample_account.id)).current_balance == Decimal("1500.00")
        db.disconnect()


class TestRunningBalances:
    """Tests for the balance queries."""

    async def test_scenario_running_balances(self, ledger, sample_account):
        """Test 1000 + 500 - 200 + 300 yields 1500, 1300, 1600."""
        ids = await seed_scenario(ledger, sample_account.id)

        balances = await ledger.get_running_balances()

        assert [balances[i] for i in ids] == [Decimal("1500.00"), Decimal("1300.00"), Decimal("1600.00")]
        account = await ledger.db.get_account(sample_account.id)
        assert account.current_balance == Decimal("1600.00")

    async def test_year_filter_starts_at_year_start(self, ledger, sample_account):
        """Test a year view opens at the previous year's closing balance."""
        await ledger.create_transaction(draft(sample_account.id, "15-Jun-2023", income="600"))
        jan = await ledger.create_transaction(draft(sample_account.id, "10-Jan-2024", expense="100"))

        balances = await ledger.get_running_balances(year=2024)

        assert balances == {jan: Decimal("1500.00")}

    async def test_get_transactions_filters(self, ledger, sample_accounts):
        """Test listing by account and year in ledger order."""
        ops, events, _ = sample_accounts
        first = await ledger.create_transaction(draft(ops.id, "01-Feb-2024", income="1"))
        await ledger.create_transaction(draft(events.id, "01-Feb-2024", income="1"))
        await ledger.create_transaction(draft(ops.id, "01-Feb-2023", income="1"))
        second = await ledger.create_transaction(draft(ops.id, "01-Mar-2024", income="1"))

        transactions = await ledger.get_transactions(account_id=ops.id, year=2024)
        assert [t.id for t in transactions] == [first, second]

    async def test_account_balance_info_for_year(self, ledger, sample_account):
        """Test an account statement restricted to one year."""
        await ledger.create_transaction(draft(sample_account.id, "15-Jun-2023", income="600"))
        await ledger.create_transaction(draft(sample_account.id, "10-Jan-2024", expense="100"))

        info = await ledger.get_account_balance_info(sample_account.id, year=2024)

        assert info.initial_balance == Decimal("1600.00")
        assert info.final_balance == Decimal("1500.00")
        assert info.transaction_count == 1

    async def test_account_balance_info_unknown_account(self, ledger):
        """Test a statement for a missing account raises."""
        with pytest.raises(NotFoundError):
            await ledger.get_account_balance_info(404)

    async def test_balance_report(self, ledger, sample_accounts):
        """Test the report over every account."""
        ops, events, reserve = sample_accounts
        await ledger.create_transaction(draft(ops.id, "01-Feb-2024", income="100"))
        await ledger.create_transaction(draft(events.id, "02-Feb-2024", expense="40"))

        report = await ledger.get_balance_report()

        assert report.account_count == 3
        assert report.transaction_count == 2
        assert report.total_initial_balance == Decimal("3000.00")
        assert report.total_running_balance == Decimal("3060.00")
        assert report.validation.is_valid


class TestUpdateTransaction:
    """Tests for update_transaction."""

    async def test_moving_to_another_account_keeps_number(self, ledger, temp_db, sample_accounts):
        """Test reassigning keeps the number and refreshes both accounts."""
        ops, events, _ = sample_accounts
        transaction_id = await ledger.create_transaction(draft(ops.id, "01-Feb-2024", income="100"))

        await ledger.update_transaction(transaction_id, bank_account_id=events.id)

        transaction = await ledger.get_transaction(transaction_id)
        assert transaction.bank_account_id == events.id
        assert transaction.transaction_number == "TXN-2024-0001-0001"
        assert (await temp_db.get_account(ops.id)).current_balance == Decimal("500.00")
        assert (await temp_db.get_account(events.id)).current_balance == Decimal("100.00")

    async def test_date_change_refreshes_from_earliest_year(self, ledger, temp_db, sample_account):
        """Test moving a transaction back a year rewrites both cached years."""
        transaction_id = await ledger.create_transaction(draft(sample_account.id, "01-Feb-2024", income="100"))

        await ledger.update_transaction(transaction_id, transaction_date="31/12/2023")

        transaction = await ledger.get_transaction(transaction_id)
        assert transaction.raw_date == "31-Dec-2023"
        balances = await temp_db.get_year_end_balances(sample_account.id)
        assert balances == {2023: Decimal("1100.00"), 2024: Decimal("1100.00")}

    async def test_amount_change(self, ledger, temp_db, sample_account):
        """Test swapping income for expense is validated and applied."""
        transaction_id = await ledger.create_transaction(draft(sample_account.id, "01-Feb-2024", income="100"))

        await ledger.update_transaction(transaction_id, income=Decimal("0"), expense=Decimal("25"))

        assert (await temp_db.get_account(sample_account.id)).current_balance == Decimal("975.00")
        with pytest.raises(ValidationError):
            await ledger.update_transaction(transaction_id, income=Decimal("5"))

    async def test_unknown_field(self, ledger, sample_account):
        """Test fields outside the updatable set are rejected."""
        transaction_id = await ledger.create_transaction(draft(sample_account.id, "01-Feb-2024", income="1"))
        with pytest.raises(ValidationError, match="transaction_number"):
            await ledger.update_transaction(transaction_id, transaction_number="TXN-0000-0000-0001")

    async def test_unknown_transaction(self, ledger):
        """Test updating a missing transaction raises."""
        with pytest.raises(NotFoundError, match="Transaction 12 not found"):
            await ledger.update_transaction(12, notes="x")

    async def test_unknown_target_account(self, ledger, sample_account):
        """Test moving to a missing account raises."""
        transaction_id = await ledger.create_transaction(draft(sample_account.id, "01-Feb-2024", income="1"))
        with pytest.raises(NotFoundError):
            await ledger.update_transaction(transaction_id, bank_account_id=999)

    async def test_required_field_cannot_be_cleared(self, ledger, sample_account):
        """Test clearing a required field is rejected before the write."""
        transaction_id = await ledger.create_transaction(draft(sample_account.id, "01-Feb-2024", income="1", description="Fee"))

        with pytest.raises(ValidationError, match="main_description cannot be empty"):
            await ledger.update_transaction(transaction_id, main_description=None)

        assert (await ledger.get_transaction(transaction_id)).main_description == "Fee"


class TestDeleteTransaction:
    """Tests for delete_transaction."""

    async def test_deletes_splits_with_the_transaction(self, ledger, split_service, temp_db, sample_account):
        """Test a split transaction disappears together with its splits."""
        ids = await seed_scenario(ledger, sample_account.id)
        await split_service.split_transaction(
            ids[0],
            [SplitDraft(Decimal("300"), "Programs"), SplitDraft(Decimal("200"), "Admin")],
        )

        await ledger.delete_transaction(ids[0])

        assert await ledger.get_transaction(ids[0]) is None
        assert await temp_db.list_splits([ids[0]]) == []
        account = await temp_db.get_account(sample_account.id)
        assert account.current_balance == Decimal("1100.00")
        assert account.year_end_balances[2024] == Decimal("1100.00")

    async def test_unknown_transaction(self, ledger):
        """Test deleting a missing transaction raises."""
        with pytest.raises(NotFoundError):
            await ledger.delete_transaction(5)


class TestBulkWrites:
    """Tests for the bulk entry points."""

    async def test_create_transactions_refreshes_once(self, ledger, temp_db, sample_accounts):
        """Test balances and cache are current after a bulk create."""
        ops, events, _ = sample_accounts
        drafts = [
            draft(ops.id, "05-Jan-2023", income="10"),
            draft(ops.id, "05-Jan-2024", expense="4"),
            draft(events.id, "06-Jan-2024", income="7"),
        ]

        result = await ledger.create_transactions(drafts)

        assert result.success_count == 3
        ops_account = await temp_db.get_account(ops.id)
        assert ops_account.current_balance == Decimal("506.00")
        assert ops_account.year_end_balances == {2023: Decimal("510.00"), 2024: Decimal("506.00")}
        assert (await temp_db.get_account(events.id)).current_balance == Decimal("7.00")

    async def test_delete_transactions(self, ledger, temp_db, sample_account):
        """Test bulk delete refreshes the account afterwards."""
        ids = await seed_scenario(ledger, sample_account.id)

        result = await ledger.delete_transactions(ids[:2])

        assert sorted(result.succeeded) == sorted(ids[:2])
        assert (await temp_db.get_account(sample_account.id)).current_balance == Decimal("1300.00")


class TestMaintenance:
    """Tests for refresh, sync and validate."""

    async def test_refresh_account_repairs_stale_balance(self, ledger, temp_db, sample_account):
        """Test the stored balance is recomputed from history."""
        await seed_scenario(ledger, sample_account.id)
        await temp_db.update_account_balance(sample_account.id, Decimal("0.00"))

        assert await ledger.refresh_account(sample_account.id) == Decimal("1600.00")
        assert (await temp_db.get_account(sample_account.id)).current_balance == Decimal("1600.00")

    async def test_refresh_unknown_account(self, ledger):
        """Test refreshing a missing account raises."""
        with pytest.raises(NotFoundError):
            await ledger.refresh_account(31)

    async def test_sync_all_account_balances(self, ledger, temp_db, sample_accounts):
        """Test every account is recomputed."""
        for account in sample_accounts:
            await temp_db.update_account_balance(account.id, Decimal("1.23"))

        result = await ledger.sync_all_account_balances()

        assert result.succeeded == [account.id for account in sample_accounts]
        balances = [(await temp_db.get_account(a.id)).current_balance for a in sample_accounts]
        assert balances == [Decimal("500.00"), Decimal("0.00"), Decimal("2500.00")]

    async def test_validate_clean_ledger(self, ledger, sample_account):
        """Test a ledger maintained through the service validates."""
        await seed_scenario(ledger, sample_account.id)
        report = await ledger.validate()
        assert report.is_valid, report.errors

    async def test_validate_reports_stale_balance_and_cache(self, ledger, temp_db, sample_account):
        """Test stale stored values are reported by the combined check."""
        await seed_scenario(ledger, sample_account.id)
        await temp_db.update_account_balance(sample_account.id, Decimal("1.00"))
        await temp_db.set_year_end_balance(sample_account.id, 2024, Decimal("2.00"))

        report = await ledger.validate()

        assert not report.is_valid
        assert len(report.errors) == 2
        assert "current balance 1.00" in report.errors[0]
        assert "year 2024" in report.errors[1]
