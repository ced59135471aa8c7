"""Ledger service: the entry point for transaction writes and balance queries.

Every write goes through here so the denormalized balances stay in step:
after a mutation the affected accounts' ``current_balance`` is recomputed and
the year-end cache is refreshed from the affected year onwards.
"""

import asyncio
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from ledgerkit.config import LedgerSettings, resolve_settings
from ledgerkit.database.base import Database
from ledgerkit.domain.balance import (
    account_balance_info,
    balance_report,
    optimized_balances,
    running_balances,
    sort_transactions,
    year_start_balance,
)
from ledgerkit.domain.bulk import BulkWriteCoordinator, DeleteProgressCallback, ProgressCallback
from ledgerkit.domain.consistency import validate_consistency, validate_current_balances
from ledgerkit.domain.entities import (
    CATEGORICAL_FIELDS,
    AccountBalanceInfo,
    BalanceReport,
    BulkResult,
    Transaction,
    TransactionDraft,
    ValidationReport,
)
from ledgerkit.domain.errors import (
    NotFoundError,
    ValidationError,
    account_not_found,
    transaction_not_found,
)
from ledgerkit.domain.numbering import TransactionNumberAllocator
from ledgerkit.domain.validation import draft_fields, validate_amounts
from ledgerkit.domain.year_end_cache import YearEndBalanceCache
from ledgerkit.logging import get_logger
from ledgerkit.utils.date_parser import DateResolver, format_date

logger = get_logger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "bank_account_id",
        "transaction_date",
        "income",
        "expense",
        "main_description",
        "sub_description",
        "notes",
        "input_by",
        *CATEGORICAL_FIELDS,
    }
)


def _earliest(first: Optional[int], second: Optional[int]) -> Optional[int]:
    years = [year for year in (first, second) if year is not None]
    return min(years) if years else None


class LedgerService:
    """Service for ledger writes and balance queries."""

    def __init__(
        self,
        db: Database,
        settings: Optional[LedgerSettings] = None,
        allocator: Optional[TransactionNumberAllocator] = None,
        cache: Optional[YearEndBalanceCache] = None,
        coordinator: Optional[BulkWriteCoordinator] = None,
    ):
        """Initialize ledger service.

        Args:
            db: Database instance
            settings: Engine settings. Defaults to get_settings().
            allocator: Transaction number allocator
            cache: Year-end balance cache
            coordinator: Bulk write coordinator
        """
        self.db = db
        self.settings = resolve_settings(settings)
        self.resolver = DateResolver(self.settings.date_formats)
        self.allocator = allocator or TransactionNumberAllocator(db, self.resolver)
        self.cache = cache or YearEndBalanceCache(db, self.settings.balance_tolerance)
        self.coordinator = coordinator or BulkWriteCoordinator(db, self.allocator, self.settings)

    async def _require_account(self, account_id: int):
        account = await self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        return account

    async def _require_transaction(self, transaction_id: int) -> Transaction:
        transaction = await self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return transaction

    async def _after_change(self, affected: dict[int, Optional[int]]) -> None:
        """Refresh balances of changed accounts.

        The write has already been committed when this runs, so a failed
        refresh is logged and left for sync_all_account_balances() to repair.

        Args:
            affected: Account ID mapped to the earliest changed year, or None
                when no changed transaction has a parsable date
        """
        for account_id, year in affected.items():
            try:
                await self.refresh_account(account_id)
                if year is not None:
                    await self.cache.refresh(account_id, year)
            except Exception as e:
                logger.warning(
                    "balance_refresh_failed", bank_account_id=account_id, from_year=year, error=str(e)
                )

    def _collect(self, affected: dict[int, Optional[int]], account_id: int, year: Optional[int]) -> None:
        if account_id in affected:
            affected[account_id] = _earliest(affected[account_id], year)
        else:
            affected[account_id] = year

    # Single writes
    async def create_transaction(self, draft: TransactionDraft) -> int:
        """Create a transaction with the next number for its account and year.

        Returns:
            Transaction ID

        Raises:
            ValidationError: If the draft is invalid
            NotFoundError: If the bank account doesn't exist
        """
        fields = draft_fields(draft, self.resolver)
        await self._require_account(draft.bank_account_id)

        number = await self.allocator.allocate(draft.bank_account_id, fields["transaction_date"])
        transaction_id = await self.db.create_transaction(transaction_number=number, **fields)
        logger.debug("transaction_created", transaction_id=transaction_id, transaction_number=number)

        year = self.resolver.resolve(fields["transaction_date"]).value.year
        await self._after_change({draft.bank_account_id: year})
        return transaction_id

    async def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        return await self.db.get_transaction(transaction_id)

    async def update_transaction(self, transaction_id: int, **changes: Any) -> None:
        """Update a transaction.

        The transaction number never changes, even when the transaction moves
        to another bank account.

        Raises:
            NotFoundError: If the transaction or the new bank account doesn't exist
            ValidationError: If a field is unknown or the result is invalid
        """
        current = await self._require_transaction(transaction_id)

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update transaction fields: {', '.join(sorted(unknown))}")
        if not changes:
            return
        for name in ("main_description", "bank_account_id", "transaction_date", "income", "expense"):
            if name in changes and changes[name] is None:
                raise ValidationError(f"{name} cannot be empty")

        updates = dict(changes)
        if "income" in changes or "expense" in changes:
            updates["income"], updates["expense"] = validate_amounts(
                changes.get("income", current.income),
                changes.get("expense", current.expense),
            )

        new_year = current.transaction_date.year if current.transaction_date else None
        if "transaction_date" in changes:
            result = self.resolver.resolve(changes["transaction_date"])
            if not result.ok:
                raise ValidationError(result.error)
            updates["transaction_date"] = format_date(result.value)
            new_year = result.value.year

        new_account_id = changes.get("bank_account_id", current.bank_account_id)
        if new_account_id != current.bank_account_id:
            await self._require_account(new_account_id)

        await self.db.update_transaction(transaction_id, **updates)

        old_year = current.transaction_date.year if current.transaction_date else None
        affected: dict[int, Optional[int]] = {}
        self._collect(affected, current.bank_account_id, old_year)
        self._collect(affected, new_account_id, new_year)
        await self._after_change(affected)

    async def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction together with its splits.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        current = await self._require_transaction(transaction_id)

        batch = self.db.batch()
        for split in await self.db.list_splits([transaction_id]):
            batch.delete_split(split.id)
        batch.delete_transaction(transaction_id)
        await batch.commit()

        year = current.transaction_date.year if current.transaction_date else None
        await self._after_change({current.bank_account_id: year})

    # Bulk writes
    async def create_transactions(
        self,
        drafts: Sequence[TransactionDraft],
        on_progress: Optional[ProgressCallback] = None,
        max_retries: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BulkResult:
        """Create many transactions, then refresh every affected account once."""
        result = await self.coordinator.create_many(
            drafts, on_progress=on_progress, max_retries=max_retries, cancel_event=cancel_event
        )

        affected: dict[int, Optional[int]] = {}
        for position in result.succeeded:
            draft = drafts[position]
            value = self.resolver.resolve_or_none(draft.transaction_date)
            self._collect(affected, draft.bank_account_id, value.year if value else None)
        await self._after_change(affected)
        return result

    async def delete_transactions(
        self,
        transaction_ids: Sequence[int],
        on_progress: Optional[DeleteProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BulkResult:
        """Delete many transactions, then refresh every affected account once."""
        existing = {t.id: t for t in await self.db.list_transactions(transaction_ids=transaction_ids)}
        result = await self.coordinator.delete_many(
            transaction_ids, on_progress=on_progress, cancel_event=cancel_event
        )

        affected: dict[int, Optional[int]] = {}
        for transaction_id in result.succeeded:
            transaction = existing.get(transaction_id)
            if transaction is None:
                continue
            year = transaction.transaction_date.year if transaction.transaction_date else None
            self._collect(affected, transaction.bank_account_id, year)
        await self._after_change(affected)
        return result

    # Balances
    async def refresh_account(self, account_id: int) -> Decimal:
        """Recompute and store an account's current balance from its full history.

        Returns:
            The new current balance

        Raises:
            NotFoundError: If the account doesn't exist
        """
        account = await self._require_account(account_id)
        transactions = await self.db.list_transactions(bank_account_id=account_id)
        balances = running_balances(transactions, account.initial_amount)
        balance = list(balances.values())[-1] if balances else account.initial_amount
        await self.db.update_account_balance(account_id, balance)
        return balance

    async def sync_all_account_balances(self) -> BulkResult:
        """Recompute the current balance of every account.

        Returns:
            BulkResult whose ``succeeded``/``failed`` hold account IDs
        """
        result = BulkResult()
        for account in await self.db.list_accounts():
            try:
                await self.refresh_account(account.id)
                result.succeeded.append(account.id)
            except Exception as e:
                logger.warning("account_sync_failed", account_id=account.id, error=str(e))
                result.failed.append(account.id)
                result.errors.append(f"Account {account.account_name}: {e}")
        logger.info("accounts_synced", succeeded=result.success_count, failed=result.failed_count)
        return result

    def _filter(
        self,
        transactions: Iterable[Transaction],
        account_id: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Transaction]:
        return [
            t
            for t in transactions
            if (account_id is None or t.bank_account_id == account_id)
            and (year is None or (t.transaction_date is not None and t.transaction_date.year == year))
        ]

    async def get_transactions(self, account_id: Optional[int] = None, year: Optional[int] = None) -> list[Transaction]:
        """List transactions in ledger order, optionally filtered by account and year."""
        transactions = await self.db.list_transactions(bank_account_id=account_id)
        return sort_transactions(self._filter(transactions, year=year))

    async def get_running_balances(
        self,
        year: Optional[int] = None,
        account_id: Optional[int] = None,
    ) -> dict[int, Decimal]:
        """Running balance of each transaction in the filtered view.

        With a year filter, balances start from each account's balance at the
        start of that year.
        """
        all_transactions = await self.db.list_transactions()
        accounts = await self.db.list_accounts()
        filtered = self._filter(all_transactions, account_id, year)
        balances = optimized_balances(filtered, all_transactions, accounts, year)
        wanted = {t.id for t in filtered}
        return {transaction_id: balance for transaction_id, balance in balances.items() if transaction_id in wanted}

    async def get_account_balance_info(self, account_id: int, year: Optional[int] = None) -> AccountBalanceInfo:
        """Statement of one account, optionally restricted to one year.

        Raises:
            NotFoundError: If the account doesn't exist
        """
        account = await self._require_account(account_id)
        all_transactions = await self.db.list_transactions(bank_account_id=account_id)
        start = None
        if year is not None:
            start = year_start_balance(account, year, all_transactions)
        return account_balance_info(
            account_id, self._filter(all_transactions, year=year), [account], starting_balance=start
        )

    async def get_balance_report(self, year: Optional[int] = None) -> BalanceReport:
        all_transactions = await self.db.list_transactions()
        accounts = await self.db.list_accounts()
        return balance_report(
            self._filter(all_transactions, year=year),
            all_transactions,
            accounts,
            year_filter=year,
            tolerance=self.settings.balance_tolerance,
        )

    async def validate(self) -> ValidationReport:
        """Run every consistency check and combine their errors."""
        transactions = await self.db.list_transactions()
        accounts = await self.db.list_accounts()
        tolerance = self.settings.balance_tolerance

        errors = []
        for report in (
            validate_consistency(transactions, accounts, tolerance),
            validate_current_balances(transactions, accounts, tolerance),
            await self.cache.validate_all(),
        ):
            errors.extend(report.errors)
        return ValidationReport(is_valid=not errors, errors=errors)
