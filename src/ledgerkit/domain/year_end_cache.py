"""Year-end balance cache service."""

from decimal import Decimal
from typing import Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.balance import year_end_balances
from ledgerkit.domain.entities import ValidationReport
from ledgerkit.domain.errors import NotFoundError, account_not_found
from ledgerkit.logging import get_logger

logger = get_logger(__name__)


class YearEndBalanceCache:
    """Owner of the cached closing balance of each account and year.

    Entries are written by ``initialize_all`` and by ``refresh`` after ledger
    mutations. ``validate_all`` reports stale entries but never rewrites them.
    """

    def __init__(self, db: Database, tolerance: Decimal = Decimal("0.01")):
        """Initialize the cache.

        Args:
            db: Database instance
            tolerance: Largest difference accepted by validate_all
        """
        self.db = db
        self.tolerance = tolerance

    async def get(self, account_id: int, year: int) -> Optional[Decimal]:
        """Cached closing balance, or None on a miss."""
        balances = await self.db.get_year_end_balances(account_id)
        return balances.get(year)

    async def set(self, account_id: int, year: int, balance: Decimal) -> None:
        await self.db.set_year_end_balance(account_id, year, balance)

    async def refresh(self, account_id: int, from_year: int) -> dict[int, Decimal]:
        """Recompute ``from_year`` and every later year of an account.

        Later years are those already cached or holding dated transactions;
        each closing balance carries every earlier year forward.

        Returns:
            Dictionary of the years written and their new balances

        Raises:
            NotFoundError: If the account doesn't exist
        """
        account = await self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        transactions = await self.db.list_transactions(bank_account_id=account_id)
        years = {from_year} | {year for year in account.year_end_balances if year > from_year}
        years |= {
            t.transaction_date.year
            for t in transactions
            if t.transaction_date is not None and t.transaction_date.year > from_year
        }
        fresh = year_end_balances(account, transactions, years)
        for year, balance in fresh.items():
            await self.db.set_year_end_balance(account_id, year, balance)
        return fresh

    async def initialize_all(self) -> dict[int, dict[int, Decimal]]:
        """Recompute and persist every account's closing balance per year.

        Years without dated transactions are not cached. Running this twice
        with no ledger changes in between writes identical values.

        Returns:
            Dictionary mapping account ID to its per-year closing balances
        """
        accounts = await self.db.list_accounts()
        transactions = await self.db.list_transactions()

        computed = {account.id: year_end_balances(account, transactions) for account in accounts}
        await self.db.replace_year_end_balances(computed)

        logger.info(
            "year_end_cache_initialized",
            accounts=len(computed),
            entries=sum(len(per_year) for per_year in computed.values()),
        )
        return computed

    async def validate_all(self) -> ValidationReport:
        """Compare every cached entry with a recomputation from full history."""
        accounts = await self.db.list_accounts()
        transactions = await self.db.list_transactions()

        errors = []
        for account in accounts:
            if not account.year_end_balances:
                continue
            computed = year_end_balances(account, transactions, account.year_end_balances)
            for year, cached in sorted(account.year_end_balances.items()):
                difference = abs(computed[year] - cached)
                if difference > self.tolerance:
                    errors.append(
                        f"Account {account.account_name} year {year}: "
                        f"computed {computed[year]:.2f}, cached {cached:.2f} "
                        f"(difference {difference:.2f})"
                    )

        if errors:
            logger.warning("year_end_cache_stale", mismatches=len(errors))
        return ValidationReport(is_valid=not errors, errors=errors)
