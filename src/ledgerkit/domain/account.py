"""Bank account domain service."""

from decimal import Decimal
from typing import Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.entities import ACCOUNT_TYPES, BankAccount
from ledgerkit.domain.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
    account_delete_blocked,
    account_not_found,
)
from ledgerkit.utils.amount_parser import to_money

EDITABLE_FIELDS = ("account_name", "account_number", "account_type", "bank_name", "description", "is_active")


class AccountService:
    """Service for managing bank accounts."""

    def __init__(self, db: Database):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    async def _check_name_free(self, account_name: str, exclude_id: Optional[int] = None) -> None:
        for acc in await self.db.list_accounts():
            if acc.id != exclude_id and acc.account_name == account_name:
                raise ConflictError(f"Bank account with name '{account_name}' already exists")

    async def create_account(
        self,
        account_name: str,
        account_number: Optional[str] = None,
        initial_amount: Decimal = Decimal("0"),
        account_type: str = "savings",
        bank_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        """Create a new bank account.

        The current balance starts at the initial amount.

        Args:
            account_name: Unique account name
            account_number: Account number; its last four digits appear in
                transaction numbers
            initial_amount: Opening balance
            account_type: One of ACCOUNT_TYPES
            bank_name: Optional bank name
            description: Optional description

        Returns:
            Account ID

        Raises:
            ValidationError: If the name, type or amount is invalid
            ConflictError: If account name already exists
        """
        if not account_name or not account_name.strip():
            raise ValidationError("Account name is required")
        if account_type not in ACCOUNT_TYPES:
            raise ValidationError(
                f"Unknown account type '{account_type}' (expected one of {', '.join(ACCOUNT_TYPES)})"
            )
        try:
            initial_amount = to_money(initial_amount)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        await self._check_name_free(account_name)

        return await self.db.create_account(
            account_name=account_name,
            account_number=account_number,
            initial_amount=initial_amount,
            account_type=account_type,
            bank_name=bank_name,
            description=description,
        )

    async def get_account(self, account_id: int) -> Optional[BankAccount]:
        """Get bank account by ID.

        Args:
            account_id: Account ID

        Returns:
            BankAccount entity or None if not found
        """
        return await self.db.get_account(account_id)

    async def list_accounts(self) -> list[BankAccount]:
        return await self.db.list_accounts()

    async def update_account(self, account_id: int, **fields) -> None:
        """Update descriptive fields of a bank account.

        Balances are maintained by the ledger and cannot be set here.

        Raises:
            NotFoundError: If account not found
            ValidationError: If a field is not editable or invalid
            ConflictError: If the new name is taken
        """
        account = await self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        not_editable = [name for name in fields if name not in EDITABLE_FIELDS]
        if not_editable:
            raise ValidationError(f"Cannot update bank account fields: {', '.join(not_editable)}")
        if "account_type" in fields and fields["account_type"] not in ACCOUNT_TYPES:
            raise ValidationError(f"Unknown account type '{fields['account_type']}'")
        if "account_name" in fields:
            await self._check_name_free(fields["account_name"], exclude_id=account_id)

        # Existing transaction numbers keep the old account-number suffix.
        await self.db.update_account(account_id, **fields)

    async def delete_account(self, account_id: int) -> None:
        """Delete a bank account.

        Args:
            account_id: Account ID to delete

        Raises:
            NotFoundError: If account not found
            DependencyError: If the account still has transactions
        """
        account = await self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        transaction_count = await self.db.count_transactions(account_id)
        if transaction_count > 0:
            raise DependencyError(account_delete_blocked(account_id, transaction_count))

        await self.db.delete_account(account_id)
