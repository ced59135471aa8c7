"""Transaction split domain service."""

from decimal import Decimal
from typing import Sequence

from ledgerkit.database.base import Database
from ledgerkit.domain.entities import CATEGORICAL_FIELDS, SplitDraft, TransactionSplit
from ledgerkit.domain.errors import NotFoundError, ValidationError, transaction_not_found
from ledgerkit.utils.amount_parser import to_money


class SplitService:
    """Service for splitting a transaction across purposes.

    Splits only re-categorize a transaction; they never change balances.
    """

    def __init__(self, db: Database, tolerance: Decimal = Decimal("0.01")):
        """Initialize split service.

        Args:
            db: Database instance
            tolerance: Largest accepted gap between the split total and the
                transaction amount
        """
        self.db = db
        self.tolerance = tolerance

    async def split_transaction(self, transaction_id: int, splits: Sequence[SplitDraft]) -> list[int]:
        """Replace the splits of a transaction.

        Payer/payee and transaction type are copied from the transaction onto
        every split, and the transaction's own categorization is cleared.

        Args:
            transaction_id: Transaction to split
            splits: At least two split lines, each with a purpose

        Returns:
            IDs of the new splits in split order

        Raises:
            NotFoundError: If the transaction doesn't exist
            ValidationError: If the splits don't add up or are incomplete
        """
        transaction = await self.db.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(transaction_not_found(transaction_id))

        if len(splits) < 2:
            raise ValidationError("A transaction needs at least two splits")

        amounts = []
        for index, split in enumerate(splits, start=1):
            try:
                amount = to_money(split.amount)
            except ValueError as e:
                raise ValidationError(f"Split {index}: {e}") from e
            if amount <= 0:
                raise ValidationError(f"Split {index}: amount must be positive")
            if not split.transaction_purpose:
                raise ValidationError(f"Split {index}: transaction purpose is required")
            amounts.append(amount)

        expected = transaction.income + transaction.expense
        total = sum(amounts, Decimal("0.00"))
        if abs(total - expected) > self.tolerance:
            raise ValidationError(f"Split amounts total {total:.2f}, expected {expected:.2f}")

        # Old splits, new splits and the cleared parent commit together.
        batch = self.db.batch()
        for existing in await self.db.list_splits([transaction_id]):
            batch.delete_split(existing.id)
        for index, (split, amount) in enumerate(zip(splits, amounts), start=1):
            batch.add_split(
                transaction_id=transaction_id,
                split_index=index,
                amount=amount,
                transaction_purpose=split.transaction_purpose,
                project_account=split.project_account,
                payer_payee=transaction.payer_payee,
                transaction_type=transaction.transaction_type,
                description=split.description,
                notes=split.notes,
            )
        batch.update_transaction(transaction_id, **{name: None for name in CATEGORICAL_FIELDS})
        return await batch.commit()

    async def list_splits(self, transaction_id: int) -> list[TransactionSplit]:
        return await self.db.list_splits([transaction_id])

    async def delete_splits(self, transaction_id: int) -> int:
        """Delete every split of a transaction in one batch.

        Returns:
            Number of splits deleted
        """
        existing = await self.db.list_splits([transaction_id])
        if not existing:
            return 0
        batch = self.db.batch()
        for split in existing:
            batch.delete_split(split.id)
        await batch.commit()
        return len(existing)
