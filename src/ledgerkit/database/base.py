"""Abstract database interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Literal, Optional

from ledgerkit.domain.errors import BatchLimitError

# Import entities directly to avoid circular import through domain/__init__.py
from ledgerkit.domain.entities import BankAccount, Transaction, TransactionSplit

DEFAULT_MAX_BATCH_SIZE = 500


@dataclass(frozen=True)
class BatchOperation:
    """One queued write inside a WriteBatch."""

    action: Literal["add", "update", "delete"]
    collection: Literal["transactions", "transaction_splits"]
    target_id: Optional[int] = None
    fields: dict[str, Any] = field(default_factory=dict)


class WriteBatch:
    """Queue of writes committed atomically by the owning database.

    Either every queued operation is applied or none is.
    """

    def __init__(self, db: "Database", max_operations: int = DEFAULT_MAX_BATCH_SIZE):
        self.db = db
        self.max_operations = max_operations
        self.operations: list[BatchOperation] = []

    def __len__(self) -> int:
        return len(self.operations)

    def _queue(self, operation: BatchOperation) -> None:
        if len(self.operations) >= self.max_operations:
            raise BatchLimitError(
                f"Write batch is limited to {self.max_operations} operations"
            )
        self.operations.append(operation)

    def add_transaction(self, **fields: Any) -> None:
        self._queue(BatchOperation("add", "transactions", fields=fields))

    def update_transaction(self, transaction_id: int, **fields: Any) -> None:
        self._queue(BatchOperation("update", "transactions", transaction_id, fields))

    def delete_transaction(self, transaction_id: int) -> None:
        self._queue(BatchOperation("delete", "transactions", transaction_id))

    def add_split(self, **fields: Any) -> None:
        self._queue(BatchOperation("add", "transaction_splits", fields=fields))

    def delete_split(self, split_id: int) -> None:
        self._queue(BatchOperation("delete", "transaction_splits", split_id))

    async def commit(self) -> list[int]:
        """Apply every queued operation atomically.

        Returns:
            IDs of the records added by the batch, in queue order
        """
        return await self.db.commit_batch(list(self.operations))


class Database(ABC):
    """Abstract persistence interface for ledgerkit.

    Every data access is a coroutine; connection lifecycle is synchronous.
    """

    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""
        return WriteBatch(self, self.max_batch_size)

    @abstractmethod
    async def commit_batch(self, operations: list[BatchOperation]) -> list[int]:
        """Apply operations in a single atomic unit. Returns added IDs."""
        pass

    # Bank account operations
    @abstractmethod
    async def create_account(
        self,
        account_name: str,
        account_number: Optional[str],
        initial_amount: Decimal,
        account_type: str = "savings",
        bank_name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        """Create a bank account. Returns account ID."""
        pass

    @abstractmethod
    async def get_account(self, account_id: int) -> Optional[BankAccount]:
        """Get bank account by ID, with its year-end balance snapshot."""
        pass

    @abstractmethod
    async def list_accounts(self) -> list[BankAccount]:
        """List all bank accounts."""
        pass

    @abstractmethod
    async def update_account(self, account_id: int, **fields: Any) -> None:
        """Update descriptive account fields."""
        pass

    @abstractmethod
    async def update_account_balance(self, account_id: int, current_balance: Decimal) -> None:
        """Store the denormalized current balance of an account."""
        pass

    @abstractmethod
    async def delete_account(self, account_id: int) -> None:
        """Delete a bank account and its year-end balances."""
        pass

    # Year-end balance operations
    @abstractmethod
    async def get_year_end_balances(self, account_id: int) -> dict[int, Decimal]:
        """Get cached year-end balances of an account keyed by year."""
        pass

    @abstractmethod
    async def set_year_end_balance(self, account_id: int, year: int, balance: Decimal) -> None:
        """Insert or replace one cached year-end balance."""
        pass

    @abstractmethod
    async def replace_year_end_balances(self, balances: dict[int, dict[int, Decimal]]) -> None:
        """Atomically replace the cached year-end balances of the given accounts."""
        pass

    # Transaction operations
    @abstractmethod
    async def create_transaction(self, **fields: Any) -> int:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        bank_account_id: Optional[int] = None,
        transaction_ids: Optional[Iterable[int]] = None,
    ) -> list[Transaction]:
        """List transactions ordered by transaction number, then ID.

        Rows that do not map onto a Transaction are skipped.
        """
        pass

    @abstractmethod
    async def list_transaction_numbers(self, bank_account_id: int, prefix: str) -> list[str]:
        """List the transaction numbers of an account that start with prefix."""
        pass

    @abstractmethod
    async def count_transactions(self, bank_account_id: int) -> int:
        """Count transactions of an account."""
        pass

    @abstractmethod
    async def update_transaction(self, transaction_id: int, **fields: Any) -> None:
        """Update transaction fields."""
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction."""
        pass

    # Split operations
    @abstractmethod
    async def create_split(self, transaction_id: int, split_index: int, amount: Decimal, **fields: Any) -> int:
        """Create a transaction split. Returns split ID."""
        pass

    @abstractmethod
    async def list_splits(self, transaction_ids: Iterable[int]) -> list[TransactionSplit]:
        """List splits of the given transactions ordered by split index."""
        pass

    @abstractmethod
    async def delete_split(self, split_id: int) -> None:
        """Delete a transaction split."""
        pass
