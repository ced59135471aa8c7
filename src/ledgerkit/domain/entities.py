"""Domain model entities for ledgerkit.

These are pure data classes representing ledger concepts, independent of
database schema. The persistence adapter maps stored rows onto them and
rejects rows that do not fit.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

CATEGORICAL_FIELDS = ("payer_payee", "transaction_type", "project_account", "transaction_purpose")

ACCOUNT_TYPES = ("savings", "current", "fixed_deposit", "investment", "other")


@dataclass(frozen=True)
class BankAccount:
    """Bank account domain entity.

    ``year_end_balances`` is a read-only snapshot of the year-end cache taken
    when the account was loaded.
    """

    id: int
    account_name: str
    account_number: Optional[str]
    initial_amount: Decimal
    current_balance: Decimal
    created_at: datetime
    updated_at: datetime
    account_type: str = "savings"
    bank_name: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    year_end_balances: Mapping[int, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class Transaction:
    """Transaction domain entity."""

    id: int
    bank_account_id: int
    transaction_number: Optional[str]
    transaction_date: Optional[date]
    raw_date: str
    income: Decimal
    expense: Decimal
    main_description: str = ""
    sub_description: Optional[str] = None
    payer_payee: Optional[str] = None
    transaction_type: Optional[str] = None
    project_account: Optional[str] = None
    transaction_purpose: Optional[str] = None
    notes: Optional[str] = None
    input_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class TransactionSplit:
    """Sub-allocation of a transaction's amount to one categorization."""

    id: int
    transaction_id: int
    split_index: int
    amount: Decimal
    transaction_purpose: Optional[str] = None
    project_account: Optional[str] = None
    payer_payee: Optional[str] = None
    transaction_type: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TransactionDraft:
    """A transaction that has not been persisted yet."""

    bank_account_id: int
    transaction_date: Union[str, date]
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    main_description: str = ""
    sub_description: Optional[str] = None
    payer_payee: Optional[str] = None
    transaction_type: Optional[str] = None
    project_account: Optional[str] = None
    transaction_purpose: Optional[str] = None
    notes: Optional[str] = None
    input_by: Optional[str] = None

    def descriptive_fields(self) -> dict[str, Any]:
        """Return the optional descriptive fields as keyword arguments."""
        return {
            "main_description": self.main_description or "",
            "sub_description": self.sub_description,
            "payer_payee": self.payer_payee,
            "transaction_type": self.transaction_type,
            "project_account": self.project_account,
            "transaction_purpose": self.transaction_purpose,
            "notes": self.notes,
            "input_by": self.input_by,
        }


@dataclass(frozen=True)
class SplitDraft:
    """A split line that has not been persisted yet."""

    amount: Decimal
    transaction_purpose: Optional[str] = None
    project_account: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Progress:
    """Progress of a bulk create."""

    completed: int
    total: int
    percentage: int


@dataclass(frozen=True)
class DeleteProgress:
    """Progress of a bulk delete, with a human-readable phase label."""

    completed: int
    total: int
    percentage: int
    current_step: str


@dataclass
class BulkResult:
    """Outcome of a bulk operation.

    ``succeeded`` and ``failed`` hold input positions for creates and
    transaction ids for deletes. Every input item lands in exactly one of them.
    """

    succeeded: list = field(default_factory=list)
    failed: list = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def merge(self, other: "BulkResult") -> None:
        """Fold another result into this one."""
        self.succeeded.extend(other.succeeded)
        self.failed.extend(other.failed)
        self.errors.extend(other.errors)


@dataclass(frozen=True)
class ValidationReport:
    """Result of a consistency or cache validation run."""

    is_valid: bool
    errors: list[str]


@dataclass(frozen=True)
class TransactionBalance:
    """One line of an account statement."""

    transaction_id: int
    transaction_number: Optional[str]
    transaction_date: Optional[date]
    description: str
    income: Decimal
    expense: Decimal
    net_amount: Decimal
    running_balance: Decimal


@dataclass(frozen=True)
class AccountBalanceInfo:
    """Statement of one account over a set of transactions."""

    account_id: int
    account_name: str
    initial_balance: Decimal
    final_balance: Decimal
    total_income: Decimal
    total_expense: Decimal
    net_amount: Decimal
    transaction_count: int
    transaction_balances: list[TransactionBalance]


@dataclass(frozen=True)
class AccountSummary:
    """Per-account line of a balance report."""

    account_id: int
    account_name: str
    initial_balance: Decimal
    net_amount: Decimal
    running_balance: Decimal
    transaction_count: int


@dataclass(frozen=True)
class BalanceReport:
    """Balances across all accounts, optionally restricted to one year."""

    total_initial_balance: Decimal
    total_net_amount: Decimal
    total_running_balance: Decimal
    transaction_count: int
    account_count: int
    accounts: list[AccountSummary]
    validation: ValidationReport
