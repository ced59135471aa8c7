"""Mapper functions to convert between domain models and SQLAlchemy models.

This is the schema boundary: rows that cannot be represented by a domain
entity raise SchemaError here instead of leaking half-filled objects.
"""

from decimal import Decimal
from typing import Mapping, Optional

from ledgerkit.domain import entities as domain
from ledgerkit.domain.errors import SchemaError
from ledgerkit.database.models import (
    BankAccount as ORMBankAccount,
    Transaction as ORMTransaction,
    TransactionSplit as ORMTransactionSplit,
)
from ledgerkit.utils.amount_parser import to_money
from ledgerkit.utils.date_parser import DateResolver, default_resolver


def _money(value, field_name: str, record: str, allow_negative: bool = True) -> Decimal:
    try:
        amount = to_money(value)
    except ValueError as e:
        raise SchemaError(f"{record}: invalid {field_name}: {e}") from e
    if not allow_negative and amount < 0:
        raise SchemaError(f"{record}: {field_name} must not be negative (got {amount})")
    return amount


def account_to_domain(
    orm_account: ORMBankAccount,
    year_end_balances: Optional[Mapping[int, Decimal]] = None,
) -> domain.BankAccount:
    """Convert SQLAlchemy BankAccount model to domain BankAccount entity."""
    record = f"Bank account {orm_account.id}"
    if not orm_account.account_name:
        raise SchemaError(f"{record}: missing account name")
    if year_end_balances is None:
        year_end_balances = {row.year: row.balance for row in orm_account.year_end_balances}
    return domain.BankAccount(
        id=orm_account.id,
        account_name=orm_account.account_name,
        account_number=orm_account.account_number,
        initial_amount=_money(orm_account.initial_amount, "initial amount", record),
        current_balance=_money(orm_account.current_balance, "current balance", record),
        created_at=orm_account.created_at,
        updated_at=orm_account.updated_at,
        account_type=orm_account.account_type or "other",
        bank_name=orm_account.bank_name,
        description=orm_account.description,
        is_active=bool(orm_account.is_active),
        year_end_balances={
            int(year): _money(balance, f"year-end balance {year}", record)
            for year, balance in year_end_balances.items()
        },
    )


def transaction_to_domain(
    orm_transaction: ORMTransaction,
    resolver: DateResolver = default_resolver,
) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity.

    An unparsable date is kept as raw text with ``transaction_date=None`` so
    ordering can still place the row; a missing account reference or a
    negative amount is rejected.
    """
    record = f"Transaction {orm_transaction.id}"
    if orm_transaction.bank_account_id is None:
        raise SchemaError(f"{record}: missing bank account reference")
    raw_date = orm_transaction.transaction_date or ""
    return domain.Transaction(
        id=orm_transaction.id,
        bank_account_id=orm_transaction.bank_account_id,
        transaction_number=orm_transaction.transaction_number or None,
        transaction_date=resolver.resolve_or_none(raw_date),
        raw_date=raw_date,
        income=_money(orm_transaction.income, "income", record, allow_negative=False),
        expense=_money(orm_transaction.expense, "expense", record, allow_negative=False),
        main_description=orm_transaction.main_description or "",
        sub_description=orm_transaction.sub_description,
        payer_payee=orm_transaction.payer_payee,
        transaction_type=orm_transaction.transaction_type,
        project_account=orm_transaction.project_account,
        transaction_purpose=orm_transaction.transaction_purpose,
        notes=orm_transaction.notes,
        input_by=orm_transaction.input_by,
        created_at=orm_transaction.created_at,
        updated_at=orm_transaction.updated_at,
    )


def split_to_domain(orm_split: ORMTransactionSplit) -> domain.TransactionSplit:
    """Convert SQLAlchemy TransactionSplit model to domain TransactionSplit entity."""
    record = f"Split {orm_split.id}"
    return domain.TransactionSplit(
        id=orm_split.id,
        transaction_id=orm_split.transaction_id,
        split_index=orm_split.split_index,
        amount=_money(orm_split.amount, "amount", record),
        transaction_purpose=orm_split.transaction_purpose,
        project_account=orm_split.project_account,
        payer_payee=orm_split.payer_payee,
        transaction_type=orm_split.transaction_type,
        description=orm_split.description,
        notes=orm_split.notes,
        created_at=orm_split.created_at,
    )
