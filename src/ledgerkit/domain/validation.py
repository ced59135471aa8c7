"""Input validation shared by single and bulk transaction writes."""

from decimal import Decimal
from typing import Any, Optional

from ledgerkit.domain.entities import TransactionDraft
from ledgerkit.domain.errors import ValidationError, invalid_amounts
from ledgerkit.utils.amount_parser import to_money
from ledgerkit.utils.date_parser import DateResolver, format_date


def _row_prefix(row: Optional[int]) -> str:
    return f"Row {row}: " if row is not None else ""


def validate_amounts(income, expense, row: Optional[int] = None) -> tuple[Decimal, Decimal]:
    """Coerce income and expense to money and check exactly one is positive.

    Raises:
        ValidationError: If an amount is not a number, is negative, or both or
            neither amount is positive
    """
    try:
        income = to_money(income)
        expense = to_money(expense)
    except ValueError as e:
        raise ValidationError(f"{_row_prefix(row)}{e}") from e
    if income < 0 or expense < 0 or (income > 0) == (expense > 0):
        raise ValidationError(invalid_amounts(income, expense, row))
    return income, expense


def draft_fields(draft: TransactionDraft, resolver: DateResolver, row: Optional[int] = None) -> dict[str, Any]:
    """Validate a draft and return the column values to store for it.

    The date is stored in the canonical DD-MMM-YYYY form.

    Raises:
        ValidationError: If the draft cannot be stored
    """
    if draft.bank_account_id is None:
        raise ValidationError(f"{_row_prefix(row)}bank account is required")
    income, expense = validate_amounts(draft.income, draft.expense, row)
    result = resolver.resolve(draft.transaction_date)
    if not result.ok:
        raise ValidationError(f"{_row_prefix(row)}{result.error}")

    return {
        "bank_account_id": draft.bank_account_id,
        "transaction_date": format_date(result.value),
        "income": income,
        "expense": expense,
        **draft.descriptive_fields(),
    }
