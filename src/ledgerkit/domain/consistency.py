"""Consistency checks for computed and stored balances.

``validate_consistency`` derives each account's closing balance twice, once
in closed form and once by accumulating running balances, so a mismatch
points at the calculator. ``validate_current_balances`` compares the stored
``current_balance`` against a recomputation, so a mismatch points at stale
data.
"""

from decimal import Decimal
from typing import Iterable, Sequence

from ledgerkit.domain.balance import ZERO, group_by_account, net_amount, running_balances
from ledgerkit.domain.entities import BankAccount, Transaction, ValidationReport

DEFAULT_TOLERANCE = Decimal("0.01")


def validate_consistency(
    transactions: Iterable[Transaction],
    accounts: Sequence[BankAccount],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ValidationReport:
    """Check that closed-form and accumulated balances agree for every account.

    Transactions that reference an account not in ``accounts`` are reported
    once per unknown account.
    """
    by_id = {account.id: account for account in accounts}
    errors = []
    for account_id, account_transactions in group_by_account(transactions).items():
        account = by_id.get(account_id)
        if account is None:
            errors.append(f"Bank account {account_id} not found ({len(account_transactions)} transactions)")
            continue

        expected = account.initial_amount + sum((net_amount(t) for t in account_transactions), ZERO)
        balances = running_balances(account_transactions, account.initial_amount)
        actual = list(balances.values())[-1] if balances else account.initial_amount

        difference = abs(actual - expected)
        if difference > tolerance:
            errors.append(
                f"Account {account.account_name} is inconsistent: "
                f"actual {actual:.2f}, expected {expected:.2f}, difference {difference:.2f}"
            )

    return ValidationReport(is_valid=not errors, errors=errors)


def validate_current_balances(
    transactions: Iterable[Transaction],
    accounts: Sequence[BankAccount],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ValidationReport:
    """Check each account's stored current balance against its transactions."""
    grouped = group_by_account(transactions)
    errors = []
    for account in accounts:
        computed = account.initial_amount + sum((net_amount(t) for t in grouped.get(account.id, [])), ZERO)
        difference = abs(account.current_balance - computed)
        if difference > tolerance:
            errors.append(
                f"Account {account.account_name} current balance {account.current_balance:.2f} "
                f"does not match computed {computed:.2f} (difference {difference:.2f})"
            )
    return ValidationReport(is_valid=not errors, errors=errors)
