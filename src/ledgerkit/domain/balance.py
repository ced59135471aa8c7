"""Running-balance calculations.

Everything here is a pure function over entities already loaded from the
database; nothing performs I/O.
"""

from collections import defaultdict
from decimal import Decimal
from functools import cmp_to_key
from typing import Iterable, Optional, Sequence

from ledgerkit.domain.entities import (
    AccountBalanceInfo,
    AccountSummary,
    BalanceReport,
    BankAccount,
    Transaction,
    TransactionBalance,
)

ZERO = Decimal("0.00")


def net_amount(transaction: Transaction) -> Decimal:
    """Signed effect of a transaction on its account balance."""
    return transaction.income - transaction.expense


def format_net_amount(transaction: Transaction) -> str:
    """Format the net amount with an explicit sign, e.g. ``+$1.00``."""
    amount = net_amount(transaction)
    if amount >= 0:
        return f"+${amount:.2f}"
    return f"-${abs(amount):.2f}"


def compare_transactions(a: Transaction, b: Transaction) -> int:
    """Order two transactions oldest first.

    Transaction numbers decide when both are present. Otherwise the resolved
    dates decide, with unparsable dates after every parsable one.
    """
    if a.transaction_number and b.transaction_number:
        return (a.transaction_number > b.transaction_number) - (a.transaction_number < b.transaction_number)
    if a.transaction_date is None or b.transaction_date is None:
        return (a.transaction_date is None) - (b.transaction_date is None)
    return (a.transaction_date > b.transaction_date) - (a.transaction_date < b.transaction_date)


def sort_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    # sorted() is stable, so ties keep their input order
    return sorted(transactions, key=cmp_to_key(compare_transactions))


def group_by_account(transactions: Iterable[Transaction]) -> dict[int, list[Transaction]]:
    groups: dict[int, list[Transaction]] = defaultdict(list)
    for transaction in transactions:
        groups[transaction.bank_account_id].append(transaction)
    return dict(groups)


def running_balances(transactions: Iterable[Transaction], starting_balance: Decimal = ZERO) -> dict[int, Decimal]:
    """Balance after each transaction, keyed by transaction id in ledger order."""
    balance = starting_balance
    balances = {}
    for transaction in sort_transactions(transactions):
        balance += net_amount(transaction)
        balances[transaction.id] = balance
    return balances


def _dated_before(transaction: Transaction, year: int) -> bool:
    return transaction.transaction_date is not None and transaction.transaction_date.year < year


def year_start_balance(
    account: BankAccount,
    year: int,
    all_transactions: Iterable[Transaction],
    use_cache: bool = True,
) -> Decimal:
    """Balance of an account at the start of ``year``.

    Uses the cached closing balance of the previous year when there is one;
    otherwise sums every earlier transaction onto the initial amount.
    Transactions with unparsable dates cannot be placed in a year and are
    left out of the slow path.
    """
    if use_cache:
        cached = account.year_end_balances.get(year - 1)
        if cached is not None:
            return cached

    prior = [t for t in all_transactions if t.bank_account_id == account.id and _dated_before(t, year)]
    return account.initial_amount + sum((net_amount(t) for t in prior), ZERO)


def year_end_balances(
    account: BankAccount,
    all_transactions: Iterable[Transaction],
    years: Optional[Iterable[int]] = None,
) -> dict[int, Decimal]:
    """Closing balance of an account for each year, computed from full history.

    Args:
        account: Account to compute for
        all_transactions: Transactions of any accounts; others are ignored
        years: Years to compute. Defaults to every year the account has
            dated transactions in.

    Returns:
        Dictionary mapping year to closing balance, ascending by year
    """
    net_by_year: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for transaction in all_transactions:
        if transaction.bank_account_id == account.id and transaction.transaction_date is not None:
            net_by_year[transaction.transaction_date.year] += net_amount(transaction)

    wanted = sorted(set(years) if years is not None else net_by_year)
    closing = {}
    for year in wanted:
        closing[year] = account.initial_amount + sum(
            (net for y, net in net_by_year.items() if y <= year), ZERO
        )
    return closing


def balances_by_account(
    transactions: Iterable[Transaction],
    accounts: Sequence[BankAccount],
) -> dict[int, Decimal]:
    """Running balance of every transaction, each account starting from its initial amount.

    Transactions of unknown accounts start from zero.
    """
    initial = {account.id: account.initial_amount for account in accounts}
    balances = {}
    for account_id, account_transactions in group_by_account(transactions).items():
        balances.update(running_balances(account_transactions, initial.get(account_id, ZERO)))
    return balances


def optimized_balances(
    filtered_transactions: Iterable[Transaction],
    all_transactions: Sequence[Transaction],
    accounts: Sequence[BankAccount],
    year_filter: Optional[int] = None,
) -> dict[int, Decimal]:
    """Running balances for a (possibly year-filtered) view of the ledger.

    With a year filter, each account starts from its balance at the start of
    that year and only the filtered transactions are accumulated. Without one
    the whole history is accumulated from the initial amounts.
    """
    if year_filter is None:
        return balances_by_account(all_transactions, accounts)

    by_id = {account.id: account for account in accounts}
    balances = {}
    for account_id, account_transactions in group_by_account(filtered_transactions).items():
        account = by_id.get(account_id)
        if account is None:
            continue
        start = year_start_balance(account, year_filter, all_transactions)
        balances.update(running_balances(account_transactions, start))
    return balances


def _account_statement(
    account: BankAccount,
    transactions: Sequence[Transaction],
    starting_balance: Decimal,
) -> AccountBalanceInfo:
    ordered = sort_transactions(transactions)
    total_income = sum((t.income for t in ordered), ZERO)
    total_expense = sum((t.expense for t in ordered), ZERO)

    lines = []
    balance = starting_balance
    for transaction in ordered:
        amount = net_amount(transaction)
        balance += amount
        lines.append(
            TransactionBalance(
                transaction_id=transaction.id,
                transaction_number=transaction.transaction_number,
                transaction_date=transaction.transaction_date,
                description=transaction.main_description,
                income=transaction.income,
                expense=transaction.expense,
                net_amount=amount,
                running_balance=balance,
            )
        )

    return AccountBalanceInfo(
        account_id=account.id,
        account_name=account.account_name,
        initial_balance=starting_balance,
        final_balance=starting_balance + total_income - total_expense,
        total_income=total_income,
        total_expense=total_expense,
        net_amount=total_income - total_expense,
        transaction_count=len(ordered),
        transaction_balances=lines,
    )


def account_balance_info(
    account_id: int,
    transactions: Iterable[Transaction],
    accounts: Sequence[BankAccount],
    starting_balance: Optional[Decimal] = None,
) -> Optional[AccountBalanceInfo]:
    """Statement of one account, or None if the account is unknown.

    Args:
        account_id: Account to report on
        transactions: Transactions of any accounts; others are ignored
        accounts: Known accounts
        starting_balance: Opening balance. Defaults to the initial amount.
    """
    account = next((a for a in accounts if a.id == account_id), None)
    if account is None:
        return None
    own = [t for t in transactions if t.bank_account_id == account_id]
    start = account.initial_amount if starting_balance is None else starting_balance
    return _account_statement(account, own, start)


def balance_report(
    filtered_transactions: Sequence[Transaction],
    all_transactions: Sequence[Transaction],
    accounts: Sequence[BankAccount],
    year_filter: Optional[int] = None,
    tolerance: Decimal = Decimal("0.01"),
) -> BalanceReport:
    """Summarize balances of every account over a view of the ledger."""
    from ledgerkit.domain.consistency import validate_consistency

    grouped = group_by_account(filtered_transactions)
    summaries = []
    for account in accounts:
        if year_filter is None:
            start = account.initial_amount
        else:
            start = year_start_balance(account, year_filter, all_transactions)
        net = sum((net_amount(t) for t in grouped.get(account.id, [])), ZERO)
        summaries.append(
            AccountSummary(
                account_id=account.id,
                account_name=account.account_name,
                initial_balance=start,
                net_amount=net,
                running_balance=start + net,
                transaction_count=len(grouped.get(account.id, [])),
            )
        )

    return BalanceReport(
        total_initial_balance=sum((s.initial_balance for s in summaries), ZERO),
        total_net_amount=sum((net_amount(t) for t in filtered_transactions), ZERO),
        total_running_balance=sum((s.running_balance for s in summaries), ZERO),
        transaction_count=len(filtered_transactions),
        account_count=len(accounts),
        accounts=summaries,
        validation=validate_consistency(filtered_transactions, accounts, tolerance),
    )
