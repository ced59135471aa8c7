"""Tests for the pure balance calculations."""

from datetime import date, datetime, UTC
from decimal import Decimal

from ledgerkit.domain.balance import (
    account_balance_info,
    balance_report,
    balances_by_account,
    format_net_amount,
    net_amount,
    optimized_balances,
    running_balances,
    sort_transactions,
    year_end_balances,
    year_start_balance,
)
from ledgerkit.domain.entities import BankAccount, Transaction

D = Decimal


def account(account_id=1, initial="1000.00", year_end=None, name=None):
    now = datetime.now(UTC)
    return BankAccount(
        id=account_id,
        account_name=name or f"Account {account_id}",
        account_number="1234",
        initial_amount=D(initial),
        current_balance=D(initial),
        created_at=now,
        updated_at=now,
        year_end_balances={year: D(value) for year, value in (year_end or {}).items()},
    )


def txn(txn_id, day, income="0", expense="0", number=None, account_id=1):
    return Transaction(
        id=txn_id,
        bank_account_id=account_id,
        transaction_number=number,
        transaction_date=day,
        raw_date=day.strftime("%d-%b-%Y") if day else "??",
        income=D(income).quantize(D("0.01")),
        expense=D(expense).quantize(D("0.01")),
        main_description=f"txn {txn_id}",
    )


def test_net_amount_and_format():
    """Test the signed net amount and its display form."""
    assert net_amount(txn(1, date(2024, 1, 1), income="5")) == D("5.00")
    assert format_net_amount(txn(1, date(2024, 1, 1), income="5")) == "+$5.00"
    assert format_net_amount(txn(2, date(2024, 1, 1), expense="12.5")) == "-$12.50"


def test_running_balances_scenario_a():
    """Test income 500, expense 200, income 300 on 1000.00 gives 1500, 1300, 1600."""
    transactions = [
        txn(3, date(2024, 1, 3), income="300"),
        txn(1, date(2024, 1, 1), income="500"),
        txn(2, date(2024, 1, 2), expense="200"),
    ]
    balances = running_balances(transactions, D("1000.00"))

    assert list(balances.items()) == [(1, D("1500.00")), (2, D("1300.00")), (3, D("1600.00"))]


def test_numbers_order_before_dates():
    """Test transaction numbers decide the order when both sides have one."""
    transactions = [
        txn(1, date(2024, 1, 1), income="1", number="TXN-2024-1234-0002"),
        txn(2, date(2024, 5, 1), income="1", number="TXN-2024-1234-0001"),
    ]
    assert [t.id for t in sort_transactions(transactions)] == [2, 1]


def test_unparsable_dates_sort_last():
    """Test transactions without a resolvable date go after dated ones."""
    transactions = [
        txn(1, None, income="1"),
        txn(2, date(2024, 12, 31), income="1"),
        txn(3, date(2020, 1, 1), income="1"),
    ]
    assert [t.id for t in sort_transactions(transactions)] == [3, 2, 1]


def test_duplicate_numbers_keep_input_order():
    """Test identical numbers (corrupt input) tie-break by input order without failing."""
    transactions = [
        txn(7, date(2024, 1, 1), income="10", number="TXN-2024-1234-0001"),
        txn(5, date(2024, 1, 1), expense="4", number="TXN-2024-1234-0001"),
        txn(6, date(2024, 1, 1), income="1", number="TXN-2024-1234-0001"),
    ]
    balances = running_balances(transactions, D("0.00"))

    assert list(balances) == [7, 5, 6]
    assert list(balances.values()) == [D("10.00"), D("6.00"), D("7.00")]
    assert running_balances(transactions, D("0.00")) == balances


def test_year_start_balance_prefers_cache():
    """Test the cached previous year-end is returned without scanning."""
    acc = account(year_end={2023: "4321.00"})
    transactions = [txn(1, date(2023, 6, 1), income="1")]
    assert year_start_balance(acc, 2024, transactions) == D("4321.00")
    assert year_start_balance(acc, 2024, transactions, use_cache=False) == D("1001.00")


def test_year_start_balance_slow_path():
    """Test the slow path sums earlier transactions of this account only."""
    acc = account()
    transactions = [
        txn(1, date(2022, 3, 1), income="100"),
        txn(2, date(2023, 12, 31), expense="50"),
        txn(3, date(2024, 1, 1), income="999"),
        txn(4, date(2023, 1, 1), income="777", account_id=2),
        txn(5, None, income="888"),
    ]
    assert year_start_balance(acc, 2024, transactions) == D("1050.00")
    assert year_start_balance(acc, 2022, transactions) == D("1000.00")


def test_year_end_balances_carry_forward():
    """Test each closing balance includes every earlier year."""
    acc = account()
    transactions = [
        txn(1, date(2022, 3, 1), income="100"),
        txn(2, date(2024, 2, 1), expense="30"),
    ]
    assert year_end_balances(acc, transactions) == {2022: D("1100.00"), 2024: D("1070.00")}
    assert year_end_balances(acc, transactions, [2023]) == {2023: D("1100.00")}


def test_round_trip_year_net_equals_year_end_minus_year_start():
    """Test a year's net amount equals its closing minus opening balance."""
    acc = account()
    transactions = [
        txn(1, date(2023, 5, 1), income="250"),
        txn(2, date(2024, 1, 10), expense="75.25"),
        txn(3, date(2024, 8, 10), income="20"),
    ]
    year_net = sum(net_amount(t) for t in transactions if t.transaction_date.year == 2024)
    closing = year_end_balances(acc, transactions, [2024])[2024]
    assert year_net == closing - year_start_balance(acc, 2024, transactions)


def test_balance_identity_across_accounts():
    """Test the last running balance equals initial plus total net for every account."""
    accounts = [account(1, "100.00"), account(2, "0.00")]
    transactions = [
        txn(1, date(2024, 1, 1), income="10", account_id=1),
        txn(2, date(2024, 1, 2), expense="3.33", account_id=2),
        txn(3, date(2024, 1, 3), expense="1.11", account_id=1),
        txn(4, date(2024, 1, 4), income="8", account_id=2),
    ]
    balances = balances_by_account(transactions, accounts)

    assert balances[3] == D("108.89")
    assert balances[4] == D("4.67")


def test_optimized_balances_with_year_filter():
    """Test a filtered year starts from that year's opening balance."""
    accounts = [account(1, "1000.00")]
    all_transactions = [
        txn(1, date(2023, 1, 1), income="500"),
        txn(2, date(2024, 1, 1), expense="200"),
        txn(3, date(2024, 1, 2), income="300"),
    ]
    filtered = all_transactions[1:]

    assert optimized_balances(filtered, all_transactions, accounts, 2024) == {
        2: D("1300.00"),
        3: D("1600.00"),
    }
    unfiltered = optimized_balances(filtered, all_transactions, accounts)
    assert unfiltered[1] == D("1500.00")
    assert unfiltered[3] == D("1600.00")


def test_account_balance_info():
    """Test the per-account statement lines and totals."""
    accounts = [account(1, "1000.00")]
    transactions = [
        txn(2, date(2024, 1, 2), expense="200"),
        txn(1, date(2024, 1, 1), income="500"),
        txn(9, date(2024, 1, 1), income="1", account_id=2),
    ]
    info = account_balance_info(1, transactions, accounts)

    assert info.transaction_count == 2
    assert info.total_income == D("500.00")
    assert info.total_expense == D("200.00")
    assert info.final_balance == D("1300.00")
    assert [line.running_balance for line in info.transaction_balances] == [D("1500.00"), D("1300.00")]
    assert account_balance_info(42, transactions, accounts) is None


def test_balance_report_totals():
    """Test the report summary over two accounts."""
    accounts = [account(1, "1000.00"), account(2, "50.00")]
    transactions = [
        txn(1, date(2024, 1, 1), income="500", account_id=1),
        txn(2, date(2024, 1, 2), expense="20", account_id=2),
    ]
    report = balance_report(transactions, transactions, accounts)

    assert report.total_initial_balance == D("1050.00")
    assert report.total_net_amount == D("480.00")
    assert report.total_running_balance == D("1530.00")
    assert report.transaction_count == 2
    assert report.account_count == 2
    assert [s.running_balance for s in report.accounts] == [D("1500.00"), D("30.00")]
    assert report.validation.is_valid


def test_balance_report_for_a_year_opens_at_year_start():
    """Test a year report opens each account at its start-of-year balance."""
    accounts = [account(1, "1000.00")]
    all_transactions = [
        txn(1, date(2023, 1, 1), income="500"),
        txn(2, date(2024, 1, 1), expense="200"),
    ]
    report = balance_report(all_transactions[1:], all_transactions, accounts, year_filter=2024)

    assert report.accounts[0].initial_balance == D("1500.00")
    assert report.accounts[0].running_balance == D("1300.00")
