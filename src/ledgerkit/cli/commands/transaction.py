"""Transaction management commands."""

import asyncio

import click

from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.balance import format_net_amount
from ledgerkit.domain.entities import DeleteProgress, SplitDraft, TransactionDraft
from ledgerkit.domain.errors import DomainError
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.domain.split import SplitService
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date


@click.group()
def transaction_group():
    """Manage transactions."""
    pass


def _parse_amount_or_exit(ctx, value: str | None, label: str):
    if value is None:
        return None
    try:
        amount = parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)
    return amount


def _parse_date_or_exit(ctx, value: str | None):
    if value is None:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)


@transaction_group.command("add")
@click.option("--account", required=True, help="Account name or ID")
@click.option(
    "--date",
    required=True,
    help="Transaction date (DD-MMM-YYYY, YYYY-MM-DD or relative like 'today', 'yesterday')",
)
@click.option("--income", help="Income amount")
@click.option("--expense", help="Expense amount")
@click.option("--description", default="", help="Main description")
@click.option("--payer", help="Payer or payee")
@click.option("--type", "transaction_type", help="Transaction type")
@click.option("--project", help="Project account")
@click.option("--purpose", help="Transaction purpose")
@click.option("--notes", help="Notes")
@click.pass_context
def add_transaction(
    ctx,
    account: str,
    date: str,
    income: str | None,
    expense: str | None,
    description: str,
    payer: str | None,
    transaction_type: str | None,
    project: str | None,
    purpose: str | None,
    notes: str | None,
):
    """Add a transaction.

    Exactly one of --income or --expense must be given.

    Examples:
        ledgerkit transaction add --account 1 --date 15-Jan-2024 --income 500 --description "Membership fees"
        ledgerkit transaction add --account "Main Account" --date today --expense 42.50 --purpose Venue
    """
    db = ctx.obj["db"]
    ledger = LedgerService(db)
    account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    draft = TransactionDraft(
        bank_account_id=account_id,
        transaction_date=_parse_date_or_exit(ctx, date),
        income=_parse_amount_or_exit(ctx, income, "income") or 0,
        expense=_parse_amount_or_exit(ctx, expense, "expense") or 0,
        main_description=description,
        payer_payee=payer,
        transaction_type=transaction_type,
        project_account=project,
        transaction_purpose=purpose,
        notes=notes,
    )

    try:
        transaction_id = asyncio.run(ledger.create_transaction(draft))
        txn = asyncio.run(ledger.get_transaction(transaction_id))
        click.echo(f"Created transaction {transaction_id}")
        click.echo(f"  Number: {txn.transaction_number}")
        click.echo(f"  Date: {txn.raw_date}")
        click.echo(f"  Amount: {format_net_amount(txn)}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@transaction_group.command("list")
@click.option("--account", help="Account name or ID")
@click.option("--year", type=int, help="Only transactions dated in this year")
@click.option("--verbose", "-v", is_flag=True, help="Show categorization columns")
@click.pass_context
def list_transactions(ctx, account: str | None, year: int | None, verbose: bool):
    """List transactions in ledger order with running balances.

    With --year, running balances start from each account's balance at the
    start of that year.
    """
    db = ctx.obj["db"]
    ledger = LedgerService(db)

    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    transactions = asyncio.run(ledger.get_transactions(account_id=account_id, year=year))
    if not transactions:
        click.echo("No transactions found.")
        return
    balances = asyncio.run(ledger.get_running_balances(year=year, account_id=account_id))

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 110)
    click.echo(f"{'ID':<6} {'Number':<20} {'Date':<12} {'Amount':>14} {'Balance':>14}  Description")
    click.echo("-" * 110)
    for txn in transactions:
        balance = balances.get(txn.id)
        balance_str = f"{balance:,.2f}" if balance is not None else "-"
        click.echo(
            f"{txn.id:<6} {txn.transaction_number or 'N/A':<20} {txn.raw_date:<12} "
            f"{format_net_amount(txn):>14} {balance_str:>14}  {txn.main_description[:30]}"
        )
        if verbose:
            for label, value in (
                ("Payer/payee", txn.payer_payee),
                ("Type", txn.transaction_type),
                ("Project", txn.project_account),
                ("Purpose", txn.transaction_purpose),
                ("Notes", txn.notes),
            ):
                if value:
                    click.echo(f"{'':<6} {label}: {value}")

    total_income = sum(txn.income for txn in transactions)
    total_expense = sum(txn.expense for txn in transactions)
    click.echo("-" * 110)
    click.echo(f"Income: {total_income:,.2f} | Expense: {total_expense:,.2f} | Count: {len(transactions)}")


@transaction_group.command("update")
@click.argument("transaction_id", type=int)
@click.option("--account", help="Account name or ID (the transaction number is kept)")
@click.option("--date", help="Transaction date")
@click.option("--income", help="Income amount")
@click.option("--expense", help="Expense amount")
@click.option("--description", help="Main description")
@click.option("--payer", help="Payer or payee")
@click.option("--type", "transaction_type", help="Transaction type")
@click.option("--project", help="Project account")
@click.option("--purpose", help="Transaction purpose")
@click.option("--notes", help="Notes")
@click.pass_context
def update_transaction(
    ctx,
    transaction_id: int,
    account: str | None,
    date: str | None,
    income: str | None,
    expense: str | None,
    description: str | None,
    payer: str | None,
    transaction_type: str | None,
    project: str | None,
    purpose: str | None,
    notes: str | None,
) -> None:
    """Update a transaction.

    Updates only the fields that are provided.

    Examples:
        ledgerkit transaction update 1 --expense 75.00 --income 0
        ledgerkit transaction update 1 --account "Savings" --date 2024-02-01
    """
    db = ctx.obj["db"]
    ledger = LedgerService(db)

    changes = {
        "transaction_date": _parse_date_or_exit(ctx, date),
        "income": _parse_amount_or_exit(ctx, income, "income"),
        "expense": _parse_amount_or_exit(ctx, expense, "expense"),
        "main_description": description,
        "payer_payee": payer,
        "transaction_type": transaction_type,
        "project_account": project,
        "transaction_purpose": purpose,
        "notes": notes,
    }
    if account is not None:
        changes["bank_account_id"] = resolve_account_or_exit(ctx, AccountService(db), account)
    changes = {key: value for key, value in changes.items() if value is not None}

    try:
        asyncio.run(ledger.update_transaction(transaction_id, **changes))
        click.echo(f"Updated transaction {transaction_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@transaction_group.command("delete")
@click.argument("transaction_ids", type=int, nargs=-1, required=True)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_transactions(ctx, transaction_ids: tuple[int, ...], yes: bool) -> None:
    """Delete one or more transactions and their splits.

    Examples:
        ledgerkit transaction delete 1
        ledgerkit transaction delete 3 4 5 --yes
    """
    db = ctx.obj["db"]
    ledger = LedgerService(db)

    if not yes and not click.confirm(f"Are you sure you want to delete {len(transaction_ids)} transaction(s)?"):
        click.echo("Deletion cancelled.")
        return

    if len(transaction_ids) == 1:
        try:
            asyncio.run(ledger.delete_transaction(transaction_ids[0]))
            click.echo(f"Deleted transaction {transaction_ids[0]}")
        except DomainError as e:
            handle_domain_error(ctx, e)
        return

    def show_step(progress: DeleteProgress) -> None:
        click.echo(f"[{progress.percentage:3d}%] {progress.current_step}")

    try:
        result = asyncio.run(ledger.delete_transactions(list(transaction_ids), on_progress=show_step))
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"\nDeleted: {result.success_count} | Failed: {result.failed_count}")
    for error in result.errors:
        click.echo(f"  {error}", err=True)
    if result.failed_count:
        ctx.exit(1)


@transaction_group.command("split")
@click.argument("transaction_id", type=int)
@click.option(
    "--part",
    "parts",
    multiple=True,
    required=True,
    help="Split line as AMOUNT:PURPOSE[:PROJECT]; give at least two",
)
@click.pass_context
def split_transaction(ctx, transaction_id: int, parts: tuple[str, ...]) -> None:
    """Split a transaction across purposes.

    Examples:
        ledgerkit transaction split 7 --part 60:Venue --part 40:Catering:Gala
    """
    db = ctx.obj["db"]
    service = SplitService(db)

    splits = []
    for part in parts:
        amount, _, rest = part.partition(":")
        purpose, _, project = rest.partition(":")
        splits.append(
            SplitDraft(
                amount=_parse_amount_or_exit(ctx, amount, "split amount"),
                transaction_purpose=purpose or None,
                project_account=project or None,
            )
        )

    try:
        split_ids = asyncio.run(service.split_transaction(transaction_id, splits))
        click.echo(f"Split transaction {transaction_id} into {len(split_ids)} parts")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
