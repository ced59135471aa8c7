"""Bank account management commands."""

import asyncio

import click

from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.entities import ACCOUNT_TYPES
from ledgerkit.domain.errors import DomainError
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.utils.amount_parser import parse_amount


@click.group()
def account_group():
    """Manage bank accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option("--number", help="Bank account number (last 4 digits appear in transaction numbers)")
@click.option("--initial", default="0", show_default=True, help="Opening balance")
@click.option("--type", "account_type", type=click.Choice(ACCOUNT_TYPES), default="savings", show_default=True)
@click.option("--bank", help="Bank name")
@click.option("--description", help="Description")
@click.pass_context
def create_account(
    ctx,
    name: str,
    number: str | None,
    initial: str,
    account_type: str,
    bank: str | None,
    description: str | None,
):
    """Create a new bank account.

    Examples:
        ledgerkit account create "Main Account" --number 1234-5678 --initial 1000
        ledgerkit account create "Fixed Deposit" --type fixed_deposit --bank "Maybank"
    """
    db = ctx.obj["db"]
    service = AccountService(db)

    try:
        initial_amount = parse_amount(initial)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    try:
        account_id = asyncio.run(
            service.create_account(
                account_name=name,
                account_number=number,
                initial_amount=initial_amount,
                account_type=account_type,
                bank_name=bank,
                description=description,
            )
        )
        click.echo(f"Created bank account '{name}' (ID: {account_id})")
    except DomainError as e:
        handle_domain_error(ctx, e)


@account_group.command("list")
@click.pass_context
def list_accounts(ctx):
    """List all bank accounts."""
    db = ctx.obj["db"]
    service = AccountService(db)

    accounts = asyncio.run(service.list_accounts())
    if not accounts:
        click.echo("No bank accounts found.")
        return

    click.echo("\nBank accounts:")
    click.echo("-" * 80)
    for acc in accounts:
        click.echo(
            f"ID: {acc.id:3d} | {acc.account_name:20s} | {acc.account_number or '-':>12s} | "
            f"Balance: {acc.current_balance:>14,.2f}"
        )


@account_group.command("show")
@click.argument("account", metavar="ACCOUNT")
@click.option("--year", type=int, help="Restrict the statement to one year")
@click.pass_context
def show_account(ctx, account: str, year: int | None):
    """Show a bank account statement with running balances.

    ACCOUNT can be an account name or ID.
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    account_id = resolve_account_or_exit(ctx, service, account)

    account_obj = asyncio.run(service.get_account(account_id))
    info = asyncio.run(LedgerService(db).get_account_balance_info(account_id, year=year))

    click.echo(f"\n{account_obj.account_name} (ID: {account_obj.id})")
    click.echo(f"  Number: {account_obj.account_number or '-'}")
    click.echo(f"  Type: {account_obj.account_type}")
    if account_obj.bank_name:
        click.echo(f"  Bank: {account_obj.bank_name}")
    click.echo(f"  Current balance: {account_obj.current_balance:,.2f}")
    for cached_year, balance in sorted(account_obj.year_end_balances.items()):
        click.echo(f"  Year-end {cached_year}: {balance:,.2f}")

    click.echo("-" * 100)
    click.echo(f"{'Number':<20} {'Date':<12} {'Income':>12} {'Expense':>12} {'Balance':>14}  Description")
    click.echo("-" * 100)
    click.echo(f"{'':<20} {'':<12} {'':>12} {'':>12} {info.initial_balance:>14,.2f}  Opening balance")
    for line in info.transaction_balances:
        click.echo(
            f"{line.transaction_number or 'N/A':<20} {str(line.transaction_date or '?'):<12} "
            f"{line.income:>12,.2f} {line.expense:>12,.2f} {line.running_balance:>14,.2f}  "
            f"{line.description[:30]}"
        )
    click.echo("-" * 100)
    click.echo(
        f"Income: {info.total_income:,.2f} | Expense: {info.total_expense:,.2f} | "
        f"Closing: {info.final_balance:,.2f} | Count: {info.transaction_count}"
    )


@account_group.command("update")
@click.argument("account", metavar="ACCOUNT")
@click.option("--name", help="New account name")
@click.option("--number", help="New account number")
@click.option("--type", "account_type", type=click.Choice(ACCOUNT_TYPES))
@click.option("--bank", help="New bank name")
@click.option("--description", help="New description")
@click.pass_context
def update_account(ctx, account: str, name, number, account_type, bank, description) -> None:
    """Update a bank account.

    ACCOUNT can be an account name or ID. Existing transaction numbers keep
    the old account number suffix.
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    account_id = resolve_account_or_exit(ctx, service, account)

    fields = {
        "account_name": name,
        "account_number": number,
        "account_type": account_type,
        "bank_name": bank,
        "description": description,
    }
    fields = {key: value for key, value in fields.items() if value is not None}
    if not fields:
        click.echo("Nothing to update.")
        return

    try:
        asyncio.run(service.update_account(account_id, **fields))
        click.echo(f"Updated bank account {account_id}")
    except DomainError as e:
        handle_domain_error(ctx, e)


@account_group.command("delete")
@click.argument("account", metavar="ACCOUNT")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_account(ctx, account: str, yes: bool) -> None:
    """Delete a bank account.

    ACCOUNT can be an account name or ID.

    The account can only be deleted if it has no transactions.

    Examples:
        ledgerkit account delete "Main Account"
        ledgerkit account delete 1 --yes
    """
    db = ctx.obj["db"]
    service = AccountService(db)
    account_id = resolve_account_or_exit(ctx, service, account)
    account_obj = asyncio.run(service.get_account(account_id))

    if not yes and not click.confirm(
        f"Are you sure you want to delete bank account '{account_obj.account_name}' (ID: {account_id})?"
    ):
        click.echo("Deletion cancelled.")
        return

    try:
        asyncio.run(service.delete_account(account_id))
        click.echo(f"Deleted bank account '{account_obj.account_name}'")
    except DomainError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
