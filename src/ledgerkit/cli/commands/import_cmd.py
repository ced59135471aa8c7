"""CSV import command."""

import asyncio

import click

from ledgerkit.cli.account_resolution import resolve_account_or_exit
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.csv_import import CSVImportService
from ledgerkit.domain.entities import Progress
from ledgerkit.domain.errors import DomainError


@click.command("import")
@click.argument("csv_file", type=click.Path(exists=True))
@click.option("--account", help="Account name or ID for rows without an account column")
@click.pass_context
def import_csv(ctx, csv_file: str, account: str | None):
    """Import transactions from a CSV file.

    The file needs a date column and either an amount column (negative for
    expenses) or income/expense columns. Every row is validated before
    anything is written.
    """
    db = ctx.obj["db"]
    service = CSVImportService(db)

    account_id = None
    if account is not None:
        account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    with click.progressbar(length=100, label="Importing") as bar:

        def advance(progress: Progress) -> None:
            bar.update(progress.percentage - bar.pos)

        try:
            result = asyncio.run(service.import_csv(csv_file, default_account_id=account_id, on_progress=advance))
        except (DomainError, FileNotFoundError) as e:
            handle_domain_error(ctx, e)
            return

    click.echo("\nImport complete:")
    click.echo(f"  Imported: {result.success_count} transactions")
    if result.failed_count:
        click.echo(f"  Failed: {result.failed_count} transactions")
        for error in result.errors:
            click.echo(f"    {error}", err=True)
        ctx.exit(1)


def register_commands(cli):
    """Register import command with main CLI."""
    cli.add_command(import_csv)
