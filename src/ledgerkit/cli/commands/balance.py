"""Balance maintenance and reporting commands."""

import asyncio

import click

from ledgerkit.domain.entities import ValidationReport
from ledgerkit.domain.ledger import LedgerService


@click.group()
def balance_group():
    """Recompute, cache and check balances."""
    pass


def _echo_report(ctx, report: ValidationReport, ok_message: str) -> None:
    if report.is_valid:
        click.echo(ok_message)
        return
    click.echo(f"Found {len(report.errors)} problem(s):", err=True)
    for error in report.errors:
        click.echo(f"  {error}", err=True)
    ctx.exit(1)


@balance_group.command("sync")
@click.pass_context
def sync_balances(ctx):
    """Recompute the current balance of every bank account."""
    ledger = LedgerService(ctx.obj["db"])
    result = asyncio.run(ledger.sync_all_account_balances())
    click.echo(f"Synced {result.success_count} account(s), {result.failed_count} failed")
    for error in result.errors:
        click.echo(f"  {error}", err=True)
    if result.failed_count:
        ctx.exit(1)


@balance_group.command("init-cache")
@click.pass_context
def init_cache(ctx):
    """Rebuild the year-end balance cache from full history."""
    ledger = LedgerService(ctx.obj["db"])
    computed = asyncio.run(ledger.cache.initialize_all())
    entries = sum(len(per_year) for per_year in computed.values())
    click.echo(f"Cached {entries} year-end balance(s) for {len(computed)} account(s)")


@balance_group.command("validate-cache")
@click.pass_context
def validate_cache(ctx):
    """Compare cached year-end balances with a recomputation."""
    ledger = LedgerService(ctx.obj["db"])
    report = asyncio.run(ledger.cache.validate_all())
    _echo_report(ctx, report, "Year-end balance cache is consistent.")


@balance_group.command("check")
@click.pass_context
def check_balances(ctx):
    """Run every balance consistency check."""
    ledger = LedgerService(ctx.obj["db"])
    report = asyncio.run(ledger.validate())
    _echo_report(ctx, report, "All balances are consistent.")


@balance_group.command("report")
@click.option("--year", type=int, help="Report on one year only")
@click.pass_context
def balance_report(ctx, year: int | None):
    """Summarize balances across all bank accounts."""
    ledger = LedgerService(ctx.obj["db"])
    report = asyncio.run(ledger.get_balance_report(year=year))

    title = f"Balance report {year}" if year else "Balance report"
    click.echo(f"\n{title}")
    click.echo("-" * 90)
    click.echo(f"{'Account':<25} {'Opening':>15} {'Net':>15} {'Closing':>15} {'Count':>8}")
    click.echo("-" * 90)
    for summary in report.accounts:
        click.echo(
            f"{summary.account_name[:25]:<25} {summary.initial_balance:>15,.2f} "
            f"{summary.net_amount:>15,.2f} {summary.running_balance:>15,.2f} {summary.transaction_count:>8d}"
        )
    click.echo("-" * 90)
    click.echo(
        f"{'TOTAL':<25} {report.total_initial_balance:>15,.2f} {report.total_net_amount:>15,.2f} "
        f"{report.total_running_balance:>15,.2f} {report.transaction_count:>8d}"
    )
    if not report.validation.is_valid:
        for error in report.validation.errors:
            click.echo(f"  {error}", err=True)


def register_commands(cli):
    """Register balance commands with main CLI."""
    cli.add_command(balance_group, name="balance")
