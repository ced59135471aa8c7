"""CLI helpers for bank account resolution."""

from __future__ import annotations

import asyncio

import click

from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.errors import DomainError
from ledgerkit.utils.account_resolver import resolve_account


def resolve_account_or_exit(
    ctx: click.Context, account_service: AccountService, account: str | int
) -> int:
    """Resolve account name or ID, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return asyncio.run(resolve_account(account_service, account))
    except DomainError as exc:
        handle_domain_error(ctx, exc)
