"""Utility for resolving bank account names to IDs."""

from ledgerkit.domain.account import AccountService
from ledgerkit.domain.errors import NotFoundError


async def resolve_account(account_service: AccountService, account: str | int) -> int:
    """Resolve bank account name or ID to account ID.

    Args:
        account_service: AccountService instance
        account: Account name (str) or ID (int or string representation of int)

    Returns:
        Account ID

    Raises:
        NotFoundError: If account is not found
    """
    # Try to parse as integer (handles string IDs like "1")
    try:
        account_id = int(account)
    except (ValueError, TypeError):
        account_id = None

    if account_id is not None:
        if await account_service.get_account(account_id) is None:
            raise NotFoundError(f"Bank account ID {account_id} not found")
        return account_id

    for acc in await account_service.list_accounts():
        if acc.account_name == account:
            return acc.id

    raise NotFoundError(f"Bank account '{account}' not found")
