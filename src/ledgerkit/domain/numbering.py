"""Transaction number allocation.

Numbers look like ``TXN-2024-5678-0042``: fiscal year, last four digits of
the bank account number, and a sequence that is unique per account and year.
"""

import re
import time
from datetime import date
from typing import Callable, Optional, Protocol, Sequence, Union

from ledgerkit.database.base import Database
from ledgerkit.domain.errors import (
    NotFoundError,
    SequenceCapacityError,
    ValidationError,
    account_not_found,
)
from ledgerkit.logging import get_logger
from ledgerkit.utils.date_parser import DateResolver, default_resolver

logger = get_logger(__name__)

MAX_SEQUENCE = 9999
FALLBACK_SUFFIX = "0000"


class NumberRequest(Protocol):
    bank_account_id: int
    transaction_date: Union[str, date]


def account_suffix(account_number: Optional[str]) -> str:
    """Last four digits of an account number, left-padded with zeros."""
    digits = re.sub(r"\D", "", account_number or "")
    return digits[-4:].zfill(4)


def number_prefix(year: int, suffix: str) -> str:
    return f"TXN-{year:04d}-{suffix}-"


def format_transaction_number(year: int, suffix: str, sequence: int) -> str:
    return f"{number_prefix(year, suffix)}{sequence:04d}"


def parse_sequence(transaction_number: str, prefix: str) -> Optional[int]:
    """Sequence part of a number under ``prefix``, if it is exactly 4 digits."""
    if not transaction_number.startswith(prefix):
        return None
    tail = transaction_number[len(prefix):]
    if len(tail) == 4 and tail.isdigit():
        return int(tail)
    return None


class TransactionNumberAllocator:
    """Derive the next unique transaction numbers for (account, year) scopes."""

    def __init__(
        self,
        db: Database,
        resolver: DateResolver = default_resolver,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the allocator.

        Args:
            db: Database instance
            resolver: Date resolver used to find each draft's fiscal year
            clock: Time source for degraded fallback numbers
        """
        self.db = db
        self.resolver = resolver
        self.clock = clock

    def year_of(self, transaction_date: Union[str, date]) -> int:
        result = self.resolver.resolve(transaction_date)
        if not result.ok:
            raise ValidationError(f"Cannot number transaction: {result.error}")
        return result.value.year

    async def allocate(self, bank_account_id: int, transaction_date: Union[str, date]) -> str:
        """Allocate the next number for a single transaction."""
        year = self.year_of(transaction_date)
        numbers = await self._allocate_groups([(bank_account_id, year)])
        return numbers[0]

    async def allocate_batch(self, requests: Sequence[NumberRequest]) -> list[str]:
        """Allocate numbers for many transactions at once.

        Returns one number per request, in request order. Requests sharing an
        account and year receive consecutive sequences in input order.

        Raises:
            ValidationError: If a request's date cannot be resolved
            SequenceCapacityError: If a scope would pass sequence 9999
        """
        keys = [(r.bank_account_id, self.year_of(r.transaction_date)) for r in requests]
        return await self._allocate_groups(keys)

    async def _allocate_groups(self, keys: list[tuple[int, int]]) -> list[str]:
        groups: dict[tuple[int, int], list[int]] = {}
        for position, key in enumerate(keys):
            groups.setdefault(key, []).append(position)

        numbers: list[Optional[str]] = [None] * len(keys)
        for (account_id, year), positions in groups.items():
            try:
                suffix, max_sequence = await self._scope_state(account_id, year)
            except Exception as e:
                logger.warning(
                    "transaction_number_fallback",
                    bank_account_id=account_id,
                    year=year,
                    count=len(positions),
                    error=str(e),
                )
                for position in positions:
                    numbers[position] = self._fallback_number(year, position)
                continue

            if max_sequence + len(positions) > MAX_SEQUENCE:
                raise SequenceCapacityError(
                    f"Bank account {account_id} has no transaction numbers left for {year} "
                    f"(highest sequence {max_sequence}, {len(positions)} requested)"
                )
            for offset, position in enumerate(positions, start=1):
                numbers[position] = format_transaction_number(year, suffix, max_sequence + offset)
        return numbers

    async def _scope_state(self, account_id: int, year: int) -> tuple[str, int]:
        account = await self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        suffix = account_suffix(account.account_number)
        prefix = number_prefix(year, suffix)
        existing = await self.db.list_transaction_numbers(account_id, prefix)
        sequences = [s for s in (parse_sequence(n, prefix) for n in existing) if s is not None]
        return suffix, max(sequences, default=0)

    def _fallback_number(self, year: int, position: int) -> str:
        # Not unique: callers get a usable number instead of an error.
        stamp = str(int(self.clock() * 1000) + position)[-4:]
        return format_transaction_number(year, FALLBACK_SUFFIX, int(stamp))
