"""Bulk transaction writes with retries and partial-failure reporting."""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Sequence

from ledgerkit.config import LedgerSettings, resolve_settings
from ledgerkit.database.base import Database
from ledgerkit.domain.entities import BulkResult, DeleteProgress, Progress, TransactionDraft
from ledgerkit.domain.errors import DomainError, RetryExhaustedError, ValidationError, account_not_found
from ledgerkit.domain.numbering import TransactionNumberAllocator
from ledgerkit.domain.validation import draft_fields
from ledgerkit.logging import get_logger
from ledgerkit.utils.date_parser import DateResolver
from ledgerkit.utils.retry import retry_with_backoff

logger = get_logger(__name__)

ProgressCallback = Callable[[Progress], None]
DeleteProgressCallback = Callable[[DeleteProgress], None]


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def parallel_chunk_size(total: int) -> int:
    return _clamp(total // 20, 20, 100)


def parallel_concurrency(total: int) -> int:
    return _clamp(total // 200, 3, 8)


def _percentage(completed: int, total: int) -> int:
    return completed * 100 // total if total else 100


def _is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class _CreateProgress:
    """Monotonic progress counter shared by concurrently settling chunks."""

    def __init__(self, total: int, callback: Optional[ProgressCallback]):
        self.total = total
        self.completed = 0
        self.callback = callback

    def advance(self, count: int) -> None:
        self.completed += count
        if self.callback is not None:
            self.callback(Progress(self.completed, self.total, _percentage(self.completed, self.total)))


class BulkWriteCoordinator:
    """Create or delete many transactions, accounting for every item.

    Creation picks a strategy by input size: serial writes for small inputs,
    atomic chunks for medium ones, and waves of concurrent atomic chunks for
    large ones. Every input item ends up in exactly one of the result's
    ``succeeded`` or ``failed`` lists.
    """

    def __init__(
        self,
        db: Database,
        allocator: Optional[TransactionNumberAllocator] = None,
        settings: Optional[LedgerSettings] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize the coordinator.

        Args:
            db: Database instance
            allocator: Transaction number allocator. Defaults to one using the
                configured date formats.
            settings: Engine settings. Defaults to get_settings().
            sleep: Coroutine used for retry backoff and wave pauses
        """
        self.db = db
        self.settings = resolve_settings(settings)
        self.resolver = DateResolver(self.settings.date_formats)
        self.allocator = allocator or TransactionNumberAllocator(db, self.resolver)
        self.sleep = sleep or asyncio.sleep

    async def _retry(self, operation, label: str, max_retries: int):
        return await retry_with_backoff(
            operation,
            max_retries=max_retries,
            base_delay=self.settings.retry_base_delay,
            max_delay=self.settings.retry_max_delay,
            label=label,
            sleep=self.sleep,
        )

    async def prepare(self, drafts: Sequence[TransactionDraft]) -> list[dict[str, Any]]:
        """Validate every draft before anything is written.

        Returns:
            Column values per draft, in input order

        Raises:
            ValidationError: Naming the first row that cannot be stored
        """
        rows = [draft_fields(draft, self.resolver, row=index) for index, draft in enumerate(drafts, start=1)]

        known = {}
        for index, fields in enumerate(rows, start=1):
            account_id = fields["bank_account_id"]
            if account_id not in known:
                known[account_id] = await self.db.get_account(account_id) is not None
            if not known[account_id]:
                raise ValidationError(f"Row {index}: {account_not_found(account_id)}")
        return rows

    async def create_many(
        self,
        drafts: Sequence[TransactionDraft],
        on_progress: Optional[ProgressCallback] = None,
        max_retries: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BulkResult:
        """Create transactions from drafts.

        Args:
            drafts: Transactions to create
            on_progress: Called after every settled item or chunk
            max_retries: Retries per item or chunk. Defaults to the settings.
            cancel_event: When set, items not yet started are reported as
                failed instead of written

        Returns:
            BulkResult whose ``succeeded``/``failed`` hold input positions

        Raises:
            ValidationError: If any draft is invalid; nothing is written
            SequenceCapacityError: If an account/year runs out of numbers
        """
        if not drafts:
            return BulkResult()
        if max_retries is None:
            max_retries = self.settings.max_retries

        rows = await self.prepare(drafts)
        total = len(drafts)
        progress = _CreateProgress(total, on_progress)

        if total <= self.settings.serial_threshold:
            strategy = "serial"
            result = await self._create_serial(drafts, rows, progress, max_retries, cancel_event)
        elif total <= self.settings.batched_threshold:
            strategy = "batched"
            result = await self._create_batched(drafts, rows, progress, max_retries, cancel_event)
        else:
            strategy = "parallel"
            result = await self._create_parallel(drafts, rows, progress, max_retries, cancel_event)

        logger.info(
            "bulk_create_finished",
            strategy=strategy,
            total=total,
            succeeded=result.success_count,
            failed=result.failed_count,
        )
        return result

    def _cancelled(self, positions: Sequence[int], progress: _CreateProgress) -> BulkResult:
        progress.advance(len(positions))
        return BulkResult(
            failed=list(positions),
            errors=[f"Cancelled before {len(positions)} transactions were written"],
        )

    async def _create_serial(self, drafts, rows, progress, max_retries, cancel_event) -> BulkResult:
        result = BulkResult()
        for position, (draft, fields) in enumerate(zip(drafts, rows)):
            if _is_cancelled(cancel_event):
                result.merge(self._cancelled(range(position, len(drafts)), progress))
                break

            async def create_one(draft=draft, fields=fields):
                number = await self.allocator.allocate(draft.bank_account_id, draft.transaction_date)
                return await self.db.create_transaction(transaction_number=number, **fields)

            try:
                await self._retry(create_one, f"row {position + 1}", max_retries)
                result.succeeded.append(position)
            except (RetryExhaustedError, DomainError) as e:
                result.failed.append(position)
                result.errors.append(f"Row {position + 1}: {e}")
            progress.advance(1)
        return result

    async def _commit_chunk(self, index: int, positions, rows, numbers, progress, max_retries) -> BulkResult:
        async def commit():
            batch = self.db.batch()
            for position in positions:
                batch.add_transaction(transaction_number=numbers[position], **rows[position])
            return await batch.commit()

        try:
            await self._retry(commit, f"chunk {index}", max_retries)
            result = BulkResult(succeeded=list(positions))
        except (RetryExhaustedError, DomainError) as e:
            result = BulkResult(
                failed=list(positions),
                errors=[f"Chunk {index} ({len(positions)} transactions): {e}"],
            )
        progress.advance(len(positions))
        return result

    async def _create_batched(self, drafts, rows, progress, max_retries, cancel_event) -> BulkResult:
        numbers = await self.allocator.allocate_batch(drafts)
        size = self.settings.max_batch_size
        chunks = [range(start, min(start + size, len(drafts))) for start in range(0, len(drafts), size)]

        result = BulkResult()
        for index, positions in enumerate(chunks, start=1):
            if _is_cancelled(cancel_event):
                result.merge(self._cancelled(range(positions.start, len(drafts)), progress))
                break
            result.merge(await self._commit_chunk(index, positions, rows, numbers, progress, max_retries))
        return result

    async def _create_parallel(self, drafts, rows, progress, max_retries, cancel_event) -> BulkResult:
        # Allocated once so concurrently committed chunks cannot collide.
        numbers = await self.allocator.allocate_batch(drafts)
        total = len(drafts)
        size = min(parallel_chunk_size(total), self.settings.max_batch_size)
        concurrency = parallel_concurrency(total)
        chunks = [range(start, min(start + size, total)) for start in range(0, total, size)]
        logger.info("bulk_create_parallel", total=total, chunk_size=size, concurrency=concurrency)

        result = BulkResult()
        for wave_start in range(0, len(chunks), concurrency):
            if _is_cancelled(cancel_event):
                result.merge(self._cancelled(range(chunks[wave_start].start, total), progress))
                break

            wave = chunks[wave_start:wave_start + concurrency]
            outcomes = await asyncio.gather(
                *(
                    self._commit_chunk(wave_start + offset + 1, positions, rows, numbers, progress, max_retries)
                    for offset, positions in enumerate(wave)
                ),
                return_exceptions=True,
            )
            for offset, (positions, outcome) in enumerate(zip(wave, outcomes)):
                if isinstance(outcome, BaseException):
                    logger.error("chunk_crashed", chunk=wave_start + offset + 1, error=str(outcome))
                    progress.advance(len(positions))
                    outcome = BulkResult(
                        failed=list(positions),
                        errors=[f"Chunk {wave_start + offset + 1} ({len(positions)} transactions): {outcome}"],
                    )
                result.merge(outcome)

            if wave_start + concurrency < len(chunks):
                await self.sleep(self.settings.wave_pause)
        return result

    async def _delete_splits(self, transaction_ids: list[int]) -> list[str]:
        """Delete the splits of the given transactions, reporting rather than raising."""
        try:
            splits = await self.db.list_splits(transaction_ids)
        except Exception as e:
            return [f"Could not list splits: {e}"]

        errors = []
        size = self.settings.max_batch_size
        for start in range(0, len(splits), size):
            chunk = splits[start:start + size]
            batch = self.db.batch()
            for split in chunk:
                batch.delete_split(split.id)
            try:
                await batch.commit()
            except Exception as e:
                logger.warning("split_cleanup_failed", splits=len(chunk), error=str(e))
                errors.append(f"Could not delete {len(chunk)} splits: {e}")
        return errors

    async def delete_many(
        self,
        transaction_ids: Sequence[int],
        on_progress: Optional[DeleteProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BulkResult:
        """Delete transactions and their splits.

        Each batch deletes its transactions atomically; if that commit fails
        the batch falls back to one delete per transaction.

        Returns:
            BulkResult whose ``succeeded``/``failed`` hold transaction IDs

        Raises:
            ValidationError: If no transaction IDs are given
        """
        if not transaction_ids:
            raise ValidationError("No transactions selected for deletion")

        ids = list(transaction_ids)
        total = len(ids)
        size = self.settings.max_batch_size
        batches = [ids[start:start + size] for start in range(0, total, size)]
        processed = 0

        def report(step: str) -> None:
            if on_progress is not None:
                on_progress(DeleteProgress(processed, total, _percentage(processed, total), step))

        result = BulkResult()
        for number, batch_ids in enumerate(batches, start=1):
            if _is_cancelled(cancel_event):
                remaining = ids[processed:]
                result.failed.extend(remaining)
                result.errors.append(f"Cancelled before {len(remaining)} transactions were deleted")
                processed = total
                report("Cancelled")
                break

            report(f"Processing batch {number}/{len(batches)}")
            report(f"Removing splits of batch {number}")
            result.errors.extend(await self._delete_splits(batch_ids))

            report(f"Deleting transactions of batch {number}")
            batch = self.db.batch()
            for transaction_id in batch_ids:
                batch.delete_transaction(transaction_id)
            try:
                await batch.commit()
                result.succeeded.extend(batch_ids)
            except Exception as e:
                logger.warning("batch_delete_fallback", batch=number, size=len(batch_ids), error=str(e))
                for transaction_id in batch_ids:
                    try:
                        await self.db.delete_transaction(transaction_id)
                        result.succeeded.append(transaction_id)
                    except Exception as individual_error:
                        result.failed.append(transaction_id)
                        result.errors.append(f"Transaction {transaction_id}: {individual_error}")

            processed += len(batch_ids)
            report(f"Batch {number} complete")

        logger.info("bulk_delete_finished", total=total, succeeded=result.success_count, failed=result.failed_count)
        return result
