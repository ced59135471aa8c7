"""CSV import domain service."""

import asyncio
import csv
from pathlib import Path
from typing import Optional

from ledgerkit.database.base import Database
from ledgerkit.domain.bulk import ProgressCallback
from ledgerkit.domain.entities import BulkResult, TransactionDraft
from ledgerkit.domain.errors import ValidationError, account_not_found
from ledgerkit.domain.ledger import LedgerService
from ledgerkit.domain.validation import validate_amounts
from ledgerkit.utils.amount_parser import parse_amount

# Optional columns copied onto the draft as-is
TEXT_COLUMNS = (
    "main_description",
    "sub_description",
    "payer_payee",
    "transaction_type",
    "project_account",
    "transaction_purpose",
    "notes",
    "input_by",
)
COLUMN_ALIASES = {"description": "main_description"}


class CSVImportService:
    """Service for importing transactions from CSV files.

    Required columns are ``date`` and either ``amount`` (signed) or
    ``income``/``expense``. An ``account`` column (name or ID) overrides the
    default account per row.
    """

    def __init__(self, db: Database, ledger: Optional[LedgerService] = None):
        """Initialize CSV import service.

        Args:
            db: Database instance
            ledger: Ledger service used for the bulk write
        """
        self.db = db
        self.ledger = ledger or LedgerService(db)

    async def read_drafts(self, csv_file_path: str, default_account_id: Optional[int] = None) -> list[TransactionDraft]:
        """Read a CSV file into transaction drafts.

        Raises:
            FileNotFoundError: If CSV file doesn't exist
            ValidationError: If a column or row cannot be read
        """
        csv_path = Path(csv_file_path)
        if not csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {csv_file_path}")

        accounts = await self.db.list_accounts()
        accounts_by_name = {acc.account_name: acc.id for acc in accounts}
        account_ids = {acc.id for acc in accounts}
        drafts = []

        with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
            sample = f.read(1024)
            f.seek(0)
            try:
                delimiter = csv.Sniffer().sniff(sample, delimiters=",;\t").delimiter
            except csv.Error:
                delimiter = ","

            reader = csv.DictReader(f, delimiter=delimiter)
            if reader.fieldnames is None:
                raise ValidationError("CSV file has no columns")

            columns = {name.strip().lower() for name in reader.fieldnames}
            if "date" not in columns:
                raise ValidationError("CSV file missing required column: date")
            if "amount" not in columns and not {"income", "expense"} & columns:
                raise ValidationError("CSV file needs an amount column or income/expense columns")

            for row_num, raw_row in enumerate(reader, start=2):  # header is row 1
                row = {
                    COLUMN_ALIASES.get(key.strip().lower(), key.strip().lower()): (value or "").strip()
                    for key, value in raw_row.items()
                    if key is not None
                }
                drafts.append(self._row_to_draft(row, row_num, accounts_by_name, account_ids, default_account_id))

        return drafts

    def _row_to_draft(self, row, row_num, accounts_by_name, account_ids, default_account_id) -> TransactionDraft:
        """Build the draft for one data row, naming the file row on any error."""
        account_id = default_account_id
        account = row.get("account")
        if account:
            account_id = int(account) if account.isdigit() else accounts_by_name.get(account)
            if account_id is None:
                raise ValidationError(f"Row {row_num}: bank account '{account}' not found")
        if account_id is None:
            raise ValidationError(f"Row {row_num}: no bank account given")

        if account_id not in account_ids:
            raise ValidationError(f"Row {row_num}: {account_not_found(account_id)}")

        try:
            if row.get("amount"):
                amount = parse_amount(row["amount"])
                income, expense = (amount, 0) if amount >= 0 else (0, -amount)
            else:
                income = parse_amount(row["income"]) if row.get("income") else 0
                expense = parse_amount(row["expense"]) if row.get("expense") else 0
        except ValueError as e:
            raise ValidationError(f"Row {row_num}: {e}") from e
        income, expense = validate_amounts(income, expense, row=row_num)

        date_result = self.ledger.resolver.resolve(row.get("date", ""))
        if not date_result.ok:
            raise ValidationError(f"Row {row_num}: {date_result.error}")

        return TransactionDraft(
            bank_account_id=account_id,
            transaction_date=row.get("date", ""),
            income=income,
            expense=expense,
            **{name: row.get(name) or None for name in TEXT_COLUMNS if name != "main_description"},
            main_description=row.get("main_description", ""),
        )

    async def import_csv(
        self,
        csv_file_path: str,
        default_account_id: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BulkResult:
        """Import every row of a CSV file in one bulk create.

        Returns:
            BulkResult whose positions are data rows counted from 0
        """
        drafts = await self.read_drafts(csv_file_path, default_account_id)
        if not drafts:
            return BulkResult()
        return await self.ledger.create_transactions(drafts, on_progress=on_progress, cancel_event=cancel_event)
