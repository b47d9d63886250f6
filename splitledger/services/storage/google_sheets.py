"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a durable backend because:
1. Non-technical users can view their shared expenses directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Sheets has no transactions. We load a full snapshot when a transaction
  opens, work against the in-memory indices, and rewrite only the tables
  that changed when it commits. A process-wide lock serialises writers,
  so a single process is the supported deployment.
- Not suitable for high-volume data (we're fine for household ledgers)

CRITICAL: A commit never clears a sheet before writing it. Rows are
overwritten in place and only the stale tail is cleared afterwards. If a
later sheet fails, sheets already written are put back from the rows read
when the transaction opened, so a failed commit leaves both tables as
they were.

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from splitledger.config import GoogleSheetsSettings, get_settings
from splitledger.models.ledger import Expense, Settlement, Split, SplitType
from splitledger.observability import LedgerEventLogger
from splitledger.services.storage.interface import (
    ConnectionError,
    StorageError,
)
from splitledger.services.storage.memory import InMemoryLedgerStorage, LedgerState


SCOPES = (
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
)

# Commit order. A failure part-way undoes the tables before it.
TABLES = ("expenses", "settlements")

# Column mappings for Expenses sheet
EXPENSE_COLUMNS = [
    "id",
    "description",
    "amount",
    "category",
    "date",
    "payer_id",
    "split_type",
    "splits_json",
    "group_id",
    "created_by",
]

# Column mappings for Settlements sheet
SETTLEMENT_COLUMNS = [
    "id",
    "amount",
    "note",
    "date",
    "payer_id",
    "receiver_id",
    "group_id",
    "related_expense_ids_json",
    "created_by",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Authorizes lazily with a service account and caches the spreadsheet
    handle. Opening the spreadsheet retries on API errors; a missing
    credentials file or spreadsheet fails at once.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    def connect(self) -> gspread.Client:
        """Authorize with the service account on first use."""
        if self._client is not None:
            return self._client

        path = self._settings.credentials_path
        try:
            credentials = Credentials.from_service_account_file(path, scopes=list(SCOPES))
        except FileNotFoundError:
            raise ConnectionError(f"Google credentials file not found: {path}")
        except ValueError as e:
            raise ConnectionError(f"Invalid service account credentials in {path}: {e}")

        self._client = gspread.authorize(credentials)
        return self._client

    @retry(
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _open(self) -> gspread.Spreadsheet:
        return self.connect().open_by_key(self._settings.spreadsheet_id)

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            try:
                self._spreadsheet = self._open()
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet {self._settings.spreadsheet_id} not found "
                    "or not shared with the service account"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Expenses worksheet."""
        return self._get_or_create_sheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_settlements_sheet(self) -> gspread.Worksheet:
        """Get or create the Settlements worksheet."""
        return self._get_or_create_sheet(
            self._settings.settlements_sheet_name, SETTLEMENT_COLUMNS
        )


def expense_to_row(expense: Expense) -> list:
    """Convert an Expense to a spreadsheet row."""
    return [
        str(expense.id),
        expense.description,
        str(expense.amount),
        expense.category,
        expense.date.isoformat(),
        expense.payer_id,
        expense.split_type.value,
        json.dumps([
            {
                "participant_id": split.participant_id,
                "amount": str(split.amount),
                "paid": split.paid,
            }
            for split in expense.splits
        ]),
        expense.group_id or "",
        expense.created_by,
    ]


def settlement_to_row(settlement: Settlement) -> list:
    """Convert a Settlement to a spreadsheet row."""
    return [
        str(settlement.id),
        str(settlement.amount),
        settlement.note or "",
        settlement.date.isoformat(),
        settlement.payer_id,
        settlement.receiver_id,
        settlement.group_id or "",
        json.dumps([str(expense_id) for expense_id in settlement.related_expense_ids]),
        settlement.created_by,
    ]


def _cell(row: list, index: int) -> str:
    try:
        return row[index] or ""
    except IndexError:
        return ""


def row_to_expense(row: list) -> Expense:
    """Convert a spreadsheet row to an Expense."""
    splits = [
        Split(
            participant_id=item["participant_id"],
            amount=Decimal(item["amount"]),
            paid=bool(item.get("paid", False)),
        )
        for item in json.loads(_cell(row, 7) or "[]")
    ]
    return Expense(
        id=UUID(_cell(row, 0)),
        description=_cell(row, 1),
        amount=Decimal(_cell(row, 2)),
        category=_cell(row, 3) or "Other",
        date=datetime.fromisoformat(_cell(row, 4)),
        payer_id=_cell(row, 5),
        split_type=SplitType(_cell(row, 6)),
        splits=tuple(splits),
        group_id=_cell(row, 8) or None,
        created_by=_cell(row, 9),
    )


def row_to_settlement(row: list) -> Settlement:
    """Convert a spreadsheet row to a Settlement."""
    related = json.loads(_cell(row, 7) or "[]")
    return Settlement(
        id=UUID(_cell(row, 0)),
        amount=Decimal(_cell(row, 1)),
        note=_cell(row, 2) or None,
        date=datetime.fromisoformat(_cell(row, 3)),
        payer_id=_cell(row, 4),
        receiver_id=_cell(row, 5),
        group_id=_cell(row, 6) or None,
        related_expense_ids=tuple(UUID(expense_id) for expense_id in related),
        created_by=_cell(row, 8),
    )


class GoogleSheetsLedgerStorage(InMemoryLedgerStorage):
    """
    Google Sheets implementation of the record store.

    One record per row; splits and related expense ids are JSON-encoded.
    Reads are served from the snapshot loaded when the transaction opened.
    Load and commit failures are reported through the event logger as
    system errors before they are raised.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        event_logger: Optional[LedgerEventLogger] = None,
    ):
        super().__init__()
        self._client = client or GoogleSheetsClient()
        self._event_logger = event_logger
        # Rows as read when the current transaction opened, header excluded
        self._loaded_rows: dict[str, list[list]] = {table: [] for table in TABLES}

    def _sheet(self, table: str) -> tuple[gspread.Worksheet, list[str]]:
        if table == "expenses":
            return self._client.get_expenses_sheet(), EXPENSE_COLUMNS
        return self._client.get_settlements_sheet(), SETTLEMENT_COLUMNS

    def _rows(self, table: str) -> list[list]:
        if table == "expenses":
            return [
                expense_to_row(self._state.expenses[expense_id])
                for _, expense_id in self._state.expenses_by_date
            ]
        settlements = sorted(self._state.settlements.values(), key=lambda s: (s.date, s.id))
        return [settlement_to_row(s) for s in settlements]

    # ------------------------------------------------------------------ #
    # Sheet I/O
    # ------------------------------------------------------------------ #

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _read_rows(self, sheet: gspread.Worksheet) -> list[list]:
        # Skip the header row
        return sheet.get_all_values()[1:]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _overwrite(self, sheet: gspread.Worksheet, values: list[list]) -> None:
        sheet.update(values=values, range_name="A1")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _clear_rows(self, sheet: gspread.Worksheet, first: int, last: int, width: int) -> None:
        sheet.batch_clear([f"{rowcol_to_a1(first, 1)}:{rowcol_to_a1(last, width)}"])

    def _write_table(
        self,
        table: str,
        rows: list[list],
        previous_count: int,
        written: list[str],
    ) -> None:
        """
        Replace a table's data rows. `previous_count` is how many data rows
        the sheet may currently hold; rows past the new length are cleared.
        The table is appended to `written` once the sheet has changed.
        """
        sheet, columns = self._sheet(table)
        self._overwrite(sheet, [columns] + rows)
        written.append(table)
        if previous_count > len(rows):
            # +1 for the header row
            self._clear_rows(sheet, len(rows) + 2, previous_count + 1, len(columns))

    # ------------------------------------------------------------------ #
    # Transaction hooks
    # ------------------------------------------------------------------ #

    async def _load_snapshot(self) -> None:
        try:
            loaded = {
                table: self._read_rows(self._sheet(table)[0]) for table in TABLES
            }
        except Exception as e:
            await self._report("sheets_load_failed", e, {})
            if isinstance(e, ConnectionError):
                raise
            raise StorageError(f"Failed to load ledger from Google Sheets: {e}")

        state = LedgerState()
        for number, row in enumerate(loaded["expenses"], start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                state.add_expense(row_to_expense(row))
            except (ValueError, KeyError, InvalidOperation) as e:
                raise StorageError(f"Malformed expense row {number}: {e}")
        for number, row in enumerate(loaded["settlements"], start=2):
            if not row or not row[0]:
                continue
            try:
                state.add_settlement(row_to_settlement(row))
            except (ValueError, KeyError, InvalidOperation) as e:
                raise StorageError(f"Malformed settlement row {number}: {e}")

        self._loaded_rows = loaded
        self._state = state

    async def _flush(self, tables: set[str]) -> None:
        pending = {table: self._rows(table) for table in TABLES if table in tables}
        written: list[str] = []
        try:
            for table, rows in pending.items():
                self._write_table(table, rows, len(self._loaded_rows[table]), written)
        except Exception as e:
            unrestored = self._undo(written, pending)
            await self._report("sheets_commit_failed", e, {
                "tables": list(pending),
                "written": written,
                "unrestored": unrestored,
            })
            if unrestored:
                raise StorageError(
                    f"Failed to write ledger to Google Sheets ({e}); "
                    f"could not restore: {', '.join(unrestored)}"
                )
            if isinstance(e, ConnectionError):
                raise
            raise StorageError(f"Failed to write ledger to Google Sheets: {e}")

    def _undo(self, written: list[str], pending: dict[str, list[list]]) -> list[str]:
        """Put written tables back to their loaded rows. Returns the ones that failed."""
        unrestored = []
        for table in written:
            original = self._loaded_rows[table]
            try:
                self._write_table(
                    table,
                    original,
                    max(len(original), len(pending[table])),
                    [],
                )
            except Exception:
                unrestored.append(table)
        return unrestored

    async def _report(self, error_type: str, error: Exception, details: dict) -> None:
        if self._event_logger:
            await self._event_logger.log_error(error_type, str(error), details)
