"""
Google Sheets Remote Store

The cloud copy of the ledger lives in one worksheet, one row per
transaction id. Users can open the sheet directly to see their books.

UPSERT SEMANTICS: a push looks the id up in the first column and
overwrites that row in place, or appends a new row. Pushing the same
record twice therefore never creates a duplicate, which is what lets the
sync reconciler retry after a crash between remote success and the local
``mark_synced``.

TRADEOFFS:
- Lookups scan a column (fine for a small business's volume)
- Calls to the Sheets API are serialized per store instance
"""

import asyncio
import threading
from datetime import datetime
from decimal import Decimal
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from trackrise.config import GoogleSheetsSettings, get_settings
from trackrise.models.transaction import (
    EntryMethod,
    RemoteTransactionRecord,
    TransactionType,
    utcnow,
)
from trackrise.services.storage.interface import (
    RemoteConnectionError,
    RemoteError,
    RemoteStoreInterface,
)

logger = structlog.get_logger(__name__)

# Column mappings for the Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "amount",
    "currency_code",
    "type",
    "category",
    "description",
    "date",
    "created_at",
    "updated_at",
    "entry_method",
    "has_image",
    "pushed_at",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authenticate with the service account credentials."""
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise RemoteConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise RemoteConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise RemoteConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.transactions_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.transactions_sheet_name,
                rows=1000,
                cols=len(TRANSACTION_COLUMNS),
            )
            sheet.append_row(TRANSACTION_COLUMNS)
        return sheet


class GoogleSheetsRemoteStore(RemoteStoreInterface):
    """Google Sheets implementation of the remote transaction store."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = threading.Lock()

    def _record_to_row(self, record: RemoteTransactionRecord, pushed_at: datetime) -> list:
        return [
            record.id,
            str(record.amount),
            record.currency_code,
            record.type.value,
            record.category,
            record.description,
            record.date.isoformat(),
            record.created_at.isoformat(),
            record.updated_at.isoformat(),
            record.entry_method.value,
            str(record.has_image),
            pushed_at.isoformat(),
        ]

    def _row_to_record(self, row: list) -> RemoteTransactionRecord:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return RemoteTransactionRecord(
            id=safe_get(0),
            amount=Decimal(safe_get(1)),
            currency_code=safe_get(2),
            type=TransactionType(safe_get(3)),
            category=safe_get(4),
            description=safe_get(5),
            date=datetime.fromisoformat(safe_get(6)),
            created_at=datetime.fromisoformat(safe_get(7)),
            updated_at=datetime.fromisoformat(safe_get(8)),
            entry_method=EntryMethod(safe_get(9)),
            has_image=safe_get(10).lower() == "true",
            pushed_at=self._pushed_at(row),
        )

    def _pushed_at(self, row: list) -> Optional[datetime]:
        try:
            return datetime.fromisoformat(row[11]) if row[11] else None
        except (IndexError, ValueError):
            return None

    def _upsert(self, record: RemoteTransactionRecord) -> None:
        with self._lock:
            try:
                sheet = self._client.get_transactions_sheet()
                row_values = self._record_to_row(record, utcnow())
                cell = sheet.find(record.id, in_column=1)

                if cell is None:
                    sheet.append_row(row_values, value_input_option="RAW")
                else:
                    start = rowcol_to_a1(cell.row, 1)
                    end = rowcol_to_a1(cell.row, len(TRANSACTION_COLUMNS))
                    sheet.update(
                        range_name=f"{start}:{end}",
                        values=[row_values],
                        value_input_option="RAW",
                    )
            except RemoteError:
                raise
            except Exception as e:
                raise RemoteError(f"Failed to upsert transaction {record.id}: {e}")

    @retry(
        retry=retry_if_exception_type(RemoteError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upsert(self, record: RemoteTransactionRecord) -> None:
        await asyncio.to_thread(self._upsert, record)

    def _fetch_delta(self, since: Optional[datetime]) -> list[RemoteTransactionRecord]:
        with self._lock:
            try:
                sheet = self._client.get_transactions_sheet()
                all_rows = sheet.get_all_values()[1:]  # Skip header
            except RemoteError:
                raise
            except Exception as e:
                raise RemoteError(f"Failed to read remote transactions: {e}")

        records = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            if since is not None:
                pushed_at = self._pushed_at(row)
                if pushed_at is not None and pushed_at <= since:
                    continue
            try:
                records.append(self._row_to_record(row))
            except Exception as e:
                logger.warning("malformed_remote_row", row_id=row[0], error=str(e))
                continue

        return records

    @retry(
        retry=retry_if_exception_type(RemoteError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def fetch_delta(
        self,
        since: Optional[datetime] = None,
    ) -> list[RemoteTransactionRecord]:
        return await asyncio.to_thread(self._fetch_delta, since)
