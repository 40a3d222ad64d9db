"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a shared backend because:
1. Every member of the group can open the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Several devices can point at the same spreadsheet

TRADEOFFS:
- No transactions; each namespace blob lives in a single row so one
  write replaces one namespace
- API calls are slow, so the store only writes the namespace it changed

The implementation follows the abstract interface, so we can swap
to another backend without changing ledger logic.
"""

import json
from datetime import datetime
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from paisegone.config import GoogleSheetsSettings, get_settings
from paisegone.models.audit import AuditEvent, AuditEventType, AuditSeverity
from paisegone.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    KeyValueStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

# Sheets rejects cell contents longer than this
MAX_CELL_CHARS = 50000

# Column mappings for the ledger store sheet
STORE_COLUMNS = [
    "key",
    "value",
    "updated_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
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
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
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
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_store_sheet(self) -> gspread.Worksheet:
        """Get or create the ledger store worksheet."""
        return self._get_or_create_sheet(
            self._settings.store_sheet_name, STORE_COLUMNS, rows=10
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsKeyValueStorage(KeyValueStorageInterface):
    """
    Google Sheets implementation of the ledger key-value medium.

    One row per key: [key, value, updated_at]. Row 1 is the header.

    LIMITATION: Sheets caps a cell at 50,000 characters and each value is
    kept whole in one cell, so a namespace blob larger than that (a ledger
    of a few hundred expenses) is refused with StorageError before any
    API call. Use the file backend for larger ledgers.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(self, rows: list[list[str]], key: str) -> Optional[int]:
        """1-based sheet row index for a key, skipping the header."""
        for idx, row in enumerate(rows[1:], start=2):
            if row and row[0] == key:
                return idx
        return None

    def read(self, key: str) -> Optional[str]:
        try:
            rows = self._client.get_store_sheet().get_all_values()
        except Exception as e:
            raise StorageError(f"Failed to read {key}: {e}")

        idx = self._find_row(rows, key)
        if idx is None:
            return None
        row = rows[idx - 1]
        return row[1] if len(row) > 1 else ""

    def write(self, key: str, value: str) -> None:
        if len(value) > MAX_CELL_CHARS:
            raise StorageError(
                f"Value for {key} is {len(value)} characters; "
                f"a sheet cell holds at most {MAX_CELL_CHARS}"
            )
        self._write_row(key, value)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_row(self, key: str, value: str) -> None:
        try:
            sheet = self._client.get_store_sheet()
            rows = sheet.get_all_values()
            updated_at = datetime.utcnow().isoformat()
            idx = self._find_row(rows, key)
            if idx is None:
                sheet.append_row([key, value, updated_at], value_input_option="RAW")
            else:
                # RAW keeps the JSON blob from being parsed as a formula or number
                sheet.update(
                    f"B{idx}:C{idx}", [[value, updated_at]], value_input_option="RAW"
                )
        except Exception as e:
            raise StorageError(f"Failed to write {key}: {e}")

    def delete(self, key: str) -> bool:
        try:
            sheet = self._client.get_store_sheet()
            idx = self._find_row(sheet.get_all_values(), key)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete {key}: {e}")

    def keys(self) -> list[str]:
        try:
            rows = self._client.get_store_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list keys: {e}")
        return sorted(row[0] for row in rows if row and row[0])


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=safe_get(0),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            description=safe_get(6),
            details=json.loads(safe_get(7)) if safe_get(7) else {},
            error_message=safe_get(8) or None,
            is_user_action=safe_get(9).lower() == "true",
        )

    def _load_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue  # Skip malformed rows
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_sheet_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._load_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._load_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
