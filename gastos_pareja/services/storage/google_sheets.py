"""
Google Sheets Storage Implementation

DESIGN DECISION: The ledger lives in a Google spreadsheet because:
1. Both people can read (and fix) their data directly in Sheets
2. No database setup required
3. Built-in backup and version history
4. It is where the ledger has always lived, legacy rows included

TRADEOFFS:
- No transactions (two-leg transfers can end up one-sided)
- Limited query capabilities (we filter in Python)
- Rows written by older app versions have fewer columns, so every row is
  read by header name and upgraded through the EntryNormalizer

Sheets:
- Entries: one entry per row, columns in wire order
- Config: key / JSON value rows
- Devices: device id -> profile
- AuditLog: append-only audit trail
"""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gastos_pareja.config import GoogleSheetsSettings, get_settings
from gastos_pareja.dates import month_key, utc_timestamp
from gastos_pareja.models.audit import AuditEvent, AuditEventType, AuditSeverity
from gastos_pareja.models.configuration import Configuration
from gastos_pareja.models.entry import Entry
from gastos_pareja.normalization.normalizer import EntryNormalizer
from gastos_pareja.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    StorageError,
)


# Column mappings for Entries sheet (wire field names)
ENTRY_COLUMNS = [
    "id",
    "type",
    "nature",
    "amount",
    "category",
    "profile",
    "date",
    "note",
    "split",
    "scope",
    "account",
    "direction",
    "impactKey",
    "fixedId",
    "createdAt",
    "schemaVersion",
]

CONFIG_COLUMNS = ["key", "value_json"]

DEVICE_COLUMNS = ["device_id", "profile", "updated_at"]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "profile",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Duplicates will not go away by retrying
sheets_retry = retry(
    retry=retry_if_not_exception_type(DuplicateError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @sheets_retry
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
            except FileNotFoundError as e:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def get_sheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with its header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_entries_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.entries_sheet_name, ENTRY_COLUMNS)

    def get_config_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.config_sheet_name, CONFIG_COLUMNS, rows=100)

    def get_devices_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.devices_sheet_name, DEVICE_COLUMNS, rows=100)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_sheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


def _rows_as_dicts(values: list[list[str]]) -> list[dict[str, str]]:
    """Map data rows to dicts by header name; blank rows are dropped."""
    if not values:
        return []
    header = values[0]
    records = []
    for row in values[1:]:
        if not any(cell.strip() for cell in row):
            continue
        records.append({
            name: row[idx] if idx < len(row) else ""
            for idx, name in enumerate(header)
            if name
        })
    return records


def _overwrite_rows(sheet: gspread.Worksheet, rows: list[list]) -> None:
    """
    Replace a sheet's contents with ``rows`` in a single write.

    Cells left over from longer previous contents are blanked in the same
    call, so a failed write leaves the sheet as it was.
    """
    previous = sheet.get_all_values()
    width = max(len(row) for row in previous + rows)
    height = max(len(previous), len(rows))
    padded = [list(row) + [""] * (width - len(row)) for row in rows]
    padded += [[""] * width for _ in range(height - len(rows))]

    # Resizing only adds blank cells
    if height > sheet.row_count:
        sheet.add_rows(height - sheet.row_count)
    if width > sheet.col_count:
        sheet.add_cols(width - sheet.col_count)
    sheet.update(values=padded, range_name="A1", value_input_option="RAW")


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Entries are stored as rows in a worksheet with one entry per row.
    Rows are normalized on read, so legacy rows come back in the
    canonical shape.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        normalizer: Optional[EntryNormalizer] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._normalizer = normalizer or EntryNormalizer()

    def _entry_to_row(self, entry: Entry) -> list:
        """Convert an Entry to a spreadsheet row."""
        wire = entry.to_wire()
        return ["" if wire.get(col) is None else wire[col] for col in ENTRY_COLUMNS]

    @sheets_retry
    async def list_entries(self, month: Optional[str] = None) -> list[Entry]:
        """List entries, optionally for a single month."""
        try:
            sheet = self._client.get_entries_sheet()
            records = _rows_as_dicts(sheet.get_all_values())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}") from e

        entries = self._normalizer.normalize_many(records)
        if month:
            entries = [e for e in entries if month_key(e.date) == month]
        return entries

    async def list_months(self) -> list[str]:
        """Distinct months present in the Entries sheet, newest first."""
        entries = await self.list_entries()
        return sorted({month_key(e.date) for e in entries}, reverse=True)

    @sheets_retry
    async def add_entry(self, entry: Entry) -> str:
        """Append an entry row."""
        try:
            sheet = self._client.get_entries_sheet()
            existing_ids = sheet.col_values(1)[1:]
            if entry.id in existing_ids:
                raise DuplicateError(f"Entry already exists: {entry.id}")
            sheet.append_row(self._entry_to_row(entry), value_input_option="RAW")
            return entry.id
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save entry: {e}") from e

    async def delete_entry(self, entry_id: str) -> bool:
        """Delete an entry row by ID."""
        try:
            sheet = self._client.get_entries_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == entry_id:
                    sheet.delete_rows(idx)
                    return True

            return False
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete entry: {e}") from e

    @sheets_retry
    async def replace_all(self, entries: list[Entry]) -> int:
        """Overwrite the Entries sheet with ``entries`` in one write."""
        rows = [ENTRY_COLUMNS] + [self._entry_to_row(e) for e in entries]
        try:
            _overwrite_rows(self._client.get_entries_sheet(), rows)
            return len(entries)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to replace ledger: {e}") from e

    @sheets_retry
    async def get_config(self) -> Configuration:
        """Read the Config sheet, merged with the Devices sheet."""
        try:
            config_rows = _rows_as_dicts(self._client.get_config_sheet().get_all_values())
            device_rows = _rows_as_dicts(self._client.get_devices_sheet().get_all_values())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read configuration: {e}") from e

        try:
            data: dict[str, Any] = {
                row["key"]: json.loads(row["value_json"])
                for row in config_rows
                if row.get("key") and row.get("value_json")
            }
        except ValueError as e:
            raise StorageError(f"Configuration sheet holds invalid JSON: {e}") from e

        config = Configuration.model_validate(data) if data else Configuration.default()
        devices = {
            row["device_id"]: row["profile"]
            for row in device_rows
            if row.get("device_id") and row.get("profile")
        }
        if devices:
            config = config.model_copy(
                update={"device_profiles": {**config.device_profiles, **devices}}
            )
        return config

    @sheets_retry
    async def set_config(self, config: Configuration) -> bool:
        """Replace the Config sheet with one row per top-level key."""
        wire = config.to_wire()
        # Device assignments live in their own sheet
        wire.pop("deviceProfiles", None)
        rows = [CONFIG_COLUMNS] + [
            [key, json.dumps(value, ensure_ascii=False)] for key, value in wire.items()
        ]
        try:
            _overwrite_rows(self._client.get_config_sheet(), rows)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save configuration: {e}") from e

    async def register_device_profile(self, device_id: str, profile: str) -> bool:
        """Insert or update the device's row in the Devices sheet."""
        try:
            sheet = self._client.get_devices_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == device_id:
                    sheet.update_cell(idx, 2, profile)
                    sheet.update_cell(idx, 3, utc_timestamp())
                    return True

            sheet.append_row([device_id, profile, utc_timestamp()], value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to register device: {e}") from e


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
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            profile=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue  # Skip malformed rows
        return events

    @sheets_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}") from e

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = [e for e in self._read_events() if e.correlation_id == correlation_id]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._read_events()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
