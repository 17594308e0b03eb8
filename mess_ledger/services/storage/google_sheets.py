"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared backend because:
1. Members can look at the raw bazaar list and meal sheet directly
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions. Each engine operation issues one write, so we don't
  need them, but create-if-absent has no server-side primitive. It is
  serialized with a process-local lock plus a re-read, which is only
  safe while a single process writes the spreadsheet.
- No push notifications. Subscribers hear about this process's own
  commits only.

Attendance is stored one row per (month, day, member) cell so that a
toggle is a single-cell update and concurrent toggles of different cells
never overwrite each other.
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from mess_ledger.config import GoogleSheetsSettings, get_settings
from mess_ledger.models.attendance import AttendanceGrid, DayRecord, days_in_month
from mess_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from mess_ledger.models.expense import ExpenseCategory, ExpenseEntry, ExpenseItem
from mess_ledger.services.storage.interface import (
    AttendanceStorageInterface,
    AuditStorageInterface,
    ChangeNotifier,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    RecordNotFoundError,
    StorageError,
    Unsubscribe,
)


logger = structlog.get_logger(__name__)

# Column mappings for the Bazaar sheet
EXPENSE_COLUMNS = [
    "id",
    "entry_date",
    "payer_id",
    "attributed_id",
    "items_json",
    "subtotal",
    "category",
    "is_proxy",
    "created_by",
    "created_at",
    "updated_at",
]

# Column mappings for the MealSheet sheet (one row per cell)
ATTENDANCE_COLUMNS = [
    "month",
    "day",
    "member_id",
    "present",
]

# Column mappings for the Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Lookups and not-found answers are never worth retrying
write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((DuplicateError, RecordNotFoundError)),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _trim_row(row: list) -> list:
    # get_all_values() pads or drops trailing blank cells
    cells = [str(cell) for cell in row]
    while cells and cells[-1] == "":
        cells.pop()
    return cells


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

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
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

    def get_expenses_sheet(self) -> gspread.Worksheet:
        """Get or create the Bazaar worksheet."""
        return self._get_or_create_sheet(
            self._settings.expenses_sheet_name, EXPENSE_COLUMNS, rows=1000
        )

    def get_attendance_sheet(self) -> gspread.Worksheet:
        """Get or create the MealSheet worksheet."""
        # A month of 31 days for ~10 members is a few hundred cells
        return self._get_or_create_sheet(
            self._settings.attendance_sheet_name, ATTENDANCE_COLUMNS, rows=2000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of the expense collection.

    One entry per row; the item list is JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._notifier: ChangeNotifier[list[ExpenseEntry]] = ChangeNotifier()

    def _entry_to_row(self, entry: ExpenseEntry) -> list:
        """Convert an ExpenseEntry to a spreadsheet row."""
        return [
            entry.id,
            entry.entry_date.isoformat(),
            str(entry.payer_id),
            str(entry.attributed_id),
            json.dumps([
                {"name": item.name, "price": str(item.price)}
                for item in entry.items
            ]),
            str(entry.subtotal),
            entry.category.value,
            str(entry.is_proxy),
            entry.created_by,
            entry.created_at.isoformat(),
            entry.updated_at.isoformat() if entry.updated_at else "",
        ]

    def _row_to_entry(self, row: list) -> ExpenseEntry:
        """Convert a spreadsheet row to an ExpenseEntry (subtotal as stored)."""
        items = [
            ExpenseItem(name=item["name"], price=Decimal(item["price"]))
            for item in json.loads(_safe_get(row, 4, "[]"))
        ]
        return ExpenseEntry(
            id=_safe_get(row, 0),
            entry_date=date.fromisoformat(_safe_get(row, 1)),
            payer_id=int(_safe_get(row, 2)),
            attributed_id=int(_safe_get(row, 3)),
            items=items,
            subtotal=Decimal(_safe_get(row, 5, "0")),
            category=ExpenseCategory(_safe_get(row, 6, "regular")),
            is_proxy=_safe_get(row, 7).lower() == "true",
            created_by=_safe_get(row, 8),
            created_at=datetime.fromisoformat(_safe_get(row, 9)),
            updated_at=datetime.fromisoformat(_safe_get(row, 10)) if _safe_get(row, 10) else None,
        )

    def _find_row(self, all_rows: list, entry_id: str) -> Optional[int]:
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
            if row and row[0] == entry_id:
                return idx
        return None

    async def _publish(self) -> None:
        if not len(self._notifier):
            return
        try:
            snapshot = await self.list_entries()
        except StorageError as e:
            # The write itself is committed; only the re-read failed
            logger.warning("expense_snapshot_failed", error=str(e))
            return
        self._notifier.notify(snapshot)

    async def insert_entry(self, entry: ExpenseEntry) -> bool:
        """Append a new entry row."""
        await self._append_entry_row(entry.id, self._entry_to_row(entry), [])
        await self._publish()
        return True

    @write_retry
    async def _append_entry_row(self, entry_id: str, row: list, attempts: list) -> None:
        """
        Append one entry row, at most once.

        An append can land on the server and still raise (a timeout on the
        response). A retry that finds our own row already there is a success,
        not a duplicate.
        """
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()
            existing = self._find_row(all_rows, entry_id)
            if existing is not None:
                if attempts and _trim_row(all_rows[existing - 1]) == _trim_row(row):
                    logger.warning("entry_append_already_committed", entry_id=entry_id)
                    return
                raise DuplicateError(f"Entry already exists: {entry_id}")
            attempts.append(entry_id)
            sheet.append_row(row, value_input_option="RAW")
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save entry: {e}")

    async def get_entry(self, entry_id: str) -> Optional[ExpenseEntry]:
        try:
            sheet = self._client.get_expenses_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == entry_id:
                    return self._row_to_entry(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get entry: {e}")

    @write_retry
    async def replace_entry(self, entry: ExpenseEntry) -> bool:
        """Overwrite an entry's row with a single range update."""
        try:
            sheet = self._client.get_expenses_sheet()
            idx = self._find_row(sheet.get_all_values(), entry.id)
            if idx is None:
                raise RecordNotFoundError(f"Entry not found: {entry.id}")
            last_col = rowcol_to_a1(idx, len(EXPENSE_COLUMNS))
            sheet.update(
                range_name=f"A{idx}:{last_col}",
                values=[self._entry_to_row(entry)],
                value_input_option="RAW",
            )
        except RecordNotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update entry: {e}")
        await self._publish()
        return True

    @write_retry
    async def delete_entry(self, entry_id: str) -> bool:
        try:
            sheet = self._client.get_expenses_sheet()
            idx = self._find_row(sheet.get_all_values(), entry_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete entry: {e}")
        await self._publish()
        return True

    async def list_entries(self) -> list[ExpenseEntry]:
        try:
            sheet = self._client.get_expenses_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list entries: {e}")

        entries = []
        for row in all_rows:
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                entries.append(self._row_to_entry(row))
            except Exception as e:
                # Hand-edited rows that no longer parse are skipped, loudly
                logger.warning("malformed_expense_row", entry_id=row[0], error=str(e))
        return entries

    def subscribe(self, callback: Callable[[list[ExpenseEntry]], None]) -> Unsubscribe:
        return self._notifier.subscribe(callback)


class GoogleSheetsAttendanceStorage(AttendanceStorageInterface):
    """
    Google Sheets implementation of attendance grids.

    Each cell is a row: [month, day, member_id, present].
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._create_lock = asyncio.Lock()
        self._notifiers: dict[str, ChangeNotifier[AttendanceGrid]] = {}

    @staticmethod
    def _cell_to_row(month: str, day: int, member_id: int, present: bool) -> list:
        return [month, str(day), str(member_id), "TRUE" if present else "FALSE"]

    def _rows_to_grid(self, month: str, all_rows: list) -> Optional[AttendanceGrid]:
        cells = [row for row in all_rows[1:] if row and row[0] == month]
        if not cells:
            return None
        records = {
            day: DayRecord(day=day)
            for day in range(1, days_in_month(month) + 1)
        }
        for row in cells:
            day = int(_safe_get(row, 1, "0"))
            if day in records:
                present = _safe_get(row, 3).upper() == "TRUE"
                records[day].status[int(_safe_get(row, 2))] = present
        return AttendanceGrid(month=month, days=list(records.values()))

    async def _publish(self, month: str) -> None:
        notifier = self._notifiers.get(month)
        if not notifier or not len(notifier):
            return
        try:
            grid = await self.get_grid(month)
        except StorageError as e:
            logger.warning("attendance_snapshot_failed", month=month, error=str(e))
            return
        if grid is not None:
            notifier.notify(grid)

    async def get_grid(self, month: str) -> Optional[AttendanceGrid]:
        try:
            sheet = self._client.get_attendance_sheet()
            return self._rows_to_grid(month, sheet.get_all_values())
        except Exception as e:
            raise StorageError(f"Failed to get attendance grid: {e}")

    @write_retry
    async def create_grid_if_absent(
        self,
        grid: AttendanceGrid,
    ) -> tuple[AttendanceGrid, bool]:
        async with self._create_lock:
            try:
                sheet = self._client.get_attendance_sheet()
                existing = self._rows_to_grid(grid.month, sheet.get_all_values())
                if existing is not None:
                    return existing, False
                rows = [
                    self._cell_to_row(grid.month, record.day, member_id, present)
                    for record in grid.days
                    for member_id, present in sorted(record.status.items())
                ]
                # One API call for the whole grid
                sheet.append_rows(rows, value_input_option="RAW")
            except Exception as e:
                raise StorageError(f"Failed to create attendance grid: {e}")
        await self._publish(grid.month)
        return grid, True

    @write_retry
    async def set_cell(
        self,
        month: str,
        day: int,
        member_id: int,
        present: bool,
    ) -> bool:
        try:
            sheet = self._client.get_attendance_sheet()
            all_rows = sheet.get_all_values()
            if not any(row and row[0] == month for row in all_rows[1:]):
                raise RecordNotFoundError(f"No attendance grid for {month}")
            if not 1 <= day <= days_in_month(month):
                raise RecordNotFoundError(f"Day {day} is not in {month}")

            value = "TRUE" if present else "FALSE"
            for idx, row in enumerate(all_rows[1:], start=2):
                if (
                    row
                    and row[0] == month
                    and _safe_get(row, 1) == str(day)
                    and _safe_get(row, 2) == str(member_id)
                ):
                    sheet.update_cell(idx, ATTENDANCE_COLUMNS.index("present") + 1, value)
                    break
            else:
                # Member joined after the grid was created
                sheet.append_row(
                    self._cell_to_row(month, day, member_id, present),
                    value_input_option="RAW",
                )
        except RecordNotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update attendance cell: {e}")
        await self._publish(month)
        return True

    def subscribe(
        self,
        month: str,
        callback: Callable[[AttendanceGrid], None],
    ) -> Unsubscribe:
        notifier = self._notifiers.setdefault(month, ChangeNotifier())
        return notifier.subscribe(callback)


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            actor=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                try:
                    events.append(self._row_to_event(row))
                except Exception:
                    continue
        return events

    @write_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning("audit_event_write_failed", error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events()
                if e.correlation_id == correlation_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
