"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
In-memory storage for tests and local runs; Google Sheets for the shared
household spreadsheet.
"""

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
from mess_ledger.services.storage.memory import (
    InMemoryAttendanceStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
)
from mess_ledger.services.storage.google_sheets import (
    GoogleSheetsAttendanceStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
)

__all__ = [
    # Interfaces
    "AttendanceStorageInterface",
    "AuditStorageInterface",
    "ExpenseStorageInterface",
    "ChangeNotifier",
    "Unsubscribe",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "RecordNotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAttendanceStorage",
    "InMemoryAuditStorage",
    "InMemoryExpenseStorage",
    # Google Sheets implementation
    "GoogleSheetsAttendanceStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
]
