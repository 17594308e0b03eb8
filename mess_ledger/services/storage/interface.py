"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real document store later
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from storage mechanics

The engine relies on three storage guarantees:
- every write is atomic on its own (no multi-write transactions)
- grids can be created conditionally (create-if-absent)
- observers get pushed a fresh snapshot after every committed change
"""

from abc import ABC, abstractmethod
from typing import Callable, Generic, Optional, TypeVar
from uuid import UUID

import structlog

from mess_ledger.models.attendance import AttendanceGrid
from mess_ledger.models.audit import AuditEvent
from mess_ledger.models.expense import ExpenseEntry


T = TypeVar("T")

Unsubscribe = Callable[[], None]

logger = structlog.get_logger(__name__)


class ChangeNotifier(Generic[T]):
    """
    Fan-out of committed snapshots to subscribers.

    A failing subscriber is logged and skipped; it never undoes the write
    that triggered the notification.
    """

    def __init__(self):
        self._callbacks: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def notify(self, snapshot: T) -> None:
        for callback in list(self._callbacks):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("storage_subscriber_failed")

    def __len__(self) -> int:
        return len(self._callbacks)


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for the expense entry collection.

    Implementations return copies: mutating a returned entry never changes
    stored state.
    """

    @abstractmethod
    async def insert_entry(self, entry: ExpenseEntry) -> bool:
        """
        Insert a new entry.

        Raises:
            DuplicateError: If an entry with the same id exists
            StorageError: If the write is rejected
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: str) -> Optional[ExpenseEntry]:
        """Return the entry, or None if it doesn't exist."""
        pass

    @abstractmethod
    async def replace_entry(self, entry: ExpenseEntry) -> bool:
        """
        Overwrite an existing entry.

        Raises:
            RecordNotFoundError: If the entry doesn't exist
            StorageError: If the write is rejected
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: str) -> bool:
        """
        Delete an entry.

        Returns:
            True if something was deleted, False if it was already gone
        """
        pass

    @abstractmethod
    async def list_entries(self) -> list[ExpenseEntry]:
        """Return every stored entry, in no particular order."""
        pass

    @abstractmethod
    def subscribe(self, callback: Callable[[list[ExpenseEntry]], None]) -> Unsubscribe:
        """
        Register for snapshots of the whole collection after each commit.

        Returns a callable that removes the subscription.
        """
        pass


class AttendanceStorageInterface(ABC):
    """
    Abstract interface for attendance grids, one document per month.
    """

    @abstractmethod
    async def get_grid(self, month: str) -> Optional[AttendanceGrid]:
        """Return the month's grid, or None if it was never created."""
        pass

    @abstractmethod
    async def create_grid_if_absent(
        self,
        grid: AttendanceGrid,
    ) -> tuple[AttendanceGrid, bool]:
        """
        Atomically store `grid` unless one already exists for its month.

        Returns:
            (stored_grid, created) - stored_grid is whichever grid won
        """
        pass

    @abstractmethod
    async def set_cell(
        self,
        month: str,
        day: int,
        member_id: int,
        present: bool,
    ) -> bool:
        """
        Write a single cell. Other cells are untouched, so concurrent writes
        to different cells all survive. Same-cell writes are last-write-wins.

        Raises:
            RecordNotFoundError: If the month's grid doesn't exist
            StorageError: If the write is rejected
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        month: str,
        callback: Callable[[AttendanceGrid], None],
    ) -> Unsubscribe:
        """Register for snapshots of one month's grid after each commit."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation id, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Events about one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Record not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate record."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
