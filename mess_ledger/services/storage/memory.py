"""
In-Memory Storage Implementation

Used for tests and for running without a configured backend.

Each operation takes an asyncio.Lock, so every write is atomic with
respect to other coroutines on the same loop, and create-if-absent is a
true conditional write. Subscribers are notified only after a write has
been committed.
"""

import asyncio
from typing import Callable, Optional
from uuid import UUID

from mess_ledger.models.attendance import AttendanceGrid
from mess_ledger.models.audit import AuditEvent
from mess_ledger.models.expense import ExpenseEntry
from mess_ledger.services.storage.interface import (
    AttendanceStorageInterface,
    AuditStorageInterface,
    ChangeNotifier,
    DuplicateError,
    ExpenseStorageInterface,
    RecordNotFoundError,
    Unsubscribe,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expense entries kept in a dict keyed by entry id."""

    def __init__(self):
        self._entries: dict[str, ExpenseEntry] = {}
        self._lock = asyncio.Lock()
        self._notifier: ChangeNotifier[list[ExpenseEntry]] = ChangeNotifier()

    def _snapshot(self) -> list[ExpenseEntry]:
        return [entry.model_copy(deep=True) for entry in self._entries.values()]

    async def insert_entry(self, entry: ExpenseEntry) -> bool:
        async with self._lock:
            if entry.id in self._entries:
                raise DuplicateError(f"Entry already exists: {entry.id}")
            self._entries[entry.id] = entry.model_copy(deep=True)
            snapshot = self._snapshot()
        self._notifier.notify(snapshot)
        return True

    async def get_entry(self, entry_id: str) -> Optional[ExpenseEntry]:
        async with self._lock:
            entry = self._entries.get(entry_id)
            return entry.model_copy(deep=True) if entry else None

    async def replace_entry(self, entry: ExpenseEntry) -> bool:
        async with self._lock:
            if entry.id not in self._entries:
                raise RecordNotFoundError(f"Entry not found: {entry.id}")
            self._entries[entry.id] = entry.model_copy(deep=True)
            snapshot = self._snapshot()
        self._notifier.notify(snapshot)
        return True

    async def delete_entry(self, entry_id: str) -> bool:
        async with self._lock:
            if self._entries.pop(entry_id, None) is None:
                return False
            snapshot = self._snapshot()
        self._notifier.notify(snapshot)
        return True

    async def list_entries(self) -> list[ExpenseEntry]:
        async with self._lock:
            return self._snapshot()

    def subscribe(self, callback: Callable[[list[ExpenseEntry]], None]) -> Unsubscribe:
        return self._notifier.subscribe(callback)


class InMemoryAttendanceStorage(AttendanceStorageInterface):
    """Attendance grids kept in a dict keyed by month."""

    def __init__(self):
        self._grids: dict[str, AttendanceGrid] = {}
        self._lock = asyncio.Lock()
        self._notifiers: dict[str, ChangeNotifier[AttendanceGrid]] = {}

    def _notify(self, month: str, grid: AttendanceGrid) -> None:
        notifier = self._notifiers.get(month)
        if notifier:
            notifier.notify(grid)

    async def get_grid(self, month: str) -> Optional[AttendanceGrid]:
        async with self._lock:
            grid = self._grids.get(month)
            return grid.model_copy(deep=True) if grid else None

    async def create_grid_if_absent(
        self,
        grid: AttendanceGrid,
    ) -> tuple[AttendanceGrid, bool]:
        async with self._lock:
            existing = self._grids.get(grid.month)
            if existing is not None:
                return existing.model_copy(deep=True), False
            self._grids[grid.month] = grid.model_copy(deep=True)
            snapshot = grid.model_copy(deep=True)
        self._notify(grid.month, snapshot.model_copy(deep=True))
        return snapshot, True

    async def set_cell(
        self,
        month: str,
        day: int,
        member_id: int,
        present: bool,
    ) -> bool:
        async with self._lock:
            grid = self._grids.get(month)
            if grid is None:
                raise RecordNotFoundError(f"No attendance grid for {month}")
            if not 1 <= day <= grid.days_in_month:
                raise RecordNotFoundError(f"Day {day} is not in {month}")
            grid.record(day).status[member_id] = present
            snapshot = grid.model_copy(deep=True)
        self._notify(month, snapshot)
        return True

    def subscribe(
        self,
        month: str,
        callback: Callable[[AttendanceGrid], None],
    ) -> Unsubscribe:
        notifier = self._notifiers.setdefault(month, ChangeNotifier())
        return notifier.subscribe(callback)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
