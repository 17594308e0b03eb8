"""
Live Settlement

Keeps a SettlementReport up to date while the ledger and the attendance
grid change underneath it.

The monitor subscribes to both stores BEFORE reading the initial
snapshots. A notification that lands while the initial read is in flight
is newer than that read, so it wins.
"""

from typing import Callable, Optional

import structlog

from mess_ledger.errors import PersistenceError
from mess_ledger.ledger.attendance import AttendanceBook
from mess_ledger.models.attendance import AttendanceGrid
from mess_ledger.models.expense import ExpenseEntry
from mess_ledger.models.member import Roster
from mess_ledger.models.settlement import SettlementReport
from mess_ledger.services.storage import (
    AttendanceStorageInterface,
    ChangeNotifier,
    ExpenseStorageInterface,
    StorageError,
    Unsubscribe,
)
from mess_ledger.settlement.calculator import compute_settlement


logger = structlog.get_logger(__name__)


class SettlementMonitor:
    """Recomputes settlement on every committed change and tells listeners."""

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        attendance_storage: AttendanceStorageInterface,
        attendance_book: AttendanceBook,
        roster: Roster,
    ):
        self._expense_storage = expense_storage
        self._attendance_storage = attendance_storage
        self._book = attendance_book
        self._roster = roster

        self._entries: Optional[list[ExpenseEntry]] = None
        self._grid: Optional[AttendanceGrid] = None
        self._report: Optional[SettlementReport] = None
        self._listeners: ChangeNotifier[SettlementReport] = ChangeNotifier()
        self._subscriptions: list[Unsubscribe] = []

    @property
    def report(self) -> Optional[SettlementReport]:
        """Latest report, or None before start()."""
        return self._report

    @property
    def running(self) -> bool:
        return bool(self._subscriptions)

    def add_listener(self, callback: Callable[[SettlementReport], None]) -> Unsubscribe:
        return self._listeners.subscribe(callback)

    async def start(self, month: Optional[str] = None) -> SettlementReport:
        """
        Subscribe to both stores and compute the first report.

        Creates the month's grid if it doesn't exist yet.
        """
        if self.running:
            self.stop()
        month = month or self._book.month

        self._entries = None
        self._grid = None
        self._subscriptions = [
            self._expense_storage.subscribe(self._on_entries),
            self._attendance_storage.subscribe(month, self._on_grid),
        ]

        try:
            try:
                entries = await self._expense_storage.list_entries()
            except StorageError as e:
                raise PersistenceError(f"Could not load entries: {e}") from e
            grid = await self._book.get_or_init_grid(month)
        except PersistenceError:
            self.stop()
            raise
        if self._entries is None:
            self._entries = entries
        if self._grid is None:
            self._grid = grid

        logger.info("settlement_monitor_started", month=month, entries=len(self._entries))
        return self._recompute()

    def stop(self) -> None:
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions = []
        logger.info("settlement_monitor_stopped")

    def _on_entries(self, entries: list[ExpenseEntry]) -> None:
        self._entries = entries
        if self._grid is not None:
            self._recompute()

    def _on_grid(self, grid: AttendanceGrid) -> None:
        self._grid = grid
        if self._entries is not None:
            self._recompute()

    def _recompute(self) -> SettlementReport:
        report = compute_settlement(self._entries or [], self._grid, self._roster)
        self._report = report
        logger.debug(
            "settlement_recomputed",
            total_bazaar_cost=str(report.total_bazaar_cost),
            grand_total_meals=report.grand_total_meals,
            meal_rate=str(report.meal_rate),
        )
        self._listeners.notify(report)
        return report
