"""
Attendance Book

Daily meal attendance for the active month: one cell per (day, member),
True meaning the member eats that day.

DESIGN DECISION: Cells are written one at a time. A toggle reads the
current value and writes back only the flipped cell, never the whole
grid, so two members toggling different cells at the same moment both
keep their change.

The grid is created lazily, all members present, through the storage's
create-if-absent primitive. If two clients open an empty month together,
exactly one grid is stored and both see it.
"""

from datetime import date
from typing import Callable, Optional
from uuid import UUID

import structlog

from mess_ledger.audit import AuditLogger, create_correlation_id
from mess_ledger.errors import NotFoundError, PersistenceError
from mess_ledger.models.attendance import AttendanceGrid, month_key
from mess_ledger.models.member import Roster
from mess_ledger.services.storage import (
    AttendanceStorageInterface,
    RecordNotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


class AttendanceBook:
    """Shared-write meal grid. Any actor may change any cell."""

    def __init__(
        self,
        storage: AttendanceStorageInterface,
        roster: Roster,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], date] = date.today,
        active_month: Optional[str] = None,
    ):
        self._storage = storage
        self._roster = roster
        self._audit_logger = audit_logger
        self._clock = clock
        self._active_month = active_month

    @property
    def month(self) -> str:
        """The month operations default to: configured, else the current one."""
        return self._active_month or month_key(self._clock())

    async def get_or_init_grid(
        self,
        month: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AttendanceGrid:
        """
        Return the month's grid, creating it (everyone present) if missing.
        """
        month = month or self.month
        try:
            grid = await self._storage.get_grid(month)
            if grid is not None:
                return grid

            candidate = AttendanceGrid.all_present(month, self._roster.ids)
            stored, created = await self._storage.create_grid_if_absent(candidate)
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_persistence_failed(
                    operation="init_grid",
                    error_message=str(e),
                    entity_type="grid",
                    entity_id=month,
                    correlation_id=correlation_id,
                )
            raise PersistenceError(f"Could not load attendance for {month}: {e}") from e

        if self._audit_logger:
            await self._audit_logger.log_grid_initialized(
                month=month,
                member_count=len(self._roster),
                created=created,
                correlation_id=correlation_id,
            )
        return stored

    async def _prepare(
        self,
        day: int,
        member_id: int,
        month: Optional[str],
        correlation_id: UUID,
    ) -> AttendanceGrid:
        """Check the cell exists and return the current grid."""
        if self._roster.get(member_id) is None:
            raise NotFoundError(f"Member {member_id} is not on the roster")
        grid = await self.get_or_init_grid(month, correlation_id=correlation_id)
        if not 1 <= day <= grid.days_in_month:
            raise NotFoundError(f"Day {day} is not in {grid.month}")
        return grid

    async def _write_cell(
        self,
        month: str,
        day: int,
        member_id: int,
        present: bool,
        actor: Optional[str],
        correlation_id: UUID,
    ) -> None:
        try:
            await self._storage.set_cell(month, day, member_id, present)
        except RecordNotFoundError as e:
            raise NotFoundError(str(e)) from e
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_persistence_failed(
                    operation="set_cell",
                    error_message=str(e),
                    entity_type="grid",
                    entity_id=month,
                    actor=actor,
                    correlation_id=correlation_id,
                )
            raise PersistenceError(
                f"Could not update day {day} for member {member_id}: {e}"
            ) from e

        if self._audit_logger:
            await self._audit_logger.log_cell_toggled(
                month=month,
                day=day,
                member_id=member_id,
                present=present,
                actor=actor,
                correlation_id=correlation_id,
            )

    async def toggle_cell(
        self,
        day: int,
        member_id: int,
        month: Optional[str] = None,
        actor: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Flip one member's attendance for one day.

        Returns the new value of the cell.

        Raises:
            NotFoundError: day outside the month, or member not on the roster
            PersistenceError: storage rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()
        grid = await self._prepare(day, member_id, month, correlation_id)
        present = not grid.is_present(day, member_id)
        await self._write_cell(grid.month, day, member_id, present, actor, correlation_id)
        return present

    async def set_cell(
        self,
        day: int,
        member_id: int,
        present: bool,
        month: Optional[str] = None,
        actor: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Set one cell to an explicit value (e.g. a member away for a week)."""
        correlation_id = correlation_id or create_correlation_id()
        grid = await self._prepare(day, member_id, month, correlation_id)
        await self._write_cell(grid.month, day, member_id, present, actor, correlation_id)
