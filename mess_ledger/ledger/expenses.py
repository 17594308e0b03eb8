"""
Expense Ledger

The shared record of bazaar purchases.

Flow for a write:
1. Resolve the actor to a roster member
2. Validate (form cleanup, then ledger rules)
3. Check ownership (edits and deletes only)
4. Issue exactly ONE storage write
5. Audit

DESIGN DECISION: Every operation issues at most one storage write, so a
failure never leaves a half-applied change behind. Storage failures are
surfaced as PersistenceError and are NOT retried here; the storage
backend owns its own retry policy.
"""

from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, Optional, Union
from uuid import UUID

import structlog

from mess_ledger.audit import AuditLogger, create_correlation_id
from mess_ledger.errors import (
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)
from mess_ledger.models.expense import (
    ExpenseCategory,
    ExpenseEntry,
    ExpensePatch,
    ValidationResult,
    utc_now,
)
from mess_ledger.services.identity import IdentityResolver, require_member_id
from mess_ledger.services.storage import (
    ExpenseStorageInterface,
    RecordNotFoundError,
    StorageError,
)
from mess_ledger.validation import EntryValidator


logger = structlog.get_logger(__name__)


class CreationStamper:
    """
    Hands out strictly increasing creation timestamps.

    The wall clock can repeat (or step backwards), so a stamp that is not
    after the last one issued is bumped one microsecond past it.
    """

    def __init__(self, now: Callable[[], datetime] = utc_now):
        self._now = now
        self._last: Optional[datetime] = None

    def next(self) -> datetime:
        stamp = self._now()
        if self._last is not None and stamp <= self._last:
            stamp = self._last + timedelta(microseconds=1)
        self._last = stamp
        return stamp


def _same_actor(left: str, right: str) -> bool:
    return left.strip().lower() == right.strip().lower()


class ExpenseLedger:
    """
    Add, edit, delete and list bazaar entries.

    Anyone may read the ledger. Only the actor that created an entry may
    change or remove it.
    """

    def __init__(
        self,
        storage: ExpenseStorageInterface,
        resolver: IdentityResolver,
        validator: EntryValidator,
        audit_logger: Optional[AuditLogger] = None,
        now: Callable[[], datetime] = utc_now,
    ):
        self._storage = storage
        self._resolver = resolver
        self._validator = validator
        self._audit_logger = audit_logger
        self._now = now
        self._stamper = CreationStamper(now)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _reject_invalid(
        self,
        result: ValidationResult,
        actor: str,
        entry_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Raise the error kind matching the first blocking issue."""
        errors = result.errors
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                actor=actor,
                issues=[issue.model_dump() for issue in errors],
                entry_id=entry_id,
                correlation_id=correlation_id,
            )

        messages = "; ".join(issue.message for issue in errors)
        issue_types = {issue.issue_type for issue in errors}
        if "unknown_member" in issue_types:
            raise NotFoundError(messages)
        if "off_shift" in issue_types:
            raise PermissionDeniedError(messages)
        raise ValidationError(messages, issues=errors)

    async def _deny(
        self,
        entry: ExpenseEntry,
        actor: str,
        operation: str,
        correlation_id: UUID,
    ) -> None:
        reason = f"entry belongs to {entry.created_by}"
        if self._audit_logger:
            await self._audit_logger.log_permission_denied(
                entry_id=entry.id,
                actor=actor,
                operation=operation,
                reason=reason,
                correlation_id=correlation_id,
            )
        raise PermissionDeniedError(
            f"{actor} may not {operation} entry {entry.id}: {reason}"
        )

    async def _persistence_failed(
        self,
        operation: str,
        error: StorageError,
        entry_id: str,
        actor: str,
        correlation_id: UUID,
    ) -> PersistenceError:
        if self._audit_logger:
            await self._audit_logger.log_persistence_failed(
                operation=operation,
                error_message=str(error),
                entity_type="entry",
                entity_id=entry_id,
                actor=actor,
                correlation_id=correlation_id,
            )
        return PersistenceError(f"Could not {operation} entry {entry_id}: {error}")

    async def _load(self, entry_id: str) -> Optional[ExpenseEntry]:
        try:
            return await self._storage.get_entry(entry_id)
        except StorageError as e:
            raise PersistenceError(f"Could not read entry {entry_id}: {e}") from e

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def add_entry(
        self,
        entry_date: Union[date, str, None],
        items: Optional[Iterable[Any]],
        category: ExpenseCategory,
        actor: str,
        attributed_id: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Record a purchase paid by `actor`.

        Args:
            entry_date: Purchase date (date or YYYY-MM-DD string)
            items: Raw item rows; malformed rows are dropped
            category: Regular or extra bazaar
            actor: Authenticated identity of the member who paid
            attributed_id: Member whose shift this counts against
                (defaults to the payer)

        Returns:
            The new entry id

        Raises:
            NotFoundError: actor or attributed member is not on the roster
            ValidationError: no usable date or no well-formed items
            PermissionDeniedError: strict shift policy refused the attribution
            PersistenceError: storage rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()
        payer_id = require_member_id(self._resolver, actor)
        if attributed_id is None:
            attributed_id = payer_id

        result = self._validator.validate(entry_date, items, payer_id, attributed_id)
        if not result.is_valid:
            await self._reject_invalid(result, actor, None, correlation_id)

        entry = ExpenseEntry(
            entry_date=result.entry_date,
            payer_id=payer_id,
            attributed_id=attributed_id,
            items=result.items,
            subtotal=result.subtotal,
            category=ExpenseCategory(category),
            is_proxy=attributed_id != payer_id,
            created_by=actor.strip(),
            created_at=self._stamper.next(),
        )

        try:
            await self._storage.insert_entry(entry)
        except StorageError as e:
            raise await self._persistence_failed(
                "add", e, entry.id, actor, correlation_id
            ) from e

        if result.warnings:
            logger.warning(
                "entry_added_with_warnings",
                entry_id=entry.id,
                warnings=[issue.message for issue in result.warnings],
            )
        if self._audit_logger:
            await self._audit_logger.log_entry_added(
                entry_id=entry.id,
                actor=actor,
                subtotal=str(entry.subtotal),
                is_proxy=entry.is_proxy,
                correlation_id=correlation_id,
            )
        return entry.id

    async def update_entry(
        self,
        entry_id: str,
        patch: Union[ExpensePatch, dict],
        actor: str,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseEntry:
        """
        Edit an entry owned by `actor`.

        Fields left unset in the patch keep their current values. The
        result is validated exactly like a new entry; the subtotal is
        recomputed from the surviving items.

        Returns the updated entry.
        """
        correlation_id = correlation_id or create_correlation_id()
        if isinstance(patch, dict):
            patch = ExpensePatch(**patch)

        entry = await self._load(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        if not _same_actor(actor, entry.created_by):
            await self._deny(entry, actor, "update", correlation_id)

        raw_date = patch.entry_date if patch.entry_date is not None else entry.entry_date
        rows = patch.items if patch.items is not None else entry.items
        attributed_id = (
            patch.attributed_id if patch.attributed_id is not None else entry.attributed_id
        )
        category = patch.category if patch.category is not None else entry.category

        result = self._validator.validate(raw_date, rows, entry.payer_id, attributed_id)
        if not result.is_valid:
            await self._reject_invalid(result, actor, entry_id, correlation_id)

        changes = {
            "entry_date": result.entry_date,
            "items": result.items,
            "subtotal": result.subtotal,
            "category": category,
            "attributed_id": attributed_id,
            "is_proxy": attributed_id != entry.payer_id,
        }
        changed_fields = [
            field for field, value in changes.items()
            if getattr(entry, field) != value
        ]
        updated = entry.model_copy(update={**changes, "updated_at": self._now()})

        try:
            await self._storage.replace_entry(updated)
        except RecordNotFoundError as e:
            raise NotFoundError(f"Entry not found: {entry_id}") from e
        except StorageError as e:
            raise await self._persistence_failed(
                "update", e, entry_id, actor, correlation_id
            ) from e

        if self._audit_logger:
            await self._audit_logger.log_entry_updated(
                entry_id=entry_id,
                actor=actor,
                changed_fields=changed_fields,
                correlation_id=correlation_id,
            )
        return updated

    async def delete_entry(
        self,
        entry_id: str,
        actor: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Remove an entry owned by `actor`.

        Deleting an entry that no longer exists is a no-op.
        """
        correlation_id = correlation_id or create_correlation_id()

        entry = await self._load(entry_id)
        if entry is None:
            logger.debug("delete_missing_entry", entry_id=entry_id, actor=actor)
            return
        if not _same_actor(actor, entry.created_by):
            await self._deny(entry, actor, "delete", correlation_id)

        try:
            await self._storage.delete_entry(entry_id)
        except StorageError as e:
            raise await self._persistence_failed(
                "delete", e, entry_id, actor, correlation_id
            ) from e

        if self._audit_logger:
            await self._audit_logger.log_entry_deleted(
                entry_id=entry_id,
                actor=actor,
                correlation_id=correlation_id,
            )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_entry(self, entry_id: str) -> ExpenseEntry:
        entry = await self._load(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return entry

    async def list_entries(
        self,
        actor: Optional[str] = None,
        mine: bool = False,
        attributed_id: Optional[int] = None,
    ) -> list[ExpenseEntry]:
        """
        Entries, newest first.

        Args:
            actor: Identity used by the `mine` filter
            mine: Only entries the actor paid for
            attributed_id: Only entries counted against this member's shift
        """
        if mine and not actor:
            raise ValueError("mine=True needs an actor")

        try:
            entries = await self._storage.list_entries()
        except StorageError as e:
            raise PersistenceError(f"Could not list entries: {e}") from e

        if mine:
            payer_id = require_member_id(self._resolver, actor)
            entries = [entry for entry in entries if entry.payer_id == payer_id]
        if attributed_id is not None:
            entries = [entry for entry in entries if entry.attributed_id == attributed_id]

        return sorted(entries, key=lambda entry: (entry.created_at, entry.id), reverse=True)
