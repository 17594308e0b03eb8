"""
Audit Models for Mess Ledger

Every ledger and attendance action is logged for audit purposes.
This provides:
1. Traceability of who changed what in the shared ledger
2. Debugging information when a write is rejected
3. A way to reconstruct how a balance came about

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from mess_ledger.models.expense import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expense ledger
    ENTRY_ADDED = "entry_added"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"
    VALIDATION_FAILED = "validation_failed"
    PERMISSION_DENIED = "permission_denied"

    # Attendance grid
    GRID_INITIALIZED = "grid_initialized"
    CELL_TOGGLED = "cell_toggled"

    # Failures
    PERSISTENCE_FAILED = "persistence_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'grid')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who did it
    actor: Optional[str] = Field(
        default=None,
        description="Actor identity that triggered the event"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor": self.actor,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         actor, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.actor or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_added(entry_id, actor, subtotal, ...)
        event = AuditEventBuilder.cell_toggled(month, day, member_id, present, ...)
    """

    @staticmethod
    def entry_added(
        entry_id: str,
        actor: str,
        subtotal: str,
        is_proxy: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            entity_type="entry",
            entity_id=entry_id,
            actor=actor,
            correlation_id=correlation_id,
            description=f"Bazaar entry added: {subtotal}",
            details={
                "subtotal": subtotal,
                "is_proxy": is_proxy,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_updated(
        entry_id: str,
        actor: str,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            entity_type="entry",
            entity_id=entry_id,
            actor=actor,
            correlation_id=correlation_id,
            description=f"Bazaar entry updated ({', '.join(changed_fields) or 'no changes'})",
            details={
                "changed_fields": changed_fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_deleted(
        entry_id: str,
        actor: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type="entry",
            entity_id=entry_id,
            actor=actor,
            correlation_id=correlation_id,
            description="Bazaar entry deleted",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        actor: str,
        issues: list[dict],
        entry_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            entity_id=entry_id,
            actor=actor,
            correlation_id=correlation_id,
            description=f"Entry validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def permission_denied(
        entry_id: str,
        actor: str,
        operation: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERMISSION_DENIED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            entity_id=entry_id,
            actor=actor,
            correlation_id=correlation_id,
            description=f"Denied {operation} on entry",
            details={
                "operation": operation,
                "reason": reason,
            },
            is_user_action=True,
        )

    @staticmethod
    def grid_initialized(
        month: str,
        member_count: int,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GRID_INITIALIZED,
            entity_type="grid",
            entity_id=month,
            correlation_id=correlation_id,
            description=(
                f"Attendance grid for {month} created"
                if created
                else f"Attendance grid for {month} already existed"
            ),
            details={
                "member_count": member_count,
                "created": created,
            },
        )

    @staticmethod
    def cell_toggled(
        month: str,
        day: int,
        member_id: int,
        present: bool,
        actor: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CELL_TOGGLED,
            entity_type="grid",
            entity_id=month,
            actor=actor,
            correlation_id=correlation_id,
            description=f"Day {day} meal for member {member_id} set to {'on' if present else 'off'}",
            details={
                "day": day,
                "member_id": member_id,
                "present": present,
            },
            is_user_action=True,
        )

    @staticmethod
    def persistence_failed(
        operation: str,
        error_message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        actor: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            correlation_id=correlation_id,
            description=f"Storage rejected {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
