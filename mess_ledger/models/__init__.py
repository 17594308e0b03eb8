"""
Data Models Package

This package contains all Pydantic models used in the Mess Ledger system.
All data flowing through the engine must conform to these schemas.
"""

from mess_ledger.models.member import Member, Roster, ShiftPolicy
from mess_ledger.models.expense import (
    ExpenseCategory,
    ExpenseEntry,
    ExpenseItem,
    ExpensePatch,
    ValidationIssue,
    ValidationResult,
)
from mess_ledger.models.attendance import (
    AttendanceGrid,
    DayRecord,
    days_in_month,
    month_key,
)
from mess_ledger.models.settlement import MemberSettlement, SettlementReport
from mess_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Roster
    "Member",
    "Roster",
    "ShiftPolicy",
    # Expense models
    "ExpenseCategory",
    "ExpenseEntry",
    "ExpenseItem",
    "ExpensePatch",
    "ValidationIssue",
    "ValidationResult",
    # Attendance models
    "AttendanceGrid",
    "DayRecord",
    "days_in_month",
    "month_key",
    # Settlement models
    "MemberSettlement",
    "SettlementReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
