"""Expense ledger and attendance grid."""

from mess_ledger.ledger.attendance import AttendanceBook
from mess_ledger.ledger.expenses import CreationStamper, ExpenseLedger

__all__ = [
    "AttendanceBook",
    "CreationStamper",
    "ExpenseLedger",
]
