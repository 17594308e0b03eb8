"""
Engine Error Kinds

Every public ledger/grid operation fails with one of these.
Errors are local to the failing operation: each operation issues at most
one write, so nothing partial is ever left behind.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for all engine errors."""
    pass


class ValidationError(LedgerError):
    """Malformed entry (missing date, no valid items, bad attribution)."""

    def __init__(self, message: str, issues: Optional[list] = None):
        super().__init__(message)
        self.issues = issues or []


class PermissionDeniedError(LedgerError):
    """Actor may not modify this entry, or the shift policy rejected it."""
    pass


class NotFoundError(LedgerError):
    """Referenced entry, member, actor or day does not exist."""
    pass


class PersistenceError(LedgerError):
    """The storage collaborator rejected a write. Not retried by the engine."""
    pass
