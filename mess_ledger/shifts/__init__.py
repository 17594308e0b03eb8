"""Shift lookups and attribution policy."""

from mess_ledger.shifts.authorization import ShiftAuthority

__all__ = ["ShiftAuthority"]
