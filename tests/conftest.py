"""
Shared fixtures for Mess Ledger tests.

Everything runs against the in-memory stores with a fixed clock, so no
test depends on today's date or on network access.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from mess_ledger.audit import AuditLogger
from mess_ledger.ledger import AttendanceBook, ExpenseLedger
from mess_ledger.models import ExpenseEntry, ExpenseItem, Member, Roster
from mess_ledger.services.identity import StaticIdentityResolver
from mess_ledger.services.storage import (
    InMemoryAttendanceStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
)
from mess_ledger.shifts import ShiftAuthority
from mess_ledger.validation import EntryValidator


TODAY = date(2025, 1, 15)
MONTH = "2025-01"

RAHIM = "rahim@mess.test"
KARIM = "karim@mess.test"
SUMAN = "suman@mess.test"
STRANGER = "stranger@elsewhere.test"


@pytest.fixture
def roster() -> Roster:
    return Roster(members=[
        Member(id=1, name="Rahim", shift_start=1, shift_end=6),
        Member(id=2, name="Karim", shift_start=7, shift_end=12),
        Member(id=3, name="Suman", shift_start=13, shift_end=18),
        Member(id=4, name="Salam", shift_start=19, shift_end=24),
        Member(id=5, name="Jabbar", shift_start=25, shift_end=30),
    ])


@pytest.fixture
def resolver() -> StaticIdentityResolver:
    return StaticIdentityResolver({
        RAHIM: 1,
        KARIM: 2,
        SUMAN: 3,
        "salam@mess.test": 4,
        "jabbar@mess.test": 5,
    })


@pytest.fixture
def clock():
    return lambda: TODAY


@pytest.fixture
def expense_storage() -> InMemoryExpenseStorage:
    return InMemoryExpenseStorage()


@pytest.fixture
def attendance_storage() -> InMemoryAttendanceStorage:
    return InMemoryAttendanceStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def authority(roster, clock) -> ShiftAuthority:
    return ShiftAuthority(roster, clock=clock)


@pytest.fixture
def validator(roster, authority, clock) -> EntryValidator:
    return EntryValidator(roster, authority, clock=clock)


@pytest.fixture
def ledger(expense_storage, resolver, validator, audit_logger) -> ExpenseLedger:
    return ExpenseLedger(
        expense_storage,
        resolver,
        validator,
        audit_logger=audit_logger,
    )


@pytest.fixture
def book(attendance_storage, roster, audit_logger, clock) -> AttendanceBook:
    return AttendanceBook(
        attendance_storage,
        roster,
        audit_logger=audit_logger,
        clock=clock,
    )


@pytest.fixture
def make_entry():
    """Build stored-looking entries directly, bypassing validation."""
    counter = {"n": 0}

    def _make(payer_id, subtotal, attributed_id=None, items=None, created_by=RAHIM):
        counter["n"] += 1
        subtotal = Decimal(str(subtotal))
        attributed_id = payer_id if attributed_id is None else attributed_id
        return ExpenseEntry(
            entry_date=TODAY,
            payer_id=payer_id,
            attributed_id=attributed_id,
            items=items or [ExpenseItem(name="Bazaar", price=subtotal)],
            subtotal=subtotal,
            is_proxy=attributed_id != payer_id,
            created_by=created_by,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=counter["n"]),
        )

    return _make
