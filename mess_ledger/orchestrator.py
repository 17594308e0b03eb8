"""
Application Wiring for Mess Ledger

Builds the storage, audit logger and engine components from settings and
hands them back as one container.

DESIGN DECISION: The engine never reaches for globals. Everything an
operation needs is passed in here, so tests can swap any piece (storage,
clock, identity resolver) without patching.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

import structlog

from mess_ledger.audit import AuditLogger
from mess_ledger.config import Settings, get_settings, load_roster
from mess_ledger.ledger import AttendanceBook, ExpenseLedger
from mess_ledger.models.attendance import days_in_month, month_key
from mess_ledger.models.member import Roster
from mess_ledger.services.identity import IdentityResolver, StaticIdentityResolver
from mess_ledger.services.storage import (
    AttendanceStorageInterface,
    AuditStorageInterface,
    ExpenseStorageInterface,
    GoogleSheetsAttendanceStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAttendanceStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
)
from mess_ledger.settlement import SettlementMonitor
from mess_ledger.shifts import ShiftAuthority
from mess_ledger.validation import EntryValidator


logger = structlog.get_logger(__name__)


@dataclass
class MessApp:
    """Everything a front end needs, already wired together."""

    roster: Roster
    authority: ShiftAuthority
    ledger: ExpenseLedger
    attendance: AttendanceBook
    monitor: SettlementMonitor
    audit_logger: AuditLogger
    expense_storage: ExpenseStorageInterface
    attendance_storage: AttendanceStorageInterface
    audit_storage: Optional[AuditStorageInterface]
    currency_symbol: str = "৳"
    backend: str = "memory"


def _build_storage(
    backend: str,
    settings: Settings,
) -> tuple[str, ExpenseStorageInterface, AttendanceStorageInterface, AuditStorageInterface]:
    if backend == "google_sheets":
        try:
            client = GoogleSheetsClient(settings.google_sheets)
            return (
                "google_sheets",
                GoogleSheetsExpenseStorage(client),
                GoogleSheetsAttendanceStorage(client),
                GoogleSheetsAuditStorage(client),
            )
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("google_sheets_unavailable", error=str(e), fallback="memory")

    return (
        "memory",
        InMemoryExpenseStorage(),
        InMemoryAttendanceStorage(),
        InMemoryAuditStorage(),
    )


def create_app_components(
    settings: Optional[Settings] = None,
    roster: Optional[Roster] = None,
    resolver: Optional[IdentityResolver] = None,
    clock: Callable[[], date] = date.today,
) -> MessApp:
    """
    Factory function to create all application components.

    Args:
        settings: Root settings (defaults to get_settings())
        roster: Members and shifts. Loaded from MESS_ROSTER_FILE when omitted.
        resolver: Actor -> member mapping. Defaults to the roster file's
                  identities.
        clock: Today's date, injectable for tests

    Returns:
        MessApp container
    """
    settings = settings or get_settings()
    ledger_settings = settings.ledger
    if ledger_settings.debug_mode:
        logging.getLogger("mess_ledger").setLevel(logging.DEBUG)

    identities: dict[str, int] = {}
    if roster is None:
        if not ledger_settings.roster_file:
            raise ValueError("No roster given and MESS_ROSTER_FILE is not set")
        roster_file = load_roster(ledger_settings.roster_file)
        roster = Roster(members=roster_file.members)
        identities = roster_file.identities
    if resolver is None:
        if not identities:
            logger.warning("no_identities_configured")
        resolver = StaticIdentityResolver(identities)

    active_month = ledger_settings.active_month or month_key(clock())
    gaps = roster.coverage_gaps(days_in_month(active_month))
    if gaps:
        logger.warning("shift_gaps", month=active_month, days=gaps)
    for first, second in roster.overlaps():
        logger.warning("shift_overlap", first_member=first, second_member=second)

    backend, expense_storage, attendance_storage, audit_storage = _build_storage(
        ledger_settings.storage_backend, settings
    )
    audit_logger = AuditLogger(audit_storage)

    authority = ShiftAuthority(roster, policy=ledger_settings.shift_policy, clock=clock)
    validator = EntryValidator(roster, authority, clock=clock)
    ledger = ExpenseLedger(
        expense_storage,
        resolver,
        validator,
        audit_logger=audit_logger,
    )
    attendance = AttendanceBook(
        attendance_storage,
        roster,
        audit_logger=audit_logger,
        clock=clock,
        active_month=ledger_settings.active_month,
    )
    monitor = SettlementMonitor(expense_storage, attendance_storage, attendance, roster)

    logger.info(
        "app_components_created",
        backend=backend,
        members=len(roster),
        shift_policy=authority.policy.value,
    )
    return MessApp(
        roster=roster,
        authority=authority,
        ledger=ledger,
        attendance=attendance,
        monitor=monitor,
        audit_logger=audit_logger,
        expense_storage=expense_storage,
        attendance_storage=attendance_storage,
        audit_storage=audit_storage,
        currency_symbol=ledger_settings.currency_symbol,
        backend=backend,
    )
