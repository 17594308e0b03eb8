"""
Tests for Mess Ledger

Test strategy:
1. Unit tests for individual components (models, validators, calculator)
2. Integration tests for ledger and grid flows (in-memory storage)
3. No real API calls in tests (the Sheets backend runs on a fake worksheet)
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from mess_ledger.errors import NotFoundError
from mess_ledger.models import (
    AttendanceGrid,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    DayRecord,
    ExpenseCategory,
    ExpenseEntry,
    ExpenseItem,
    MemberSettlement,
    Member,
    Roster,
    SettlementReport,
    ValidationIssue,
    ValidationResult,
    days_in_month,
    month_key,
)


class TestMemberModels:
    """Tests for roster models."""

    def test_member_creation(self):
        """Test Member model creation."""
        member = Member(id=1, name="  Rahim  ", shift_start=1, shift_end=6)
        assert member.name == "Rahim"
        assert member.covers(1)
        assert member.covers(6)
        assert not member.covers(7)

    def test_member_shift_end_before_start_rejected(self):
        """Test that a shift cannot end before it starts."""
        with pytest.raises(ValueError):
            Member(id=1, name="Rahim", shift_start=10, shift_end=5)

    def test_member_shift_day_bounds(self):
        """Test shift days must be calendar days."""
        with pytest.raises(ValueError):
            Member(id=1, name="Rahim", shift_start=0, shift_end=5)
        with pytest.raises(ValueError):
            Member(id=1, name="Rahim", shift_start=1, shift_end=32)

    def test_roster_rejects_duplicate_ids(self):
        """Test roster member ids must be unique."""
        with pytest.raises(ValueError):
            Roster(members=[
                Member(id=1, name="A", shift_start=1, shift_end=15),
                Member(id=1, name="B", shift_start=16, shift_end=30),
            ])

    def test_roster_lookup(self, roster):
        """Test get/require/names on the roster."""
        assert roster.get(2).name == "Karim"
        assert roster.get(99) is None
        assert roster.names[5] == "Jabbar"
        assert roster.ids == [1, 2, 3, 4, 5]
        with pytest.raises(NotFoundError):
            roster.require(99)

    def test_roster_coverage_gaps_and_overlaps(self, roster):
        """Test gap and overlap detection."""
        assert roster.coverage_gaps(31) == [31]
        assert roster.overlaps() == []

        overlapping = Roster(members=[
            Member(id=1, name="A", shift_start=1, shift_end=16),
            Member(id=2, name="B", shift_start=15, shift_end=30),
        ])
        assert overlapping.overlaps() == [(1, 2)]


class TestExpenseModels:
    """Tests for expense models."""

    def test_expense_item_rejects_negative_price(self):
        """Test that negative prices are rejected."""
        with pytest.raises(ValueError):
            ExpenseItem(name="Rice", price=Decimal("-1"))

    def test_expense_entry_requires_items(self):
        """Test an entry must carry at least one item."""
        with pytest.raises(ValueError):
            ExpenseEntry(
                entry_date=date(2025, 1, 15),
                payer_id=1,
                attributed_id=1,
                items=[],
                subtotal=Decimal("0"),
                created_by="rahim@mess.test",
                created_at=datetime(2025, 1, 15),
            )

    def test_expense_entry_keeps_stored_subtotal(self):
        """Test subtotal is taken as given, not recomputed from items."""
        entry = ExpenseEntry(
            entry_date=date(2025, 1, 15),
            payer_id=1,
            attributed_id=1,
            items=[ExpenseItem(name="Rice", price=Decimal("100"))],
            subtotal=Decimal("999"),
            created_by="rahim@mess.test",
            created_at=datetime(2025, 1, 15),
        )
        assert entry.subtotal == Decimal("999")
        assert entry.category == ExpenseCategory.REGULAR
        assert len(entry.id) == 32

    def test_category_values(self):
        """Test category enum values."""
        assert ExpenseCategory.REGULAR.value == "regular"
        assert ExpenseCategory.EXTRA.value == "extra"


class TestAttendanceModels:
    """Tests for the attendance grid."""

    def test_month_helpers(self):
        """Test month key and month length."""
        assert month_key(date(2025, 1, 15)) == "2025-01"
        assert days_in_month("2025-02") == 28
        assert days_in_month("2024-02") == 29
        assert days_in_month("2025-04") == 30

    def test_all_present_grid(self):
        """Test the initial grid marks everyone present every day."""
        grid = AttendanceGrid.all_present("2025-04", [1, 2])
        assert grid.days_in_month == 30
        assert all(record.status == {1: True, 2: True} for record in grid.days)

    def test_missing_status_key_is_absent(self):
        """Test a member missing from a day's status counts as absent."""
        record = DayRecord(day=1, status={1: True})
        assert record.is_present(1)
        assert not record.is_present(2)

    def test_grid_requires_every_day(self):
        """Test a grid must have one record per day of its month."""
        with pytest.raises(ValueError):
            AttendanceGrid(month="2025-04", days=[DayRecord(day=1)])

    def test_grid_rejects_bad_month(self):
        """Test month key format."""
        with pytest.raises(ValueError):
            AttendanceGrid.all_present("2025-13", [1])

    def test_grid_days_sorted(self):
        """Test day records are kept in day order."""
        days = [DayRecord(day=d) for d in range(28, 0, -1)]
        grid = AttendanceGrid(month="2025-02", days=days)
        assert [record.day for record in grid.days] == list(range(1, 29))


class TestSettlementModels:
    """Tests for settlement projections."""

    def test_member_status(self):
        """Test get/give status follows the balance sign."""
        owed = MemberSettlement(
            member_id=1, name="A", total_meals=30,
            total_spent=Decimal("150"), meal_cost=Decimal("75"), balance=Decimal("75"),
        )
        owes = MemberSettlement(
            member_id=2, name="B", total_meals=30,
            total_spent=Decimal("0"), meal_cost=Decimal("75"), balance=Decimal("-75"),
        )
        even = MemberSettlement(
            member_id=3, name="C", total_meals=0,
            total_spent=Decimal("0"), meal_cost=Decimal("0"), balance=Decimal("0"),
        )
        assert owed.status == "get"
        assert owes.status == "give"
        assert even.status == "get"

    def test_report_lookup(self):
        """Test for_member and total_balance."""
        line = MemberSettlement(
            member_id=1, name="A", total_meals=0,
            total_spent=Decimal("0"), meal_cost=Decimal("0"), balance=Decimal("0"),
        )
        report = SettlementReport(
            total_bazaar_cost=Decimal("0"),
            grand_total_meals=0,
            meal_rate=Decimal("0"),
            members=(line,),
        )
        assert report.for_member(1) is line
        assert report.total_balance == Decimal("0")
        with pytest.raises(KeyError):
            report.for_member(2)


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.ENTRY_ADDED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.CELL_TOGGLED,
            description="Test",
            actor="rahim@mess.test",
            details={"key": "value"},
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "cell_toggled"
        assert log_dict["actor"] == "rahim@mess.test"
        assert log_dict["details"] == {"key": "value"}

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            description="Test",
            details={"amount": Decimal("1.5")},
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "persistence_failed"
        assert row[9] == '{"amount": "1.5"}'

    def test_audit_event_builder_entry_added(self):
        """Test builder for entry added event."""
        correlation_id = uuid4()
        event = AuditEventBuilder.entry_added(
            entry_id="abc",
            actor="rahim@mess.test",
            subtotal="150",
            is_proxy=False,
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.ENTRY_ADDED
        assert event.entity_id == "abc"
        assert event.correlation_id == correlation_id
        assert event.is_user_action

    def test_audit_event_builder_permission_denied(self):
        """Test builder for permission denied event."""
        event = AuditEventBuilder.permission_denied(
            entry_id="abc",
            actor="karim@mess.test",
            operation="delete",
            reason="entry belongs to rahim@mess.test",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.details["operation"] == "delete"


class TestValidationResult:
    """Tests for validation result logic."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="entry_date",
                    issue_type="missing",
                    message="Date is required",
                    severity="error",
                ),
                ValidationIssue(
                    field="attributed_id",
                    issue_type="off_shift",
                    message="Not on shift",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors
        assert len(result.errors) == 1
        assert len(result.warnings) == 1

    def test_validation_issue_severity_pattern(self):
        """Test severity must be error, warning or info."""
        with pytest.raises(ValueError):
            ValidationIssue(
                field="items",
                issue_type="missing",
                message="x",
                severity="fatal",
            )
