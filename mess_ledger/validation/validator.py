"""
Entry Validation

Raw input from the entry form is messy: blank rows, half-filled rows,
prices typed as text. Validation happens in two stages:

STAGE 1 - FORM CLEANUP:
- Parse the date
- Keep only well-formed item rows (non-empty name, positive price)
- Compute the subtotal from the rows that survived

STAGE 2 - LEDGER RULES:
- Payer and attributed member must be on the roster
- Shift policy check on the attribution
- Suspicious dates (future, outside the active month) are warnings

IMPORTANT: Malformed rows are dropped, not repaired. A row with a price
of "12,5" is discarded rather than guessed at.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, Union

from mess_ledger.models.attendance import month_key
from mess_ledger.models.expense import (
    ExpenseItem,
    ValidationIssue,
    ValidationResult,
)
from mess_ledger.models.member import Roster
from mess_ledger.shifts.authorization import ShiftAuthority


def _row_value(row: Any, field: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(field)
    return getattr(row, field, None)


def clean_item(row: Any) -> Optional[ExpenseItem]:
    """Return the row as an ExpenseItem, or None if it isn't well-formed."""
    name = _row_value(row, "name")
    price = _row_value(row, "price")
    if name is None or price is None or isinstance(price, bool):
        return None
    name = str(name).strip()
    if not name:
        return None
    try:
        amount = Decimal(str(price).strip())
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return ExpenseItem(name=name, price=amount)


def clean_items(rows: Optional[Iterable[Any]]) -> tuple[list[ExpenseItem], int]:
    """
    Filter raw rows down to well-formed items, preserving order.

    Returns: (items, number_of_dropped_rows)
    """
    items = []
    dropped = 0
    for row in rows or []:
        item = clean_item(row)
        if item is None:
            dropped += 1
        else:
            items.append(item)
    return items, dropped


def parse_entry_date(value: Union[date, str, None]) -> Optional[date]:
    """Accept a date or an ISO (YYYY-MM-DD) string. Returns None if unusable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


class EntryValidator:
    """
    Validates add/edit requests for expense entries.
    """

    def __init__(
        self,
        roster: Roster,
        authority: ShiftAuthority,
        clock: Callable[[], date] = date.today,
        future_date_tolerance_days: int = 1,
    ):
        self._roster = roster
        self._authority = authority
        self._clock = clock
        self._future_tolerance = timedelta(days=future_date_tolerance_days)

    def _validate_form(
        self,
        raw_date: Union[date, str, None],
        rows: Optional[Iterable[Any]],
    ) -> tuple[Optional[date], list[ExpenseItem], int, list[ValidationIssue]]:
        """Stage 1: date parsing and item filtering."""
        issues = []

        entry_date = parse_entry_date(raw_date)
        if entry_date is None:
            if raw_date is None or not str(raw_date).strip():
                issues.append(ValidationIssue(
                    field="entry_date",
                    issue_type="missing",
                    message="Date is required",
                    severity="error",
                ))
            else:
                issues.append(ValidationIssue(
                    field="entry_date",
                    issue_type="invalid_format",
                    message=f"Date {raw_date!r} is not a valid YYYY-MM-DD date",
                    severity="error",
                ))

        items, dropped = clean_items(rows)
        if not items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="missing",
                message="At least one item with a name and a positive price is required",
                severity="error",
            ))
        elif dropped:
            issues.append(ValidationIssue(
                field="items",
                issue_type="dropped_rows",
                message=f"{dropped} incomplete item row(s) were ignored",
                severity="info",
            ))

        return entry_date, items, dropped, issues

    def _validate_rules(
        self,
        entry_date: date,
        payer_id: int,
        attributed_id: int,
    ) -> list[ValidationIssue]:
        """Stage 2: roster references, shift policy, suspicious dates."""
        issues = []

        for field, member_id in (("payer_id", payer_id), ("attributed_id", attributed_id)):
            if self._roster.get(member_id) is None:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="unknown_member",
                    message=f"Member {member_id} is not on the roster",
                    severity="error",
                ))
        if any(issue.severity == "error" for issue in issues):
            return issues

        issues.extend(
            self._authority.review_attribution(payer_id, attributed_id, entry_date)
        )

        today = self._clock()
        if entry_date > today + self._future_tolerance:
            issues.append(ValidationIssue(
                field="entry_date",
                issue_type="future_date",
                message=f"Date ({entry_date.isoformat()}) is in the future",
                severity="warning",
            ))
        elif month_key(entry_date) != month_key(today):
            issues.append(ValidationIssue(
                field="entry_date",
                issue_type="outside_month",
                message=f"Date ({entry_date.isoformat()}) is outside the current month",
                severity="warning",
            ))

        return issues

    def validate(
        self,
        raw_date: Union[date, str, None],
        rows: Optional[Iterable[Any]],
        payer_id: int,
        attributed_id: int,
    ) -> ValidationResult:
        """
        Run both stages.

        Stage 2 only runs when stage 1 produced a usable date and items.
        """
        entry_date, items, dropped, issues = self._validate_form(raw_date, rows)

        if not any(issue.severity == "error" for issue in issues):
            issues.extend(self._validate_rules(entry_date, payer_id, attributed_id))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return ValidationResult(
            is_valid=is_valid,
            issues=issues,
            entry_date=entry_date,
            items=items,
            subtotal=sum((item.price for item in items), Decimal("0")),
            dropped_rows=dropped,
        )


def summarize_issues(result: ValidationResult) -> str:
    """One line per error/warning, for showing back to the member."""
    if result.is_valid and not result.warnings:
        return "Entry looks good."

    lines = []
    for issue in result.errors:
        lines.append(f"Error: {issue.message}")
    for issue in result.warnings:
        lines.append(f"Check: {issue.message}")
    return "\n".join(lines)
