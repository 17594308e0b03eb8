"""
Expense Ledger Models

These models define the schemas for bazaar purchases.

CRITICAL: `subtotal` is a write-time invariant, NOT a read-time computation.
The validator computes it when an entry is created or edited. Entries
loaded back from storage keep whatever subtotal was stored, so corrupted
data is never silently masked by a recomputation.

DESIGN DECISION: `payer_id` and `attributed_id` are separate fields.
The payer is who actually spent money and is always the one credited in
settlement. Attribution only says whose shift the purchase counts against.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class ExpenseCategory(str, Enum):
    """Kind of purchase."""
    REGULAR = "regular"
    EXTRA = "extra"


# =============================================================================
# CORE EXPENSE MODELS
# =============================================================================

class ExpenseItem(BaseModel):
    """A single purchased item."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Item name (e.g. Rice)"
    )
    price: Decimal = Field(
        ...,
        ge=0,
        description="Price paid for this item"
    )


def new_entry_id() -> str:
    return uuid4().hex


class ExpenseEntry(BaseModel):
    """
    A recorded bazaar purchase.

    Owned by `created_by`: only that actor may edit or delete it.
    Everyone may read it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_entry_id,
        description="Opaque entry identifier"
    )
    entry_date: date = Field(
        ...,
        description="Date of the purchase"
    )
    payer_id: int = Field(
        ...,
        description="Member who actually spent the money"
    )
    attributed_id: int = Field(
        ...,
        description="Member whose shift the purchase counts against"
    )
    items: list[ExpenseItem] = Field(
        ...,
        min_length=1,
        description="Purchased items, in entry order"
    )
    subtotal: Decimal = Field(
        ...,
        ge=0,
        description="Sum of item prices at write time (authoritative)"
    )
    category: ExpenseCategory = Field(
        default=ExpenseCategory.REGULAR
    )
    is_proxy: bool = Field(
        default=False,
        description="True when attributed to someone other than the payer"
    )
    created_by: str = Field(
        ...,
        min_length=1,
        description="Actor identity that created the entry"
    )
    created_at: datetime = Field(
        ...,
        description="Strictly increasing creation stamp used for ordering"
    )
    updated_at: Optional[datetime] = None


class ExpensePatch(BaseModel):
    """
    Partial update for an entry.

    Unset fields keep their current value. Items are raw rows
    (name/price mappings) and go through the same filtering as on add.
    """

    entry_date: Optional[Union[date, str]] = None
    items: Optional[list[Any]] = None
    category: Optional[ExpenseCategory] = None
    attributed_id: Optional[int] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'off_shift')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Outcome of validating an add or edit request.

    When valid, carries the cleaned values ready to be written.
    """

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)

    entry_date: Optional[date] = None
    items: list[ExpenseItem] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    dropped_rows: int = Field(
        default=0,
        ge=0,
        description="Raw item rows discarded as malformed"
    )

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]
