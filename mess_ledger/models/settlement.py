"""
Settlement Models

These are PROJECTIONS, never persisted and never mutated. A new report is
computed from scratch whenever the ledger or the attendance grid changes.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class MemberSettlement(BaseModel):
    """One member's line in the settlement report."""
    model_config = ConfigDict(frozen=True)

    member_id: int
    name: str
    total_meals: int = Field(ge=0)
    total_spent: Decimal
    meal_cost: Decimal
    balance: Decimal = Field(
        ...,
        description="total_spent - meal_cost; positive means the member is owed"
    )

    @property
    def status(self) -> str:
        """'get' when the member is owed money, 'give' when they owe."""
        return "get" if self.balance >= 0 else "give"


class SettlementReport(BaseModel):
    """Balances for every roster member at one point in time."""
    model_config = ConfigDict(frozen=True)

    total_bazaar_cost: Decimal
    grand_total_meals: int = Field(ge=0)
    meal_rate: Decimal
    members: tuple[MemberSettlement, ...] = ()
    unassigned_spent: Decimal = Field(
        default=Decimal("0"),
        description="Spending by payers that are not on the roster"
    )

    def for_member(self, member_id: int) -> MemberSettlement:
        for line in self.members:
            if line.member_id == member_id:
                return line
        raise KeyError(member_id)

    @property
    def total_balance(self) -> Decimal:
        return sum((line.balance for line in self.members), Decimal("0"))
