"""
Settlement Calculator

DESIGN DECISION: Settlement is a PURE function of (entries, grid, roster).
No incremental state, no storage access. The same inputs always give the
same report, whatever order the entries arrive in.

The rule:
    meal_rate   = total bazaar cost / total meals eaten
    meal_cost   = member's meals * meal_rate
    balance     = what the member spent - meal_cost

Money is always credited to the PAYER. Attribution (whose shift a purchase
counts against) has no effect on balances.

Arithmetic is Decimal under a fixed local context, so results don't depend
on whatever precision the caller's thread happens to be using.
"""

from decimal import Decimal, localcontext
from typing import Iterable, Optional

from mess_ledger.models.attendance import AttendanceGrid
from mess_ledger.models.expense import ExpenseEntry
from mess_ledger.models.member import Member
from mess_ledger.models.settlement import MemberSettlement, SettlementReport


SETTLEMENT_PRECISION = 28

ZERO = Decimal("0")


def count_meals(grid: Optional[AttendanceGrid], member_ids: list[int]) -> dict[int, int]:
    """Days each member is marked present. A missing grid means no meals."""
    meals = {member_id: 0 for member_id in member_ids}
    if grid is None:
        return meals
    for record in grid.days:
        for member_id in member_ids:
            if record.is_present(member_id):
                meals[member_id] += 1
    return meals


def compute_settlement(
    entries: Iterable[ExpenseEntry],
    grid: Optional[AttendanceGrid],
    members: Iterable[Member],
) -> SettlementReport:
    """
    Compute every member's balance.

    Args:
        entries: Ledger entries; their stored subtotal is trusted as-is
        grid: The month's attendance, or None if not created yet
        members: The roster, in display order

    Returns:
        SettlementReport with one line per member, in roster order.
        Spending by payers that are not on the roster counts toward the
        total cost and is reported as `unassigned_spent`.
    """
    roster = list(members)
    member_ids = [member.id for member in roster]

    with localcontext() as ctx:
        ctx.prec = SETTLEMENT_PRECISION

        spent = {member_id: ZERO for member_id in member_ids}
        total_cost = ZERO
        unassigned = ZERO
        for entry in entries:
            total_cost += entry.subtotal
            if entry.payer_id in spent:
                spent[entry.payer_id] += entry.subtotal
            else:
                unassigned += entry.subtotal

        meals = count_meals(grid, member_ids)
        grand_total_meals = sum(meals.values())
        meal_rate = total_cost / grand_total_meals if grand_total_meals > 0 else ZERO

        lines = []
        for member in roster:
            meal_cost = meals[member.id] * meal_rate
            lines.append(MemberSettlement(
                member_id=member.id,
                name=member.name,
                total_meals=meals[member.id],
                total_spent=spent[member.id],
                meal_cost=meal_cost,
                balance=spent[member.id] - meal_cost,
            ))

    return SettlementReport(
        total_bazaar_cost=total_cost,
        grand_total_meals=grand_total_meals,
        meal_rate=meal_rate,
        members=tuple(lines),
        unassigned_spent=unassigned,
    )
