"""
Plain-text rendering of settlement reports and ledger entries.

Rounding happens here and only here. Reports keep full precision.
"""

from decimal import ROUND_HALF_UP, Decimal

from mess_ledger.models.expense import ExpenseEntry
from mess_ledger.models.member import Roster
from mess_ledger.models.settlement import MemberSettlement, SettlementReport


def _money(amount: Decimal, places: str = "0.01") -> Decimal:
    return amount.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def format_balance(line: MemberSettlement, currency: str = "৳") -> str:
    """e.g. 'Get ৳75' or 'Give ৳40'. Whole units, like the dashboard."""
    label = "Get" if line.status == "get" else "Give"
    return f"{label} {currency}{_money(abs(line.balance), '1')}"


def format_report(report: SettlementReport, currency: str = "৳") -> str:
    """Render the dashboard: totals, then one row per member."""
    lines = [
        f"Total bazaar cost: {currency}{_money(report.total_bazaar_cost)}",
        f"Meal rate: {currency}{_money(report.meal_rate)}",
        f"Total meals: {report.grand_total_meals}",
        "",
        f"{'Member':<16}{'Meals':>6}{'Spent':>12}  Balance",
    ]
    for line in report.members:
        lines.append(
            f"{line.name:<16}{line.total_meals:>6}"
            f"{currency + str(_money(line.total_spent)):>12}  "
            f"{format_balance(line, currency)}"
        )
    if report.unassigned_spent:
        lines.append("")
        lines.append(
            f"Spent by non-members: {currency}{_money(report.unassigned_spent)}"
        )
    return "\n".join(lines)


def describe_entry(entry: ExpenseEntry, roster: Roster, currency: str = "৳") -> str:
    """
    One ledger line: date, whose shift, subtotal and items.

    Proxy entries also name who actually paid.
    """
    names = roster.names
    attributed = names.get(entry.attributed_id, f"#{entry.attributed_id}")
    text = f"{entry.entry_date.isoformat()} {attributed} ({currency}{entry.subtotal})"
    if entry.is_proxy:
        payer = names.get(entry.payer_id, f"#{entry.payer_id}")
        text += f" paid by {payer}"
    if entry.category.value != "regular":
        text += f" [{entry.category.value}]"
    items = ", ".join(item.name for item in entry.items)
    return f"{text}: {items}"
