"""Settlement: balances derived from the ledger and the meal grid."""

from mess_ledger.settlement.calculator import compute_settlement, count_meals
from mess_ledger.settlement.formatting import (
    describe_entry,
    format_balance,
    format_report,
)
from mess_ledger.settlement.monitor import SettlementMonitor

__all__ = [
    "SettlementMonitor",
    "compute_settlement",
    "count_meals",
    "describe_entry",
    "format_balance",
    "format_report",
]
