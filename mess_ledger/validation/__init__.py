"""Entry validation package."""

from mess_ledger.validation.validator import (
    EntryValidator,
    clean_item,
    clean_items,
    parse_entry_date,
    summarize_issues,
)

__all__ = [
    "EntryValidator",
    "clean_item",
    "clean_items",
    "parse_entry_date",
    "summarize_issues",
]
