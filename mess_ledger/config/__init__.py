"""Configuration package."""

from mess_ledger.config.settings import (
    GoogleSheetsSettings,
    LedgerSettings,
    RosterFile,
    Settings,
    get_settings,
    load_roster,
    validate_all_settings,
)

__all__ = [
    "GoogleSheetsSettings",
    "LedgerSettings",
    "RosterFile",
    "Settings",
    "get_settings",
    "load_roster",
    "validate_all_settings",
]
