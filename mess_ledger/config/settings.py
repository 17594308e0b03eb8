"""
Configuration Management for Mess Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The roster and the actor -> member mapping are configuration too: the
engine never hardcodes who the members are.
"""

import json
import warnings
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mess_ledger.models.member import Member, Roster, ShiftPolicy


class LedgerSettings(BaseSettings):
    """
    Core engine settings.

    Loads configuration from MESS_* environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="MESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    roster_file: Optional[str] = Field(
        default=None,
        description="Path to the JSON roster file"
    )
    active_month: Optional[str] = Field(
        default=None,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="Month to operate on (YYYY-MM). Defaults to the clock's month"
    )
    shift_policy: ShiftPolicy = Field(
        default=ShiftPolicy.PERMISSIVE,
        description="How strictly proxy attribution is tied to shifts"
    )
    currency_symbol: str = Field(
        default="৳",
        max_length=5,
        description="Symbol used when formatting amounts"
    )
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage implementation to use"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug logging"
    )

    @field_validator('roster_file')
    @classmethod
    def validate_roster_file(cls, v: Optional[str]) -> Optional[str]:
        """Warn if roster file doesn't exist (but don't fail - might be mounted later)."""
        if v and not Path(v).exists():
            warnings.warn(
                f"Roster file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    expenses_sheet_name: str = Field(
        default="Bazaar",
        description="Name of the sheet for expense entries"
    )
    attendance_sheet_name: str = Field(
        default="MealSheet",
        description="Name of the sheet for attendance cells"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


class RosterFile(BaseModel):
    """On-disk roster format."""

    members: list[Member] = Field(..., min_length=1)
    identities: dict[str, int] = Field(
        default_factory=dict,
        description="Actor identity (e.g. login email) -> member id"
    )


def load_roster(path: str) -> RosterFile:
    """
    Read and validate a JSON roster file.

    Example:
        {
          "members": [{"id": 1, "name": "Rahim", "shift_start": 1, "shift_end": 6}],
          "identities": {"rahim@example.com": 1}
        }
    """
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    roster_file = RosterFile.model_validate(data)
    # Validates unique ids
    Roster(members=roster_file.members)
    unknown = set(roster_file.identities.values()) - {m.id for m in roster_file.members}
    if unknown:
        raise ValueError(f"Identities map to unknown member ids: {sorted(unknown)}")
    return roster_file


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        ledger = settings.ledger
        results["ledger"] = True
    except Exception as e:
        ledger = None
        results["ledger"] = False
        results["ledger_error"] = str(e)

    if ledger is not None and ledger.roster_file:
        try:
            load_roster(ledger.roster_file)
            results["roster"] = True
        except Exception as e:
            results["roster"] = False
            results["roster_error"] = str(e)
    else:
        results["roster"] = False
        results["roster_error"] = "MESS_ROSTER_FILE is not set"

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    return results
