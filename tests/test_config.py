"""
Tests for configuration and roster loading.
"""

import json

import pytest

from mess_ledger.config import (
    LedgerSettings,
    get_settings,
    load_roster,
    validate_all_settings,
)
from mess_ledger.models import ShiftPolicy


def write_roster(tmp_path, data):
    path = tmp_path / "roster.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


ROSTER_DATA = {
    "members": [
        {"id": 1, "name": "Rahim", "shift_start": 1, "shift_end": 15},
        {"id": 2, "name": "Karim", "shift_start": 16, "shift_end": 31},
    ],
    "identities": {"rahim@mess.test": 1, "karim@mess.test": 2},
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep a developer's .env and MESS_* variables out of these tests."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "MESS_ROSTER_FILE",
        "MESS_ACTIVE_MONTH",
        "MESS_SHIFT_POLICY",
        "MESS_STORAGE_BACKEND",
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestLedgerSettings:
    """Tests for LedgerSettings."""

    def test_defaults(self):
        """Permissive policy, in-memory storage, taka sign."""
        settings = LedgerSettings()
        assert settings.shift_policy == ShiftPolicy.PERMISSIVE
        assert settings.storage_backend == "memory"
        assert settings.currency_symbol == "৳"
        assert settings.active_month is None

    def test_from_environment(self, monkeypatch):
        """MESS_* variables are picked up."""
        monkeypatch.setenv("MESS_SHIFT_POLICY", "strict")
        monkeypatch.setenv("MESS_ACTIVE_MONTH", "2025-02")
        settings = LedgerSettings()
        assert settings.shift_policy == ShiftPolicy.STRICT
        assert settings.active_month == "2025-02"

    def test_rejects_bad_values(self, monkeypatch):
        """Unknown backend or malformed month is an error."""
        monkeypatch.setenv("MESS_STORAGE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            LedgerSettings()
        monkeypatch.setenv("MESS_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("MESS_ACTIVE_MONTH", "2025-2")
        with pytest.raises(ValueError):
            LedgerSettings()

    def test_missing_roster_file_warns(self, monkeypatch):
        """A roster path that doesn't exist only warns."""
        monkeypatch.setenv("MESS_ROSTER_FILE", "/nowhere/roster.json")
        with pytest.warns(UserWarning):
            LedgerSettings()


class TestLoadRoster:
    """Tests for load_roster."""

    def test_load(self, tmp_path):
        roster_file = load_roster(write_roster(tmp_path, ROSTER_DATA))
        assert [m.name for m in roster_file.members] == ["Rahim", "Karim"]
        assert roster_file.identities["karim@mess.test"] == 2

    def test_duplicate_member_ids(self, tmp_path):
        data = dict(ROSTER_DATA, members=[
            {"id": 1, "name": "A", "shift_start": 1, "shift_end": 15},
            {"id": 1, "name": "B", "shift_start": 16, "shift_end": 31},
        ])
        with pytest.raises(ValueError):
            load_roster(write_roster(tmp_path, data))

    def test_identity_for_unknown_member(self, tmp_path):
        data = dict(ROSTER_DATA, identities={"ghost@mess.test": 9})
        with pytest.raises(ValueError, match="unknown member ids"):
            load_roster(write_roster(tmp_path, data))

    def test_empty_roster(self, tmp_path):
        """A mess with no members can't hold an attendance grid."""
        with pytest.raises(ValueError):
            load_roster(write_roster(tmp_path, dict(ROSTER_DATA, members=[], identities={})))


class TestValidateAllSettings:
    """Tests for the startup check."""

    def test_reports_missing_pieces(self):
        results = validate_all_settings()
        assert results["ledger"] is True
        assert results["roster"] is False
        assert results["google_sheets"] is False

    def test_roster_configured(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MESS_ROSTER_FILE", write_roster(tmp_path, ROSTER_DATA))
        assert validate_all_settings()["roster"] is True
