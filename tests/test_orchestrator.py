"""
Tests for application wiring.
"""

import asyncio
import json
from decimal import Decimal

import pytest

from conftest import KARIM, RAHIM
from mess_ledger import orchestrator
from mess_ledger.config import Settings, get_settings
from mess_ledger.errors import PermissionDeniedError
from mess_ledger.models import ExpenseCategory, Member, Roster, ShiftPolicy
from mess_ledger.orchestrator import create_app_components
from mess_ledger.services.storage import InMemoryExpenseStorage
from mess_ledger.settlement import format_report


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
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


class RecordingLogger:
    """Keeps (level, event, fields) for each call."""

    def __init__(self):
        self.records = []

    def _record(self, level):
        def log(event, **fields):
            self.records.append((level, event, fields))
        return log

    def __getattr__(self, level):
        return self._record(level)

    def events(self, level):
        return [(event, fields) for lvl, event, fields in self.records if lvl == level]


@pytest.fixture
def log(monkeypatch):
    recorder = RecordingLogger()
    monkeypatch.setattr(orchestrator, "logger", recorder)
    return recorder


@pytest.fixture
def thirty_day_roster():
    return Roster(members=[
        Member(id=1, name="A", shift_start=1, shift_end=15),
        Member(id=2, name="B", shift_start=16, shift_end=30),
    ])


class TestCreateAppComponents:
    """Tests for create_app_components."""

    def test_memory_backend(self, roster, resolver, clock):
        """Defaults give a working in-memory app."""
        app = create_app_components(Settings(), roster=roster, resolver=resolver, clock=clock)

        assert app.backend == "memory"
        assert isinstance(app.expense_storage, InMemoryExpenseStorage)
        assert app.authority.policy == ShiftPolicy.PERMISSIVE
        assert app.attendance.month == "2025-01"

    def test_end_to_end(self, roster, resolver, clock):
        """Add, toggle, settle through the wired components."""
        app = create_app_components(Settings(), roster=roster, resolver=resolver, clock=clock)

        async def run():
            await app.monitor.start()
            await app.ledger.add_entry(
                "2025-01-15", [{"name": "Rice", "price": 155}], ExpenseCategory.REGULAR, RAHIM
            )
            return app.monitor.report

        report = asyncio.run(run())
        assert report.for_member(1).total_spent == Decimal("155")
        assert "Total bazaar cost: ৳155.00" in format_report(report, app.currency_symbol)

    def test_policy_from_environment(self, monkeypatch, roster, resolver, clock):
        """MESS_SHIFT_POLICY reaches the ledger."""
        monkeypatch.setenv("MESS_SHIFT_POLICY", "strict")
        app = create_app_components(Settings(), roster=roster, resolver=resolver, clock=clock)

        async def run():
            with pytest.raises(PermissionDeniedError):
                await app.ledger.add_entry(
                    "2025-01-15", [{"name": "Rice", "price": 10}],
                    ExpenseCategory.REGULAR, KARIM, attributed_id=1,
                )

        asyncio.run(run())

    def test_unconfigured_sheets_falls_back_to_memory(self, monkeypatch, roster, resolver):
        """Asking for Sheets without credentials still starts."""
        monkeypatch.setenv("MESS_STORAGE_BACKEND", "google_sheets")
        app = create_app_components(Settings(), roster=roster, resolver=resolver)
        assert app.backend == "memory"

    def test_roster_from_file(self, monkeypatch, tmp_path):
        """Without an explicit roster, MESS_ROSTER_FILE is loaded."""
        path = tmp_path / "roster.json"
        path.write_text(json.dumps({
            "members": [{"id": 1, "name": "Rahim", "shift_start": 1, "shift_end": 31}],
            "identities": {RAHIM: 1},
        }), encoding="utf-8")
        monkeypatch.setenv("MESS_ROSTER_FILE", str(path))

        app = create_app_components()

        assert app.roster.names == {1: "Rahim"}

    def test_no_roster_configured(self):
        """No roster anywhere is a startup error."""
        with pytest.raises(ValueError):
            create_app_components(Settings())


class TestShiftCoverageWarnings:
    """Startup warnings about shift coverage follow the active month's length."""

    def test_thirty_day_month_has_no_gap(self, monkeypatch, log, thirty_day_roster, resolver, clock):
        monkeypatch.setenv("MESS_ACTIVE_MONTH", "2025-04")
        create_app_components(Settings(), roster=thirty_day_roster, resolver=resolver, clock=clock)
        assert not [event for event, _ in log.events("warning") if event == "shift_gaps"]

    def test_day_31_gap_in_long_month(self, log, thirty_day_roster, resolver, clock):
        """Without a configured month, the clock's month (January) is used."""
        create_app_components(Settings(), roster=thirty_day_roster, resolver=resolver, clock=clock)
        gaps = [fields for event, fields in log.events("warning") if event == "shift_gaps"]
        assert gaps == [{"month": "2025-01", "days": [31]}]
