"""
Tests for shift lookups and the attribution policy.
"""

from datetime import date

from mess_ledger.models import Member, Roster, ShiftPolicy
from mess_ledger.shifts import ShiftAuthority


class TestActiveManager:
    """Tests for active_manager / is_on_shift."""

    def test_manager_by_day(self, authority):
        """Each day maps to the member whose range contains it."""
        assert authority.active_manager(1).name == "Rahim"
        assert authority.active_manager(6).name == "Rahim"
        assert authority.active_manager(7).name == "Karim"
        assert authority.active_manager(30).name == "Jabbar"

    def test_gap_has_no_manager(self, authority):
        """Day 31 is outside every shift."""
        assert authority.active_manager(31) is None

    def test_defaults_to_today(self, authority):
        """Without a day, the clock decides (15th -> Suman)."""
        assert authority.active_manager().name == "Suman"

    def test_overlap_first_in_roster_wins(self):
        """With overlapping shifts the earlier roster member is returned."""
        roster = Roster(members=[
            Member(id=1, name="A", shift_start=1, shift_end=16),
            Member(id=2, name="B", shift_start=15, shift_end=30),
        ])
        assert ShiftAuthority(roster).active_manager(15).id == 1

    def test_is_on_shift(self, authority):
        """Test membership of a day in a member's shift."""
        assert authority.is_on_shift(3, 13)
        assert not authority.is_on_shift(3, 12)
        assert not authority.is_on_shift(99, 1)


class TestProxyPolicy:
    """Tests for can_attribute_proxy and review_attribution."""

    def test_permissive_allows_anyone_on_roster(self, authority):
        """Default policy allows any roster member as target."""
        assert authority.policy == ShiftPolicy.PERMISSIVE
        assert authority.can_attribute_proxy(2, 1, day=15)
        assert not authority.can_attribute_proxy(2, 99, day=15)
        assert not authority.can_attribute_proxy(99, 1, day=15)
        assert authority.review_attribution(2, 1, date(2025, 1, 15)) == []

    def test_strict_requires_target_on_shift(self, roster, clock):
        """Strict policy refuses off-shift targets."""
        authority = ShiftAuthority(roster, policy=ShiftPolicy.STRICT, clock=clock)
        assert authority.can_attribute_proxy(2, 3)
        assert not authority.can_attribute_proxy(2, 1)

        (issue,) = authority.review_attribution(2, 1, date(2025, 1, 15))
        assert issue.severity == "error"
        assert issue.issue_type == "off_shift"
        assert "Suman is on duty" in issue.message

    def test_warn_policy_warns(self, roster, clock):
        """Warn policy flags but doesn't block."""
        authority = ShiftAuthority(roster, policy=ShiftPolicy.WARN, clock=clock)
        assert authority.can_attribute_proxy(2, 1)

        (issue,) = authority.review_attribution(2, 1, date(2025, 1, 15))
        assert issue.severity == "warning"

    def test_on_shift_attribution_has_no_issues(self, roster, clock):
        """Attribution to the member on duty is always fine."""
        authority = ShiftAuthority(roster, policy=ShiftPolicy.STRICT, clock=clock)
        assert authority.review_attribution(2, 3, date(2025, 1, 15)) == []

    def test_gap_day_message(self, roster, clock):
        """On an uncovered day the message says so."""
        authority = ShiftAuthority(roster, policy=ShiftPolicy.WARN, clock=clock)
        (issue,) = authority.review_attribution(1, 1, date(2025, 1, 31))
        assert "no member's shift covers that day" in issue.message
