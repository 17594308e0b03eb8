"""
Shift Authorization

Works out who is on duty for a given day, and whether attributing a
purchase to a member is acceptable under the configured ShiftPolicy.

DESIGN DECISION: Attribution never changes who carries the cost (the
payer is always credited). The policy only decides whether an off-shift
attribution is recorded silently, recorded with a warning, or refused.
"""

from datetime import date
from typing import Callable, Optional

from mess_ledger.models.expense import ValidationIssue
from mess_ledger.models.member import Member, Roster, ShiftPolicy


class ShiftAuthority:
    """Shift lookups and the attribution policy check."""

    def __init__(
        self,
        roster: Roster,
        policy: ShiftPolicy = ShiftPolicy.PERMISSIVE,
        clock: Callable[[], date] = date.today,
    ):
        self._roster = roster
        self._policy = policy
        self._clock = clock

    @property
    def policy(self) -> ShiftPolicy:
        return self._policy

    def active_manager(self, day: Optional[int] = None) -> Optional[Member]:
        """
        The member whose shift contains `day` (today when omitted).

        Returns None when no shift covers the day (a gap in the roster).
        With overlapping shifts the first member in roster order wins.
        """
        if day is None:
            day = self._clock().day
        for member in self._roster:
            if member.covers(day):
                return member
        return None

    def is_on_shift(self, member_id: int, day: int) -> bool:
        member = self._roster.get(member_id)
        return member is not None and member.covers(day)

    def can_attribute_proxy(
        self,
        actor_id: int,
        target_id: int,
        day: Optional[int] = None,
    ) -> bool:
        """
        May `actor_id` record a purchase against `target_id`'s shift?

        Any roster member may be named under the permissive and warn
        policies. Under strict policy the target must be on shift that day.
        """
        if self._roster.get(actor_id) is None or self._roster.get(target_id) is None:
            return False
        if self._policy != ShiftPolicy.STRICT:
            return True
        if day is None:
            day = self._clock().day
        return self.is_on_shift(target_id, day)

    def review_attribution(
        self,
        payer_id: int,
        attributed_id: int,
        entry_date: date,
    ) -> list[ValidationIssue]:
        """
        Policy issues for an entry's attribution.

        Returns an empty list under the permissive policy.
        """
        if self._policy == ShiftPolicy.PERMISSIVE:
            return []
        if self.is_on_shift(attributed_id, entry_date.day):
            return []

        manager = self.active_manager(entry_date.day)
        if manager is None:
            hint = "no member's shift covers that day"
        else:
            hint = f"{manager.name} is on duty"
        severity = "error" if self._policy == ShiftPolicy.STRICT else "warning"
        return [ValidationIssue(
            field="attributed_id",
            issue_type="off_shift",
            message=(
                f"Member {attributed_id} is not on shift on {entry_date.isoformat()} "
                f"({hint})"
            ),
            severity=severity,
        )]
