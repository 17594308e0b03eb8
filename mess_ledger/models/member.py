"""
Roster Models

The roster is static configuration: loaded once, never mutated by the
engine. Each member owns a contiguous shift of days during which they are
nominally responsible for group purchases.

DESIGN DECISION: Shift ranges are expected to partition the month, but
this is NOT enforced. Gaps and overlaps are configuration mistakes that
we can report (coverage_gaps / overlaps) without refusing to start.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mess_ledger.errors import NotFoundError


class ShiftPolicy(str, Enum):
    """
    How strictly proxy attribution is tied to shifts.

    PERMISSIVE records whatever attribution is given.
    WARN records it but flags off-shift attribution.
    STRICT refuses entries attributed to a member who is off shift.
    """
    PERMISSIVE = "permissive"
    WARN = "warn"
    STRICT = "strict"


class Member(BaseModel):
    """A household member with an assigned shift."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: int = Field(
        ...,
        description="Unique, stable member id"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    shift_start: int = Field(
        ...,
        ge=1,
        le=31,
        description="First day of month of this member's shift"
    )
    shift_end: int = Field(
        ...,
        ge=1,
        le=31,
        description="Last day of month of this member's shift (inclusive)"
    )

    @model_validator(mode='after')
    def validate_shift(self) -> 'Member':
        if self.shift_end < self.shift_start:
            raise ValueError("Shift end cannot be before shift start")
        return self

    def covers(self, day: int) -> bool:
        """Is this day inside the member's shift?"""
        return self.shift_start <= day <= self.shift_end


class Roster(BaseModel):
    """Ordered, fixed list of members."""
    model_config = ConfigDict(frozen=True)

    members: list[Member] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'Roster':
        seen = set()
        for member in self.members:
            if member.id in seen:
                raise ValueError(f"Duplicate member id in roster: {member.id}")
            seen.add(member.id)
        return self

    def __iter__(self):
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)

    @property
    def ids(self) -> list[int]:
        return [m.id for m in self.members]

    @property
    def names(self) -> dict[int, str]:
        return {m.id: m.name for m in self.members}

    def get(self, member_id: int) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def require(self, member_id: int) -> Member:
        """Like get(), but raises NotFoundError for unknown ids."""
        member = self.get(member_id)
        if member is None:
            raise NotFoundError(f"Member not found: {member_id}")
        return member

    def coverage_gaps(self, days_in_month: int) -> list[int]:
        """Days of the month no member's shift covers."""
        return [
            day for day in range(1, days_in_month + 1)
            if not any(m.covers(day) for m in self.members)
        ]

    def overlaps(self) -> list[tuple[int, int]]:
        """Pairs of member ids whose shifts share at least one day."""
        pairs = []
        for i, a in enumerate(self.members):
            for b in self.members[i + 1:]:
                if a.shift_start <= b.shift_end and b.shift_start <= a.shift_end:
                    pairs.append((a.id, b.id))
        return pairs
