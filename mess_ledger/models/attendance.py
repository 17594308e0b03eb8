"""
Attendance Grid Models

One grid document per month. Each day has a status map of
member id -> present. A fresh grid marks every member present on every
day; members then opt out of individual meals.

DESIGN DECISION: A member id missing from a day's status map counts as
ABSENT. This only happens when the roster grows after the grid was created.
"""

import calendar
from datetime import date

from pydantic import BaseModel, Field, field_validator, model_validator


def month_key(day: date) -> str:
    """The grid key ("YYYY-MM") for the month containing `day`."""
    return day.strftime("%Y-%m")


def days_in_month(month: str) -> int:
    year, mon = (int(part) for part in month.split("-"))
    return calendar.monthrange(year, mon)[1]


class DayRecord(BaseModel):
    """Meal attendance for one calendar day."""

    day: int = Field(..., ge=1, le=31)
    status: dict[int, bool] = Field(default_factory=dict)

    def is_present(self, member_id: int) -> bool:
        return self.status.get(member_id, False)


class AttendanceGrid(BaseModel):
    """The meal sheet for one month."""

    month: str = Field(
        ...,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="Month key, YYYY-MM"
    )
    days: list[DayRecord] = Field(default_factory=list)

    @field_validator('days')
    @classmethod
    def sort_days(cls, v: list[DayRecord]) -> list[DayRecord]:
        return sorted(v, key=lambda record: record.day)

    @model_validator(mode='after')
    def validate_days(self) -> 'AttendanceGrid':
        expected = list(range(1, days_in_month(self.month) + 1))
        actual = [record.day for record in self.days]
        if actual != expected:
            raise ValueError(
                f"Grid for {self.month} must have exactly one record per day "
                f"(1..{len(expected)})"
            )
        return self

    @classmethod
    def all_present(cls, month: str, member_ids: list[int]) -> 'AttendanceGrid':
        """Synthesize the initial grid: everyone present every day."""
        return cls(
            month=month,
            days=[
                DayRecord(day=day, status={member_id: True for member_id in member_ids})
                for day in range(1, days_in_month(month) + 1)
            ],
        )

    @property
    def days_in_month(self) -> int:
        return len(self.days)

    def record(self, day: int) -> DayRecord:
        return self.days[day - 1]

    def is_present(self, day: int, member_id: int) -> bool:
        return self.record(day).is_present(member_id)
