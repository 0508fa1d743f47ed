"""
Fixed half-day periods and their concrete time boundaries.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import List

import pendulum
from pendulum import DateTime

from .models import TimeRange


class Period(str, Enum):
    """The two bookable half-day windows of a calendar day."""
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"

    @property
    def start_hour(self) -> int:
        return _PERIOD_HOURS[self][0]

    @property
    def end_hour(self) -> int:
        return _PERIOD_HOURS[self][1]

    @property
    def label(self) -> str:
        name = "Morning" if self is Period.MORNING else "Afternoon"
        return f"{name} ({self.start_hour:02d}-{self.end_hour:02d})"

    @classmethod
    def parse(cls, value: str) -> "Period":
        """Parse a period name case-insensitively."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(
                f"Unknown period '{value}'. Use one of: "
                f"{', '.join(p.value.lower() for p in cls)}"
            ) from None


# [start, end) local hours
_PERIOD_HOURS = {
    Period.MORNING: (8, 12),
    Period.AFTERNOON: (14, 18),
}


def period_range(day: date, period: Period, timezone: str) -> TimeRange:
    """
    Map a calendar day and period to concrete local start/end instants.

    The time-of-day of ``day`` is ignored; only its calendar date is used.
    """
    start = pendulum.datetime(day.year, day.month, day.day, period.start_hour, tz=timezone)
    end = pendulum.datetime(day.year, day.month, day.day, period.end_hour, tz=timezone)
    return TimeRange(start=start, end=end)


def week_days(anchor: date, timezone: str, count: int = 7) -> List[DateTime]:
    """Return ``count`` consecutive days starting at the Monday of the anchor's week."""
    monday = pendulum.datetime(anchor.year, anchor.month, anchor.day, tz=timezone).start_of("week")
    return [monday.add(days=offset) for offset in range(count)]
