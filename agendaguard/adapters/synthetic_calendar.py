"""
Synthetic calendar data for running without live provider access.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from pendulum import DateTime

from ..domain.models import BusyInterval


@dataclass(frozen=True)
class SyntheticPattern:
    """A weekly busy block: weekday (0=Monday), start/end as (hour, minute)."""
    key: str
    weekday: int
    start: Tuple[int, int]
    end: Tuple[int, int]
    title: str


DEFAULT_PATTERNS = (
    SyntheticPattern("tue", 1, (9, 0), (11, 0), "Alignment meeting (Google)"),
    SyntheticPattern("thu", 3, (15, 0), (16, 30), "External commitment (Google)"),
)


class SyntheticCalendarClient:
    """
    Generates a deterministic set of busy blocks.

    The same patterns repeat every week, starting with the Monday of the
    current week, so repeated syncs within a week produce identical ids.
    """

    def __init__(self, weeks: int = 4, patterns: Tuple[SyntheticPattern, ...] = DEFAULT_PATTERNS):
        self.weeks = weeks
        self.patterns = patterns

    def generate(self, consultant_id: str, now: DateTime) -> List[BusyInterval]:
        """
        Build the synthetic busy blocks for a consultant.

        Args:
            consultant_id: Consultant the blocks belong to (part of each id)
            now: Current instant in the local timezone

        Returns:
            ``weeks * len(patterns)`` busy intervals sorted by start
        """
        first_monday = now.start_of("week")
        intervals: List[BusyInterval] = []

        for week in range(self.weeks):
            week_start = first_monday.add(weeks=week)
            for pattern in self.patterns:
                day = week_start.add(days=pattern.weekday)
                intervals.append(
                    BusyInterval(
                        id=f"g-{week}-{pattern.key}-{consultant_id}",
                        title=pattern.title,
                        start=day.set(hour=pattern.start[0], minute=pattern.start[1]),
                        end=day.set(hour=pattern.end[0], minute=pattern.end[1]),
                    )
                )

        return sorted(intervals, key=lambda interval: interval.start)
