"""
Slot classification and commit-time conflict detection.

Both classes only read the shared ``SchedulerState``; neither mutates it.
Internal appointments and external busy blocks are scanned independently
with the same half-open overlap rule: two ranges collide when
``start < other.end and end > other.start``, so back-to-back ranges are fine.
"""

from __future__ import annotations

from datetime import date
from typing import List, Tuple

from pendulum import DateTime

from .models import Appointment, ExternalEvent, Occupancy, SlotState, intervals_overlap
from .periods import Period, period_range, week_days
from .state import SchedulerState


class ConflictGuard:
    """
    Gatekeeping predicate consulted before every booking commit.

    It must be evaluated at commit time even if the caller already looked at
    the slot's occupancy, since state may have changed in between.
    """

    def __init__(self, state: SchedulerState):
        self._state = state

    def conflicts(
        self,
        consultant_id: str,
        start: DateTime,
        end: DateTime
    ) -> Tuple[List[Appointment], List[ExternalEvent]]:
        """Return the internal appointments and external events overlapping [start, end)."""
        internal = [
            appointment for appointment in self._state.appointments_for(consultant_id)
            if appointment.is_active
            and intervals_overlap(start, end, appointment.start, appointment.end)
        ]
        external = [
            event for event in self._state.external_events_for(consultant_id)
            if intervals_overlap(start, end, event.start, event.end)
        ]
        return internal, external

    def would_conflict(self, consultant_id: str, start: DateTime, end: DateTime) -> bool:
        """True if either event source already occupies part of [start, end)."""
        internal, external = self.conflicts(consultant_id, start, end)
        return bool(internal) or bool(external)


class AvailabilityResolver:
    """
    Classifies a consultant's period slot as FREE, INTERNAL or EXTERNAL.

    Internal bookings take priority: if one overlaps the period the search
    stops there, masking any coincidental external block at the same slot.
    """

    def __init__(self, state: SchedulerState, timezone: str):
        self._state = state
        self.timezone = timezone

    def occupancy(self, consultant_id: str, day: date, period: Period) -> Occupancy:
        """Classify one day/period slot of a consultant."""
        slot = period_range(day, period, self.timezone)

        for appointment in self._state.appointments_for(consultant_id):
            if appointment.is_active and intervals_overlap(
                appointment.start, appointment.end, slot.start, slot.end
            ):
                return Occupancy.internal(appointment)

        for event in self._state.external_events_for(consultant_id):
            if intervals_overlap(event.start, event.end, slot.start, slot.end):
                return Occupancy.external(event)

        return Occupancy.free()

    def is_offered(self, consultant_id: str, day: date, period: Period) -> bool:
        """
        Check whether the consultant can be booked in a period at all.

        The consultant must work on that weekday and the period must fit
        inside the consultant's working hours.
        """
        consultant = self._state.find_consultant(consultant_id)
        if consultant is None:
            return False

        slot = period_range(day, period, self.timezone)
        if not consultant.works_on(slot.start):
            return False

        return consultant.working_window(slot.start).contains(slot)

    def week(self, consultant_id: str, anchor: date, days: int = 7) -> List[SlotState]:
        """
        Return the slot states of the week containing ``anchor``.

        Slots the consultant does not offer carry no occupancy.
        """
        slots: List[SlotState] = []

        for day in week_days(anchor, self.timezone, count=days):
            for period in Period:
                if self.is_offered(consultant_id, day, period):
                    occupancy = self.occupancy(consultant_id, day, period)
                else:
                    occupancy = None
                slots.append(SlotState(day=day, period=period, occupancy=occupancy))

        return slots
