"""
Owner of the internal appointments.
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable, List, Optional

from pendulum import DateTime

from ..adapters.storage import APPOINTMENTS_KEY, StateRepository
from ..domain.availability import ConflictGuard
from ..domain.exceptions import ConflictError, ValidationError
from ..domain.models import Appointment, AppointmentStatus, ExternalEvent
from ..domain.state import SchedulerState
from .mirror import ExternalEventMirror

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class BookingLedger:
    """
    Applies create/remove operations while keeping the no-overlap invariant.

    For every consultant, no two non-cancelled appointments overlap. The
    invariant is upheld by re-running the conflict guard inside ``create``,
    right before the appointment is appended.
    """

    def __init__(
        self,
        state: SchedulerState,
        repository: StateRepository,
        mirror: ExternalEventMirror,
        guard: Optional[ConflictGuard] = None,
        id_factory: Callable[[], str] = _new_id,
    ):
        self._state = state
        self._repository = repository
        self._mirror = mirror
        self._guard = guard or ConflictGuard(state)
        self._id_factory = id_factory

    def list(self, consultant_id: Optional[str] = None) -> List[Appointment]:
        """Appointments sorted by start, optionally for one consultant."""
        appointments = self._state.appointments
        if consultant_id is not None:
            appointments = [a for a in appointments if a.consultant_id == consultant_id]
        return sorted(appointments, key=lambda a: a.start)

    def create(
        self,
        consultant_id: str,
        client_name: str,
        start: DateTime,
        end: DateTime,
        booked_by_id: Optional[str] = None,
    ) -> Appointment:
        """
        Book a consultant for a client.

        Args:
            consultant_id: Consultant to book
            client_name: Client label shown in the calendar
            start: Start instant, normally a period boundary
            end: End instant
            booked_by_id: Id of the user making the booking

        Returns:
            The new SCHEDULED appointment

        Raises:
            ValidationError: If the client name is blank or the range is empty
            ConflictError: If the consultant is busy in [start, end)
        """
        client_name = (client_name or "").strip()
        if not client_name:
            raise ValidationError("A client name is required to book an appointment.")
        if start >= end:
            raise ValidationError(f"Start time {start} must be before end time {end}")

        if self._guard.would_conflict(consultant_id, start, end):
            raise ConflictError(consultant_id, start, end)

        appointment = Appointment(
            id=self._id_factory(),
            consultant_id=consultant_id,
            client_name=client_name,
            title=f"Training: {client_name}",
            start=start,
            end=end,
            status=AppointmentStatus.SCHEDULED,
            booked_by_id=booked_by_id,
        )
        self._state.appointments = self._state.appointments + [appointment]
        self._repository.save(self._state, APPOINTMENTS_KEY)
        logger.info(
            "Booked %s for %s (%s - %s)",
            consultant_id, client_name, start.to_iso8601_string(), end.to_iso8601_string()
        )

        linked = self._state.linked_user(consultant_id)
        if linked is not None and linked.google_connected:
            self._mirror.append(ExternalEvent.mirror_of(appointment))

        return appointment

    def remove(self, appointment_id: str) -> Optional[Appointment]:
        """
        Delete an appointment and its mirror event.

        No authorization happens here; callers gate this by role.
        Returns the removed appointment, or None if it did not exist.
        """
        appointment = self._state.find_appointment(appointment_id)
        if appointment is None:
            return None

        self._state.appointments = [a for a in self._state.appointments if a.id != appointment_id]
        self._repository.save(self._state, APPOINTMENTS_KEY)
        self._mirror.remove_derived_from(appointment_id)
        logger.info("Removed appointment %s", appointment_id)

        return appointment
