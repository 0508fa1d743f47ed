"""
Owner of the externally sourced busy blocks.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from ..adapters.storage import EXTERNAL_EVENTS_KEY, StateRepository
from ..domain.models import ExternalEvent
from ..domain.state import SchedulerState

logger = logging.getLogger(__name__)


class ExternalEventMirror:
    """
    Holds the external events of every consultant.

    A sync replaces one consultant's events wholesale ("last sync wins"):
    there is no merging or diffing, so blocks deleted upstream simply vanish.
    """

    def __init__(self, state: SchedulerState, repository: StateRepository):
        self._state = state
        self._repository = repository

    def events_for(self, consultant_id: str) -> List[ExternalEvent]:
        return self._state.external_events_for(consultant_id)

    def replace_for_consultant(self, consultant_id: str, events: Iterable[ExternalEvent]) -> None:
        """Discard all events of the consultant and install ``events`` in their place."""
        incoming = list(events)
        foreign = [e for e in incoming if e.consultant_id != consultant_id]
        if foreign:
            raise ValueError(
                f"Cannot install events of consultant {foreign[0].consultant_id} "
                f"while replacing consultant {consultant_id}"
            )

        kept = [e for e in self._state.external_events if e.consultant_id != consultant_id]
        # Single assignment, readers never see a half-replaced list
        self._state.external_events = kept + incoming
        self._flush()

        logger.info("Installed %d external event(s) for consultant %s", len(incoming), consultant_id)

    def append(self, event: ExternalEvent) -> None:
        """Add one event without touching anybody else's entries."""
        self._state.external_events = self._state.external_events + [event]
        self._flush()

    def remove_derived_from(self, appointment_id: str) -> int:
        """Delete the mirror entry tied to an appointment. Returns the number removed."""
        before = len(self._state.external_events)
        self._state.external_events = [
            e for e in self._state.external_events
            if e.derived_from_appointment_id != appointment_id
        ]
        removed = before - len(self._state.external_events)
        if removed:
            self._flush()
        return removed

    def clear_consultant(self, consultant_id: str) -> None:
        """Drop every external event of a consultant."""
        self.replace_for_consultant(consultant_id, [])

    def _flush(self) -> None:
        self._repository.save(self._state, EXTERNAL_EVENTS_KEY)
