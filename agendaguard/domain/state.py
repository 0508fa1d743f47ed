"""
In-memory state container shared by the scheduling components.

The container is created by the storage layer and passed explicitly to each
component; nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .models import Appointment, Consultant, ExternalEvent, User


@dataclass
class SchedulerState:
    """Roster, users, internal appointments and external busy blocks."""
    consultants: List[Consultant] = field(default_factory=list)
    users: List[User] = field(default_factory=list)
    appointments: List[Appointment] = field(default_factory=list)
    external_events: List[ExternalEvent] = field(default_factory=list)

    def find_consultant(self, consultant_id: str) -> Optional[Consultant]:
        for consultant in self.consultants:
            if consultant.id == consultant_id:
                return consultant
        return None

    def find_consultant_by_email(self, email: str) -> Optional[Consultant]:
        for consultant in self.consultants:
            if consultant.email.lower() == email.lower():
                return consultant
        return None

    def find_user(self, user_id: str) -> Optional[User]:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def find_user_by_email(self, email: str) -> Optional[User]:
        for user in self.users:
            if user.email.lower() == email.lower():
                return user
        return None

    def find_appointment(self, appointment_id: str) -> Optional[Appointment]:
        for appointment in self.appointments:
            if appointment.id == appointment_id:
                return appointment
        return None

    def linked_user(self, consultant_id: str) -> Optional[User]:
        """Return the user account linked to a consultant, if any."""
        for user in self.users:
            if user.consultant_id == consultant_id:
                return user
        return None

    def appointments_for(self, consultant_id: str) -> List[Appointment]:
        return [a for a in self.appointments if a.consultant_id == consultant_id]

    def external_events_for(self, consultant_id: str) -> List[ExternalEvent]:
        return [e for e in self.external_events if e.consultant_id == consultant_id]
