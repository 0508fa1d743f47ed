"""
Application service used by the UI layer.

Wires the state container, the availability components, the ledger, the
mirror and the sync orchestrator together, and applies the authorization
policy before any mutation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional

import pendulum
from pendulum import DateTime

from ..adapters.credential_store import CredentialStore
from ..adapters.storage import USERS_KEY, StateRepository
from ..config import SyncConfig
from ..domain.authorization import Action, can_perform, role_for_new_user
from ..domain.availability import AvailabilityResolver, ConflictGuard
from ..domain.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..domain.models import (
    Appointment,
    AppointmentStatus,
    Consultant,
    Occupancy,
    Role,
    SlotState,
    User,
)
from ..domain.periods import Period, period_range
from ..domain.state import SchedulerState
from .ledger import BookingLedger
from .mirror import ExternalEventMirror
from .sync import CalendarProviderProtocol, SyncOrchestrator, SyncResult


@dataclass(frozen=True)
class DashboardSummary:
    """Headline numbers and the next appointments, as shown on the dashboard."""
    consultant_count: int
    scheduled_count: int
    booked_hours: float
    upcoming: List[Appointment]


class SchedulingService:
    """
    Facade over the scheduling engine.

    Components share one explicitly owned ``SchedulerState``; every mutation
    is written through the ``StateRepository`` immediately.
    """

    def __init__(
        self,
        state: SchedulerState,
        repository: StateRepository,
        provider: CalendarProviderProtocol,
        timezone: str,
        sync_config: Optional[SyncConfig] = None,
        credentials: Optional[CredentialStore] = None,
        clock: Optional[Callable[[], DateTime]] = None,
    ):
        self.state = state
        self.timezone = timezone
        self._repository = repository
        self._credentials = credentials
        self._clock = clock or (lambda: pendulum.now(timezone))

        self.guard = ConflictGuard(state)
        self.resolver = AvailabilityResolver(state, timezone)
        self.mirror = ExternalEventMirror(state, repository)
        self.ledger = BookingLedger(state, repository, self.mirror, guard=self.guard)
        self.orchestrator = SyncOrchestrator(
            state,
            repository,
            self.mirror,
            provider,
            timezone,
            config=sync_config,
            clock=clock,
        )

    # Read paths

    def consultants(self) -> List[Consultant]:
        return list(self.state.consultants)

    def occupancy(self, actor: User, consultant_id: str, day: date, period: Period) -> Occupancy:
        self._authorize(actor, Action.VIEW_CALENDAR)
        self._require_consultant(consultant_id)
        return self.resolver.occupancy(consultant_id, day, period)

    def week(self, actor: User, consultant_id: str, anchor: date, days: int = 7) -> List[SlotState]:
        self._authorize(actor, Action.VIEW_CALENDAR)
        self._require_consultant(consultant_id)
        return self.resolver.week(consultant_id, anchor, days=days)

    def list_appointments(self, actor: User, consultant_id: Optional[str] = None) -> List[Appointment]:
        self._authorize(actor, Action.VIEW_APPOINTMENTS)
        return self.ledger.list(consultant_id)

    def dashboard(self, actor: User, limit: int = 5) -> DashboardSummary:
        """
        Summarise the booking load.

        Counts scheduled appointments and the hours they allocate, and lists
        the next ``limit`` scheduled appointments that start after now.
        """
        self._authorize(actor, Action.VIEW_DASHBOARD)
        now = self._clock()

        scheduled = [a for a in self.state.appointments if a.status == AppointmentStatus.SCHEDULED]
        upcoming = sorted((a for a in scheduled if a.start > now), key=lambda a: a.start)
        booked_minutes = sum(a.time_range.duration_minutes() for a in scheduled)

        return DashboardSummary(
            consultant_count=len(self.state.consultants),
            scheduled_count=len(scheduled),
            booked_hours=booked_minutes / 60,
            upcoming=upcoming[:limit],
        )

    def find_user_by_email(self, email: str) -> User:
        user = self.state.find_user_by_email(email)
        if user is None:
            raise NotFoundError(f"No registered user with email {email}")
        return user

    # Bookings

    def book(
        self,
        actor: User,
        consultant_id: str,
        client_name: str,
        day: date,
        period: Period,
    ) -> Appointment:
        """
        Book a consultant for a whole period of a day.

        Raises:
            AuthorizationError: If the actor may not book
            NotFoundError: If the consultant does not exist
            ValidationError: If the consultant does not offer the slot or the client is blank
            ConflictError: If the slot is already occupied
        """
        self._authorize(actor, Action.BOOK_APPOINTMENT)
        consultant = self._require_consultant(consultant_id)

        if not self.resolver.is_offered(consultant_id, day, period):
            raise ValidationError(
                f"{consultant.name} is not available for {period.label} on {day:%d.%m.%Y}"
            )

        slot = period_range(day, period, self.timezone)
        return self.ledger.create(
            consultant_id,
            client_name,
            slot.start,
            slot.end,
            booked_by_id=actor.id,
        )

    def cancel(self, actor: User, appointment_id: str) -> Appointment:
        """Remove an appointment and its mirror event."""
        self._authorize(actor, Action.CANCEL_APPOINTMENT)
        removed = self.ledger.remove(appointment_id)
        if removed is None:
            raise NotFoundError(f"Unknown appointment: {appointment_id}")
        return removed

    # Users

    def register_user(self, name: str, email: str, role: Role = Role.SALES) -> User:
        """
        Register a user account.

        The first account ever registered becomes ADMIN. Accounts whose email
        matches a consultant are linked to that consultant.
        """
        name = (name or "").strip()
        email = (email or "").strip()
        if not name or not email:
            raise ValidationError("Name and email are required to register.")
        if self.state.find_user_by_email(email) is not None:
            raise ValidationError(f"A user with email {email} already exists.")

        consultant = self.state.find_consultant_by_email(email)
        user = User(
            id=uuid.uuid4().hex[:12],
            name=name,
            email=email,
            role=role_for_new_user(len(self.state.users), role),
            consultant_id=consultant.id if consultant else None,
        )
        self.state.users = self.state.users + [user]
        self._repository.save(self.state, USERS_KEY)
        return user

    # External calendar

    async def sync_calendar(self, actor: User, token: Optional[str] = None) -> Optional[SyncResult]:
        """
        Sync the actor's external calendar.

        A supplied token is remembered for later syncs; without one the
        stored token (if any) is used.
        """
        self._authorize(actor, Action.SYNC_CALENDAR)

        if self._credentials is not None:
            if token:
                self._credentials.save(actor.id, token)
            else:
                token = self._credentials.load(actor.id)

        return await self.orchestrator.sync(actor.id, token)

    @property
    def credential_warning(self) -> Optional[str]:
        """Warning to show when access tokens are kept in plaintext, if any."""
        if self._credentials is None:
            return None
        return self._credentials.insecure_storage_warning

    def disconnect_calendar(self, actor: User) -> Optional[Consultant]:
        self._authorize(actor, Action.SYNC_CALENDAR)
        if self._credentials is not None:
            self._credentials.delete(actor.id)
        return self.orchestrator.disconnect(actor.id)

    def _authorize(self, actor: Optional[User], action: Action) -> None:
        if not can_perform(actor, action):
            who = actor.email if actor else "anonymous"
            raise AuthorizationError(f"{who} is not allowed to {action.value.replace('_', ' ')}")

    def _require_consultant(self, consultant_id: str) -> Consultant:
        consultant = self.state.find_consultant(consultant_id)
        if consultant is None:
            raise NotFoundError(f"Unknown consultant: {consultant_id}")
        return consultant
