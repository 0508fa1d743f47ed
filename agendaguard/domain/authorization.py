"""
Role-based authorization policy.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional

from .models import Role, User


class Action(str, Enum):
    VIEW_CALENDAR = "view_calendar"
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_APPOINTMENTS = "view_appointments"
    BOOK_APPOINTMENT = "book_appointment"
    CANCEL_APPOINTMENT = "cancel_appointment"
    SYNC_CALENDAR = "sync_calendar"


_BOOKING_STAFF = frozenset({
    Action.VIEW_CALENDAR,
    Action.VIEW_DASHBOARD,
    Action.VIEW_APPOINTMENTS,
    Action.BOOK_APPOINTMENT,
    Action.CANCEL_APPOINTMENT,
    Action.SYNC_CALENDAR,
})

POLICY: Dict[Role, FrozenSet[Action]] = {
    Role.ADMIN: frozenset(Action),
    Role.SALES: _BOOKING_STAFF,
    Role.CS: _BOOKING_STAFF,
    Role.TRAINER: frozenset({Action.VIEW_CALENDAR, Action.SYNC_CALENDAR}),
}


def can_perform(actor: Optional[User], action: Action) -> bool:
    """Check whether the acting user may perform an action. Anonymous actors may do nothing."""
    if actor is None:
        return False
    return action in POLICY.get(actor.role, frozenset())


def role_for_new_user(existing_user_count: int, requested_role: Role) -> Role:
    """The very first registered user becomes ADMIN; everyone else gets the requested role."""
    if existing_user_count == 0:
        return Role.ADMIN
    return requested_role
