"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .availability import AvailabilityResolver, ConflictGuard
from .models import (
    Appointment,
    AppointmentStatus,
    BusyInterval,
    Consultant,
    ExternalEvent,
    Occupancy,
    OccupancyKind,
    Role,
    SlotState,
    TimeRange,
    User,
)
from .periods import Period, period_range
from .state import SchedulerState

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AvailabilityResolver",
    "BusyInterval",
    "ConflictGuard",
    "Consultant",
    "ExternalEvent",
    "Occupancy",
    "OccupancyKind",
    "Period",
    "Role",
    "SchedulerState",
    "SlotState",
    "TimeRange",
    "User",
    "period_range",
]
