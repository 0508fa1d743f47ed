"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .ledger import BookingLedger
from .mirror import ExternalEventMirror
from .scheduling import DashboardSummary, SchedulingService
from .sync import CalendarProviderProtocol, SyncOrchestrator, SyncResult, SyncSource

__all__ = [
    "BookingLedger",
    "CalendarProviderProtocol",
    "DashboardSummary",
    "ExternalEventMirror",
    "SchedulingService",
    "SyncOrchestrator",
    "SyncResult",
    "SyncSource",
]
