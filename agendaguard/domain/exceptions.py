"""
Domain-specific exception hierarchy for the scheduler.
"""

from __future__ import annotations

from pendulum import DateTime


class SchedulerError(Exception):
    """Base class for all application-level errors."""


class ValidationError(SchedulerError):
    """Raised when a request is incomplete or malformed, before any state changes."""


class ConflictError(SchedulerError):
    """Raised when a booking overlaps an internal appointment or an external event."""

    def __init__(self, consultant_id: str, start: DateTime, end: DateTime):
        self.consultant_id = consultant_id
        self.start = start
        self.end = end
        super().__init__(
            f"Consultant {consultant_id} is already busy between "
            f"{start.format('DD.MM.YYYY HH:mm')} and {end.format('HH:mm')} "
            "(internal booking or external calendar)."
        )


class ProviderFetchError(SchedulerError):
    """Raised when calendar data cannot be fetched from the provider or parsed."""


class AuthorizationError(SchedulerError):
    """Raised when the acting user may not perform the requested action."""


class NotFoundError(SchedulerError):
    """Raised when a referenced consultant, user or appointment does not exist."""


class StorageError(SchedulerError):
    """Raised when persisted records cannot be decoded."""
