"""
Domain models for consultants, bookings and external busy blocks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Optional

import pendulum
from pendulum import DateTime

if TYPE_CHECKING:
    from .periods import Period


def _parse_instant(value: str) -> DateTime:
    parsed = pendulum.parse(value)
    if not isinstance(parsed, DateTime):
        raise ValueError(f"Could not parse datetime: {value}")
    return parsed


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another (half-open intervals)."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if the other range lies completely inside this one."""
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


def intervals_overlap(start: DateTime, end: DateTime, other_start: DateTime, other_end: DateTime) -> bool:
    """Strict half-open overlap test; touching boundaries do not overlap."""
    return start < other_end and end > other_start


class Role(str, Enum):
    ADMIN = "ADMIN"
    TRAINER = "TRAINER"
    SALES = "SALES"
    CS = "CS"


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class OccupancyKind(str, Enum):
    FREE = "FREE"
    INTERNAL = "INTERNAL"
    EXTERNAL = "EXTERNAL"


@dataclass(frozen=True)
class Consultant:
    """
    A bookable team member, as supplied by the roster.

    work_days uses 0=Monday ... 6=Sunday.
    """
    id: str
    name: str
    email: str
    work_start: time
    work_end: time
    work_days: FrozenSet[int]
    title: str = ""
    color: str = "#6366f1"

    def works_on(self, day: DateTime) -> bool:
        """Check if the consultant works on the weekday of the given day."""
        return int(day.day_of_week) in self.work_days

    def working_window(self, day: DateTime) -> TimeRange:
        """Return the consultant's working hours on the given day."""
        start = day.set(
            hour=self.work_start.hour,
            minute=self.work_start.minute,
            second=0,
            microsecond=0
        )
        end = day.set(
            hour=self.work_end.hour,
            minute=self.work_end.minute,
            second=0,
            microsecond=0
        )
        return TimeRange(start=start, end=end)


@dataclass
class User:
    """An account acting on the scheduler."""
    id: str
    name: str
    email: str
    role: Role
    consultant_id: Optional[str] = None
    google_connected: bool = False
    last_sync: Optional[DateTime] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "consultant_id": self.consultant_id,
            "google_connected": self.google_connected,
            "last_sync": self.last_sync.to_iso8601_string() if self.last_sync else None,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "User":
        last_sync = record.get("last_sync")
        return cls(
            id=record["id"],
            name=record["name"],
            email=record["email"],
            role=Role(record["role"]),
            consultant_id=record.get("consultant_id"),
            google_connected=bool(record.get("google_connected", False)),
            last_sync=_parse_instant(last_sync) if last_sync else None,
        )


@dataclass(frozen=True)
class Appointment:
    """
    An internal booking of a consultant for a client.

    Only the status may change after creation.
    """
    id: str
    consultant_id: str
    client_name: str
    title: str
    start: DateTime
    end: DateTime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    booked_by_id: Optional[str] = None

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    @property
    def is_active(self) -> bool:
        """Cancelled appointments no longer block the consultant."""
        return self.status != AppointmentStatus.CANCELLED

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "consultant_id": self.consultant_id,
            "client_name": self.client_name,
            "title": self.title,
            "start": self.start.to_iso8601_string(),
            "end": self.end.to_iso8601_string(),
            "status": self.status.value,
            "booked_by_id": self.booked_by_id,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Appointment":
        return cls(
            id=record["id"],
            consultant_id=record["consultant_id"],
            client_name=record["client_name"],
            title=record.get("title") or f"Training: {record['client_name']}",
            start=_parse_instant(record["start"]),
            end=_parse_instant(record["end"]),
            status=AppointmentStatus(record.get("status", AppointmentStatus.SCHEDULED.value)),
            booked_by_id=record.get("booked_by_id"),
        )


MIRROR_ID_PREFIX = "mirror:"


def mirror_event_id(appointment_id: str) -> str:
    """Identity of the external event that mirrors an internal appointment."""
    return f"{MIRROR_ID_PREFIX}{appointment_id}"


@dataclass(frozen=True)
class ExternalEvent:
    """
    A busy block imported from (or pushed to) the external calendar.

    derived_from_appointment_id is set only for mirror events.
    """
    id: str
    consultant_id: str
    title: str
    start: DateTime
    end: DateTime
    derived_from_appointment_id: Optional[str] = None

    @classmethod
    def mirror_of(cls, appointment: Appointment) -> "ExternalEvent":
        """Build the outward mirror of an internal appointment."""
        return cls(
            id=mirror_event_id(appointment.id),
            consultant_id=appointment.consultant_id,
            title=appointment.title,
            start=appointment.start,
            end=appointment.end,
            derived_from_appointment_id=appointment.id,
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "consultant_id": self.consultant_id,
            "title": self.title,
            "start": self.start.to_iso8601_string(),
            "end": self.end.to_iso8601_string(),
            "derived_from_appointment_id": self.derived_from_appointment_id,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ExternalEvent":
        return cls(
            id=record["id"],
            consultant_id=record["consultant_id"],
            title=record["title"],
            start=_parse_instant(record["start"]),
            end=_parse_instant(record["end"]),
            derived_from_appointment_id=record.get("derived_from_appointment_id"),
        )


@dataclass(frozen=True)
class BusyInterval:
    """A validated busy block returned by a calendar provider."""
    id: str
    title: str
    start: DateTime
    end: DateTime

    def to_external_event(self, consultant_id: str) -> ExternalEvent:
        return ExternalEvent(
            id=self.id,
            consultant_id=consultant_id,
            title=self.title,
            start=self.start,
            end=self.end,
        )


@dataclass(frozen=True)
class Occupancy:
    """Classification of one consultant period slot."""
    kind: OccupancyKind
    appointment: Optional[Appointment] = None
    event: Optional[ExternalEvent] = None

    @classmethod
    def free(cls) -> "Occupancy":
        return cls(kind=OccupancyKind.FREE)

    @classmethod
    def internal(cls, appointment: Appointment) -> "Occupancy":
        return cls(kind=OccupancyKind.INTERNAL, appointment=appointment)

    @classmethod
    def external(cls, event: ExternalEvent) -> "Occupancy":
        return cls(kind=OccupancyKind.EXTERNAL, event=event)

    @property
    def is_free(self) -> bool:
        return self.kind == OccupancyKind.FREE

    def describe(self) -> str:
        """Short text for table cells."""
        if self.appointment is not None:
            return self.appointment.client_name
        if self.event is not None:
            return self.event.title
        return "free"


@dataclass(frozen=True)
class SlotState:
    """
    State of one day/period cell of a consultant's week.

    occupancy is None when the consultant does not offer the slot.
    """
    day: DateTime
    period: Period
    occupancy: Optional[Occupancy] = field(default=None)

    @property
    def offered(self) -> bool:
        return self.occupancy is not None

