"""
Tests for the scheduling facade.
"""

import asyncio
from dataclasses import replace
from datetime import date

import pytest

from agendaguard.domain.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from agendaguard.domain.models import AppointmentStatus, OccupancyKind, Role
from agendaguard.domain.periods import Period
from agendaguard.services.scheduling import SchedulingService
from agendaguard.services.sync import SyncSource

from conftest import TZ, add_users, at


class RecordingProvider:
    def __init__(self):
        self.credentials = []

    async def list_busy_intervals(self, credential, time_min, time_max=None):
        self.credentials.append(credential)
        return []


class DictCredentialStore:
    """In-memory stand-in for CredentialStore."""

    def __init__(self, tokens=None):
        self.tokens = dict(tokens or {})
        self.insecure_storage_warning = None

    def load(self, user_id):
        return self.tokens.get(user_id)

    def save(self, user_id, token):
        self.tokens[user_id] = token

    def delete(self, user_id):
        self.tokens.pop(user_id, None)


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def credentials():
    return DictCredentialStore()


@pytest.fixture
def service(state, repository, provider, credentials):
    return SchedulingService(
        state=state,
        repository=repository,
        provider=provider,
        timezone=TZ,
        credentials=credentials,
        clock=lambda: at("2024-06-05 10:00"),
    )


class TestBooking:
    """Tests for booking through the facade."""

    def test_book_a_morning(self, service, sales):
        add_users(service.state, sales)

        appointment = service.book(sales, "c1", "Acme Corp", date(2024, 6, 3), Period.MORNING)

        assert appointment.start == at("2024-06-03 08:00")
        assert appointment.end == at("2024-06-03 12:00")
        assert appointment.booked_by_id == sales.id
        assert service.occupancy(sales, "c1", date(2024, 6, 3), Period.MORNING).kind == OccupancyKind.INTERNAL

    def test_double_booking_is_rejected(self, service, sales):
        service.book(sales, "c1", "Acme Corp", date(2024, 6, 3), Period.MORNING)

        with pytest.raises(ConflictError):
            service.book(sales, "c1", "Other Co", date(2024, 6, 3), Period.MORNING)

    def test_trainer_may_not_book(self, service, trainer):
        with pytest.raises(AuthorizationError, match="not allowed"):
            service.book(trainer, "c1", "Acme Corp", date(2024, 6, 3), Period.MORNING)

    def test_anonymous_may_not_book(self, service):
        with pytest.raises(AuthorizationError, match="anonymous"):
            service.book(None, "c1", "Acme Corp", date(2024, 6, 3), Period.MORNING)

    def test_slot_outside_working_hours(self, service, sales):
        """c1 leaves at 17:00 and does not work on Saturdays."""
        with pytest.raises(ValidationError, match="not available"):
            service.book(sales, "c1", "Acme Corp", date(2024, 6, 3), Period.AFTERNOON)
        with pytest.raises(ValidationError):
            service.book(sales, "c2", "Acme Corp", date(2024, 6, 8), Period.MORNING)

    def test_unknown_consultant(self, service, sales):
        with pytest.raises(NotFoundError):
            service.book(sales, "c9", "Acme Corp", date(2024, 6, 3), Period.MORNING)

    def test_cancel(self, service, sales):
        appointment = service.book(sales, "c2", "Acme Corp", date(2024, 6, 3), Period.AFTERNOON)

        removed = service.cancel(sales, appointment.id)

        assert removed.id == appointment.id
        assert service.list_appointments(sales) == []

    def test_cancel_unknown_appointment(self, service, sales):
        with pytest.raises(NotFoundError):
            service.cancel(sales, "missing")

    def test_trainer_may_not_list_appointments(self, service, trainer):
        with pytest.raises(AuthorizationError):
            service.list_appointments(trainer)


class TestRegistration:
    """Tests for user registration."""

    def test_first_user_becomes_admin(self, service):
        first = service.register_user("Ana", "ana@example.com", Role.SALES)
        second = service.register_user("Sam", "sam@example.com", Role.SALES)

        assert first.role is Role.ADMIN
        assert second.role is Role.SALES

    def test_consultant_email_links_account(self, service):
        service.register_user("Ana", "ana@example.com")

        user = service.register_user("Beatriz", "Beatriz@Trainer.com", Role.TRAINER)

        assert user.consultant_id == "c2"
        assert service.find_user_by_email("beatriz@trainer.com") is user

    def test_duplicate_email(self, service):
        service.register_user("Ana", "ana@example.com")

        with pytest.raises(ValidationError, match="already exists"):
            service.register_user("Ana Again", "ANA@example.com")

    def test_blank_fields(self, service):
        with pytest.raises(ValidationError):
            service.register_user("  ", "ana@example.com")

    def test_unknown_email_lookup(self, service):
        with pytest.raises(NotFoundError):
            service.find_user_by_email("ghost@example.com")


class TestCalendarSync:
    """Tests for syncing through the facade."""

    def test_supplied_token_is_remembered(self, service, trainer, provider, credentials):
        add_users(service.state, trainer)

        result = asyncio.run(service.sync_calendar(trainer, "token-1"))
        asyncio.run(service.sync_calendar(trainer))

        assert result.source == SyncSource.PROVIDER
        assert credentials.tokens == {trainer.id: "token-1"}
        assert provider.credentials == ["token-1", "token-1"]

    def test_without_token_uses_synthetic_data(self, service, trainer):
        add_users(service.state, trainer)

        result = asyncio.run(service.sync_calendar(trainer))

        assert result.source == SyncSource.SYNTHETIC
        assert result.event_count == 8

    def test_disconnect_forgets_token(self, service, trainer, credentials):
        add_users(service.state, trainer)
        asyncio.run(service.sync_calendar(trainer, "token-1"))

        service.disconnect_calendar(trainer)

        assert credentials.tokens == {}
        assert trainer.google_connected is False

    def test_synced_events_block_bookings(self, service, trainer, sales):
        """Synthetic Tuesday 09:00-11:00 block occupies c1's Tuesday morning."""
        add_users(service.state, trainer, sales)
        asyncio.run(service.sync_calendar(trainer))

        with pytest.raises(ConflictError):
            service.book(sales, "c1", "Acme Corp", date(2024, 6, 4), Period.MORNING)
        assert service.occupancy(sales, "c1", date(2024, 6, 4), Period.MORNING).kind == OccupancyKind.EXTERNAL


class TestCalendarViews:
    """Tests for the occupancy and week views."""

    def test_anonymous_may_not_view_calendar(self, service):
        with pytest.raises(AuthorizationError, match="anonymous"):
            service.week(None, "c1", date(2024, 6, 5))
        with pytest.raises(AuthorizationError, match="anonymous"):
            service.occupancy(None, "c1", date(2024, 6, 3), Period.MORNING)

    def test_trainer_may_view_week(self, service, trainer):
        slots = service.week(trainer, "c1", date(2024, 6, 5), days=5)

        assert len(slots) == 5 * len(Period)
        assert all(slot.offered for slot in slots if slot.period == Period.MORNING)
        assert not any(slot.offered for slot in slots if slot.period == Period.AFTERNOON)

    def test_week_of_unknown_consultant(self, service, sales):
        with pytest.raises(NotFoundError):
            service.week(sales, "c9", date(2024, 6, 5))


class TestDashboard:
    """Tests for the dashboard summary. The service clock reads Wednesday 10:00."""

    MORNINGS = [
        ("c1", date(2024, 6, 3)),
        ("c1", date(2024, 6, 6)),
        ("c2", date(2024, 6, 6)),
        ("c2", date(2024, 6, 7)),
        ("c1", date(2024, 6, 10)),
        ("c1", date(2024, 6, 11)),
        ("c1", date(2024, 6, 12)),
    ]

    def _book_mornings(self, service, sales):
        return [
            service.book(sales, consultant_id, "Acme Corp", day, Period.MORNING)
            for consultant_id, day in self.MORNINGS
        ]

    def test_counts_and_hours(self, service, sales):
        self._book_mornings(service, sales)

        summary = service.dashboard(sales)

        assert summary.consultant_count == 2
        assert summary.scheduled_count == 7
        assert summary.booked_hours == 28

    def test_upcoming_is_sorted_future_and_limited(self, service, sales):
        booked = self._book_mornings(service, sales)

        upcoming = service.dashboard(sales).upcoming

        assert len(upcoming) == 5
        assert booked[0] not in upcoming
        assert [a.start for a in upcoming] == sorted(a.start for a in booked[1:])[:5]
        assert upcoming[0].start == at("2024-06-06 08:00")

    def test_cancelled_appointments_are_ignored(self, service, sales):
        first, second = [
            service.book(sales, "c1", "Acme Corp", day, Period.MORNING)
            for day in (date(2024, 6, 6), date(2024, 6, 7))
        ]
        service.state.appointments = [
            replace(first, status=AppointmentStatus.CANCELLED),
            second,
        ]

        summary = service.dashboard(sales)

        assert summary.scheduled_count == 1
        assert summary.booked_hours == 4
        assert summary.upcoming == [second]

    def test_empty_ledger(self, service, admin):
        summary = service.dashboard(admin)

        assert summary.scheduled_count == 0
        assert summary.booked_hours == 0
        assert summary.upcoming == []

    def test_trainer_may_not_view_dashboard(self, service, trainer):
        with pytest.raises(AuthorizationError):
            service.dashboard(trainer)


class TestCredentialWarning:
    def test_forwards_store_warning(self, service, credentials):
        credentials.insecure_storage_warning = "Keyring disabled; tokens stored in plaintext"

        assert service.credential_warning == credentials.insecure_storage_warning

    def test_no_store_means_no_warning(self, state, repository, provider):
        service = SchedulingService(state=state, repository=repository, provider=provider, timezone=TZ)

        assert service.credential_warning is None
