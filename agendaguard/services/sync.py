"""
External calendar synchronisation.

The orchestrator fetches busy blocks for the consultant linked to a user,
falls back to synthetic data when configured to, and swaps the result into
the external event mirror in one step. The fetch is the only suspending
operation; until it completes, bookings and availability keep working
against the previous mirror snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol

import pendulum
from pendulum import DateTime

from ..adapters.storage import USERS_KEY, StateRepository
from ..adapters.synthetic_calendar import SyntheticCalendarClient
from ..config import SyncConfig, SyncFallback
from ..domain.exceptions import NotFoundError, ProviderFetchError
from ..domain.models import BusyInterval, Consultant, ExternalEvent, Role, User
from ..domain.state import SchedulerState
from .mirror import ExternalEventMirror

logger = logging.getLogger(__name__)


class CalendarProviderProtocol(Protocol):
    """Protocol describing the provider behaviour needed by the orchestrator."""

    async def list_busy_intervals(
        self,
        credential: str,
        time_min: DateTime,
        time_max: Optional[DateTime] = None,
    ) -> List[BusyInterval]:
        """Return validated busy intervals or raise ProviderFetchError."""


class SyncSource(str, Enum):
    PROVIDER = "provider"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class SyncResult:
    consultant_id: str
    event_count: int
    source: SyncSource
    synced_at: DateTime


class SyncOrchestrator:
    """
    Drives provider fetches and installs the results per consultant.
    """

    def __init__(
        self,
        state: SchedulerState,
        repository: StateRepository,
        mirror: ExternalEventMirror,
        provider: CalendarProviderProtocol,
        timezone: str,
        config: Optional[SyncConfig] = None,
        synthetic: Optional[SyntheticCalendarClient] = None,
        clock: Optional[Callable[[], DateTime]] = None,
    ):
        self._state = state
        self._repository = repository
        self._mirror = mirror
        self._provider = provider
        self.timezone = timezone
        self.config = config or SyncConfig()
        self._synthetic = synthetic or SyntheticCalendarClient(weeks=self.config.synthetic_weeks)
        self._clock = clock or (lambda: pendulum.now(self.timezone))

    def resolve_consultant(self, user: User) -> Optional[Consultant]:
        """
        Find the consultant whose calendar a user syncs.

        Explicit link first, then a consultant with the same email; an admin
        without either falls back to the first consultant of the roster.
        """
        if user.consultant_id:
            consultant = self._state.find_consultant(user.consultant_id)
            if consultant is not None:
                return consultant

        consultant = self._state.find_consultant_by_email(user.email)
        if consultant is not None:
            return consultant

        if user.role == Role.ADMIN and self._state.consultants:
            return self._state.consultants[0]

        return None

    async def sync(self, user_id: str, credential: Optional[str] = None) -> Optional[SyncResult]:
        """
        Refresh the external events of the consultant linked to a user.

        Args:
            user_id: Acting user
            credential: Provider access token; synthetic data is used without one

        Returns:
            A summary of the installed events, or None when the user has no consultant

        Raises:
            NotFoundError: If the user does not exist
            ProviderFetchError: Only with the strict fallback policy
        """
        user = self._require_user(user_id)
        consultant = self.resolve_consultant(user)
        if consultant is None:
            logger.warning("User %s is not linked to any consultant; nothing to sync", user.email)
            return None

        now = self._clock()
        intervals, source = await self._collect(consultant, credential, now)

        events = [interval.to_external_event(consultant.id) for interval in intervals]
        self._mirror.replace_for_consultant(consultant.id, events)

        user.google_connected = True
        user.last_sync = now
        self._repository.save(self._state, USERS_KEY)

        logger.info(
            "Synced %d %s event(s) for consultant %s", len(events), source.value, consultant.id
        )
        return SyncResult(
            consultant_id=consultant.id,
            event_count=len(events),
            source=source,
            synced_at=now,
        )

    def disconnect(self, user_id: str) -> Optional[Consultant]:
        """
        Clear a user's connection and drop the linked consultant's external events.

        Returns:
            The consultant whose events were removed, or None
        """
        user = self._require_user(user_id)
        consultant = self.resolve_consultant(user)

        if consultant is not None:
            self._mirror.clear_consultant(consultant.id)

        user.google_connected = False
        self._repository.save(self._state, USERS_KEY)
        return consultant

    async def _collect(
        self,
        consultant: Consultant,
        credential: Optional[str],
        now: DateTime,
    ) -> tuple[List[BusyInterval], SyncSource]:
        strict = self.config.fallback == SyncFallback.STRICT

        if not credential:
            if strict:
                raise ProviderFetchError("No calendar credential available for live sync")
            return self._synthetic.generate(consultant.id, now), SyncSource.SYNTHETIC

        try:
            intervals = await self._fetch(credential, now)
        except ProviderFetchError as exc:
            if strict:
                raise
            logger.warning("Calendar fetch failed, using synthetic data instead: %s", exc)
            return self._synthetic.generate(consultant.id, now), SyncSource.SYNTHETIC

        return intervals, SyncSource.PROVIDER

    async def _fetch(self, credential: str, now: DateTime) -> List[BusyInterval]:
        time_min = now.subtract(days=self.config.lookback_days)
        time_max = now.add(days=self.config.lookahead_days) if self.config.lookahead_days else None

        try:
            return await asyncio.wait_for(
                self._provider.list_busy_intervals(credential, time_min, time_max),
                timeout=self.config.fetch_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ProviderFetchError(
                f"Calendar fetch timed out after {self.config.fetch_timeout_seconds}s"
            ) from exc

    def _require_user(self, user_id: str) -> User:
        user = self._state.find_user(user_id)
        if user is None:
            raise NotFoundError(f"Unknown user: {user_id}")
        return user
