"""
Google Calendar API client for fetching a user's busy blocks.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import pendulum
import requests
from pendulum import DateTime
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..domain.exceptions import ProviderFetchError
from ..domain.models import BusyInterval

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TITLE = "Google event"


class EventTime(BaseModel):
    """``start``/``end`` object of a Google event; all-day events only carry ``date``."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date_time: Optional[AwareDatetime] = Field(default=None, alias="dateTime")
    date: Optional[str] = None


class EventItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    status: str = "confirmed"
    summary: Optional[str] = None
    start: Optional[EventTime] = None
    end: Optional[EventTime] = None

    @model_validator(mode="after")
    def validate_times(self) -> "EventItem":
        """Both ends must be timed (or both all-day) and the event must not run backwards."""
        if self.status == "cancelled":
            return self
        if self.start is None or self.end is None:
            raise ValueError(f"Event {self.id} is missing start or end")
        timed_start = self.start.date_time is not None
        timed_end = self.end.date_time is not None
        if timed_start != timed_end:
            raise ValueError(f"Event {self.id} mixes timed and all-day boundaries")
        if not timed_start and not (self.start.date and self.end.date):
            raise ValueError(f"Event {self.id} has neither dateTime nor date")
        if timed_start and self.end.date_time <= self.start.date_time:
            raise ValueError(f"Event {self.id} ends before it starts")
        return self

    @property
    def is_timed(self) -> bool:
        return self.start is not None and self.start.date_time is not None


class EventsPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    items: List[EventItem] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(default=None, alias="nextPageToken")


class GoogleCalendarClient:
    """
    Client for the Google Calendar v3 events endpoint.

    Responses are parsed strictly: a single malformed item fails the whole
    fetch instead of yielding a partial busy list.
    """

    EVENTS_ENDPOINT = "https://www.googleapis.com/calendar/v3/calendars/primary/events"
    MAX_PAGES = 20

    def __init__(
        self,
        timezone: str,
        http_timeout: float = 10,
        fetch_timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the Google Calendar client.

        Args:
            timezone: IANA timezone the returned instants are converted to
            http_timeout: Per-request timeout in seconds
            fetch_timeout: Overall deadline for all pages of one fetch, in seconds
            session: Optional requests session (module-level requests when omitted)
        """
        self.timezone = timezone
        self.http_timeout = http_timeout
        self.fetch_timeout = fetch_timeout
        self._http = session or requests

    async def list_busy_intervals(
        self,
        credential: str,
        time_min: DateTime,
        time_max: Optional[DateTime] = None
    ) -> List[BusyInterval]:
        """
        Fetch busy intervals without blocking the event loop.

        The blocking fetch runs on a daemon thread, not the default executor,
        so a fetch abandoned by ``asyncio.wait_for`` never holds up loop shutdown.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[List[BusyInterval]] = loop.create_future()

        def _settle(result: Optional[List[BusyInterval]], error: Optional[BaseException]) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        def _run() -> None:
            result: Optional[List[BusyInterval]] = None
            error: Optional[BaseException] = None
            try:
                result = self.fetch_busy_intervals(credential, time_min, time_max)
            except Exception as e:
                error = e
            try:
                loop.call_soon_threadsafe(_settle, result, error)
            except RuntimeError:
                # Loop closed after the caller gave up on this fetch
                logger.debug("Discarding Google Calendar result of an abandoned fetch")

        threading.Thread(target=_run, name="google-calendar-fetch", daemon=True).start()
        return await future

    def fetch_busy_intervals(
        self,
        credential: str,
        time_min: DateTime,
        time_max: Optional[DateTime] = None
    ) -> List[BusyInterval]:
        """
        Fetch all timed events of the primary calendar within the window.

        Args:
            credential: OAuth access token
            time_min: Lower bound of the window
            time_max: Optional upper bound of the window

        Returns:
            Busy intervals sorted by start

        Raises:
            ProviderFetchError: If the request fails, any item is malformed or
                the fetch deadline passes
        """
        deadline = time.monotonic() + self.fetch_timeout if self.fetch_timeout else None
        params: Dict[str, Any] = {
            "timeMin": time_min.in_timezone("UTC").to_iso8601_string(),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if time_max is not None:
            params["timeMax"] = time_max.in_timezone("UTC").to_iso8601_string()

        intervals: List[BusyInterval] = []
        for _ in range(self.MAX_PAGES):
            data = self._get_page(credential, params, self._request_timeout(deadline))
            page_intervals, next_token = self.parse_events_page(data)
            intervals.extend(page_intervals)

            if not next_token:
                break
            params["pageToken"] = next_token
        else:
            logger.warning("Stopped paging Google events after %d pages", self.MAX_PAGES)

        return sorted(intervals, key=lambda interval: interval.start)

    def _request_timeout(self, deadline: Optional[float]) -> float:
        """Per-request timeout, capped by what is left of the overall deadline."""
        if deadline is None:
            return self.http_timeout
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ProviderFetchError(
                f"Google Calendar fetch exceeded its {self.fetch_timeout}s deadline"
            )
        return min(self.http_timeout, remaining)

    def _get_page(self, credential: str, params: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {credential}"}

        try:
            response = self._http.get(
                self.EVENTS_ENDPOINT,
                headers=headers,
                params=params,
                timeout=timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise ProviderFetchError(f"Failed to fetch events from Google Calendar: {e}") from e
        except ValueError as e:
            raise ProviderFetchError(f"Google Calendar returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ProviderFetchError("Google Calendar response must be a JSON object")
        return data

    def parse_events_page(self, data: Dict[str, Any]) -> Tuple[List[BusyInterval], Optional[str]]:
        """
        Validate one events page and convert it into busy intervals.

        All-day and cancelled items are skipped; they are not malformed.

        Returns:
            (busy intervals, next page token)
        """
        try:
            page = EventsPage.model_validate(data)
        except PydanticValidationError as e:
            raise ProviderFetchError(f"Malformed Google Calendar response: {e}") from e

        intervals: List[BusyInterval] = []
        for item in page.items:
            if item.status == "cancelled" or not item.is_timed:
                continue

            intervals.append(
                BusyInterval(
                    id=item.id,
                    title=item.summary or DEFAULT_EVENT_TITLE,
                    start=pendulum.instance(item.start.date_time).in_timezone(self.timezone),
                    end=pendulum.instance(item.end.date_time).in_timezone(self.timezone),
                )
            )

        return intervals, page.next_page_token
