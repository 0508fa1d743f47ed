"""
Tests for the Google Calendar client.
"""

import asyncio
import time

import pytest
import requests

from agendaguard.adapters.google_calendar import DEFAULT_EVENT_TITLE, GoogleCalendarClient
from agendaguard.domain.exceptions import ProviderFetchError

from conftest import TZ, at


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Returns queued responses and records request parameters."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.requests = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "params": dict(params), "timeout": timeout})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _timed(event_id, start, end, summary="Meeting", status="confirmed"):
    return {
        "id": event_id,
        "status": status,
        "summary": summary,
        "start": {"dateTime": start},
        "end": {"dateTime": end},
    }


def _client(session):
    return GoogleCalendarClient(timezone=TZ, http_timeout=3, session=session)


class TestParseEventsPage:
    """Tests for strict response parsing."""

    def test_converts_timed_events_to_local_time(self):
        client = _client(FakeSession())
        data = {"items": [_timed("e1", "2024-06-04T12:00:00Z", "2024-06-04T13:30:00Z")]}

        intervals, next_token = client.parse_events_page(data)

        assert next_token is None
        assert len(intervals) == 1
        assert intervals[0].start == at("2024-06-04 09:00")
        assert intervals[0].end == at("2024-06-04 10:30")
        assert intervals[0].start.timezone_name == TZ

    def test_skips_all_day_and_cancelled_items(self):
        client = _client(FakeSession())
        data = {
            "items": [
                {"id": "holiday", "start": {"date": "2024-06-04"}, "end": {"date": "2024-06-05"}},
                {"id": "gone", "status": "cancelled"},
                _timed("e1", "2024-06-04T09:00:00-03:00", "2024-06-04T10:00:00-03:00"),
            ]
        }

        intervals, _ = client.parse_events_page(data)

        assert [i.id for i in intervals] == ["e1"]

    def test_missing_summary_uses_default_title(self):
        client = _client(FakeSession())
        item = _timed("e1", "2024-06-04T09:00:00-03:00", "2024-06-04T10:00:00-03:00")
        del item["summary"]

        intervals, _ = client.parse_events_page({"items": [item]})

        assert intervals[0].title == DEFAULT_EVENT_TITLE

    @pytest.mark.parametrize(
        "item",
        [
            {"id": "", "start": {"dateTime": "2024-06-04T09:00:00Z"}, "end": {"dateTime": "2024-06-04T10:00:00Z"}},
            {"id": "e1", "start": {"dateTime": "2024-06-04T09:00:00Z"}},
            {"id": "e1", "start": {"dateTime": "2024-06-04T10:00:00Z"}, "end": {"dateTime": "2024-06-04T09:00:00Z"}},
            {"id": "e1", "start": {"dateTime": "2024-06-04T09:00:00"}, "end": {"dateTime": "2024-06-04T10:00:00"}},
            {"id": "e1", "start": {"dateTime": "not a date"}, "end": {"dateTime": "2024-06-04T10:00:00Z"}},
            {"id": "e1", "start": {"date": "2024-06-04"}, "end": {"dateTime": "2024-06-04T10:00:00Z"}},
        ],
        ids=["empty-id", "missing-end", "backwards", "naive", "garbage", "mixed"],
    )
    def test_malformed_item_fails_whole_page(self, item):
        """One bad item rejects the page instead of yielding a partial list."""
        client = _client(FakeSession())
        good = _timed("ok", "2024-06-04T09:00:00Z", "2024-06-04T10:00:00Z")

        with pytest.raises(ProviderFetchError, match="Malformed"):
            client.parse_events_page({"items": [good, item]})


class TestFetchBusyIntervals:
    """Tests for the HTTP side of the client."""

    def test_request_parameters_and_auth_header(self):
        session = FakeSession(FakeResponse({"items": []}))
        client = _client(session)

        client.fetch_busy_intervals("token-1", at("2024-06-01 00:00"), at("2024-06-30 00:00"))

        request = session.requests[0]
        assert request["url"] == GoogleCalendarClient.EVENTS_ENDPOINT
        assert request["headers"] == {"Authorization": "Bearer token-1"}
        assert request["timeout"] == 3
        assert request["params"]["singleEvents"] == "true"
        assert request["params"]["orderBy"] == "startTime"
        assert request["params"]["timeMin"].startswith("2024-06-01T03:00:00")
        assert "timeMax" in request["params"]

    def test_follows_page_tokens(self):
        session = FakeSession(
            FakeResponse({
                "items": [_timed("e2", "2024-06-05T12:00:00Z", "2024-06-05T13:00:00Z")],
                "nextPageToken": "page-2",
            }),
            FakeResponse({"items": [_timed("e1", "2024-06-04T12:00:00Z", "2024-06-04T13:00:00Z")]}),
        )
        client = _client(session)

        intervals = client.fetch_busy_intervals("token-1", at("2024-06-01 00:00"))

        assert [i.id for i in intervals] == ["e1", "e2"]
        assert session.requests[1]["params"]["pageToken"] == "page-2"
        assert "pageToken" not in session.requests[0]["params"]
        assert "timeMax" not in session.requests[0]["params"]

    def test_http_error_raises_provider_error(self):
        client = _client(FakeSession(FakeResponse({"error": "unauthorized"}, status_code=401)))

        with pytest.raises(ProviderFetchError, match="Failed to fetch"):
            client.fetch_busy_intervals("expired", at("2024-06-01 00:00"))

    def test_network_error_raises_provider_error(self):
        client = _client(FakeSession(requests.exceptions.ConnectionError("unreachable")))

        with pytest.raises(ProviderFetchError):
            client.fetch_busy_intervals("token-1", at("2024-06-01 00:00"))

    def test_invalid_json_raises_provider_error(self):
        client = _client(FakeSession(FakeResponse(ValueError("Expecting value"))))

        with pytest.raises(ProviderFetchError, match="invalid JSON"):
            client.fetch_busy_intervals("token-1", at("2024-06-01 00:00"))

    def test_non_object_body_raises_provider_error(self):
        client = _client(FakeSession(FakeResponse(["not", "an", "object"])))

        with pytest.raises(ProviderFetchError):
            client.fetch_busy_intervals("token-1", at("2024-06-01 00:00"))

    def test_async_wrapper(self):
        session = FakeSession(
            FakeResponse({"items": [_timed("e1", "2024-06-04T12:00:00Z", "2024-06-04T13:00:00Z")]})
        )
        client = _client(session)

        intervals = asyncio.run(client.list_busy_intervals("token-1", at("2024-06-01 00:00")))

        assert [i.id for i in intervals] == ["e1"]

    def test_async_wrapper_propagates_errors(self):
        client = _client(FakeSession(requests.exceptions.ConnectionError("unreachable")))

        with pytest.raises(ProviderFetchError):
            asyncio.run(client.list_busy_intervals("token-1", at("2024-06-01 00:00")))


class TrickleSession:
    """Answers every page slowly and always announces another one."""

    def __init__(self, delay):
        self.delay = delay
        self.timeouts = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.timeouts.append(timeout)
        time.sleep(self.delay)
        return FakeResponse({"items": [], "nextPageToken": f"page-{len(self.timeouts) + 1}"})


class TestFetchDeadline:
    """The overall fetch deadline spans every page."""

    def test_paging_stops_at_deadline(self):
        session = TrickleSession(delay=0.05)
        client = GoogleCalendarClient(timezone=TZ, http_timeout=10, fetch_timeout=0.12, session=session)

        with pytest.raises(ProviderFetchError, match="deadline"):
            client.fetch_busy_intervals("token-1", at("2024-06-01 00:00"))

        assert len(session.timeouts) < GoogleCalendarClient.MAX_PAGES
        assert all(timeout <= 0.12 for timeout in session.timeouts)

    def test_request_timeout_is_capped_by_remaining_time(self):
        session = FakeSession(FakeResponse({"items": []}))
        client = GoogleCalendarClient(timezone=TZ, http_timeout=10, fetch_timeout=2, session=session)

        client.fetch_busy_intervals("token-1", at("2024-06-01 00:00"))

        assert 0 < session.requests[0]["timeout"] <= 2
