"""Tests for the Google Calendar client: paging, retries, refresh and insert."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse
from zoneinfo import ZoneInfo

import pytest
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials

from caldigest.client.google_client import NO_SUMMARY, event_body, event_from_item
from caldigest.errors import (
  BadRequestError,
  ForbiddenError,
  NotFoundError,
  RateLimitedError,
  ServerError,
  TokenRefreshError,
  ValidationError,
)
from caldigest.state.types import EventDraft
from tests.conftest import NOW, all_day_item, error, ok, timed_item

pytestmark = pytest.mark.unit

TIME_MIN = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
TIME_MAX = datetime(2025, 1, 3, 0, 0, tzinfo=timezone.utc)


def query(uri: str) -> dict[str, list[str]]:
  return parse_qs(urlparse(uri).query)


def summaries(events) -> list[str]:
  return [e.summary for e in events]


# ---------------------------------------------------------------------------
# list_events
# ---------------------------------------------------------------------------


class TestListEvents:
  def test_pages_and_calendars_in_order(self, make_client, make_token):
    client, http = make_client(
      [
        ok({"items": [timed_item("a1", "A1", "2025-01-01T09:00:00Z", "2025-01-01T10:00:00Z")], "nextPageToken": "p2"}),
        ok({"items": [timed_item("a2", "A2", "2025-01-01T08:00:00Z", "2025-01-01T08:30:00Z")]}),
        ok({"items": [all_day_item("b1", "B1", "2025-01-02", "2025-01-03")]}),
      ]
    )

    events = client.list_events(["primary", "team@example.com"], TIME_MIN, TIME_MAX, make_token())

    assert summaries(events) == ["A1", "A2", "B1"]
    assert [e.calendar_id for e in events] == ["primary", "primary", "team@example.com"]
    assert len(http.requests) == 3
    first, second, third = (query(uri) for uri, _, _ in http.requests)
    assert "pageToken" not in first
    assert second["pageToken"] == ["p2"]
    assert "/calendars/primary/events" in http.requests[0][0]
    assert "/calendars/team%40example.com/events" in http.requests[2][0]
    assert first["singleEvents"] == ["true"]
    assert first["orderBy"] == ["startTime"]
    assert first["timeMin"] == ["2025-01-01T00:00:00Z"]
    assert first["timeMax"] == ["2025-01-03T00:00:00Z"]

  def test_identical_calls_give_identical_results(self, make_client, make_token):
    page = ok({"items": [timed_item("a1", "A1", "2025-01-01T09:00:00Z", "2025-01-01T10:00:00Z")]})
    client, _ = make_client([page, page])

    first = client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token())
    second = client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token())

    assert first == second

  def test_filters_timed_events_outside_range(self, make_client, make_token):
    client, _ = make_client(
      [
        ok(
          {
            "items": [
              timed_item("in", "In", "2025-01-02T23:00:00Z", "2025-01-03T01:00:00Z"),
              timed_item("late", "Late", "2025-01-03T00:00:00Z", "2025-01-03T01:00:00Z"),
              timed_item("early", "Early", "2024-12-31T22:00:00Z", "2024-12-31T23:00:00Z"),
            ]
          }
        )
      ]
    )

    events = client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token())

    assert summaries(events) == ["In"]

  def test_rate_limited_twice_then_succeeds(self, make_client, make_token, sleeps):
    client, http = make_client(
      [
        error(429, "rateLimitExceeded"),
        error(403, "userRateLimitExceeded"),
        ok({"items": [timed_item("a1", "A1", "2025-01-01T09:00:00Z", "2025-01-01T10:00:00Z")]}),
      ]
    )

    events = client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token())

    assert summaries(events) == ["A1"]
    assert len(http.requests) == 3
    assert sleeps == [1.0, 2.0]

  def test_rate_limit_exhausts_attempts(self, make_client, make_token, sleeps):
    client, http = make_client([error(429)] * 4)

    with pytest.raises(RateLimitedError):
      client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token())

    assert len(http.requests) == 4
    assert sleeps == [1.0, 2.0, 4.0]

  def test_server_errors_exhaust_attempts(self, make_client, make_token):
    client, http = make_client([error(503)] * 2, max_attempts=2)

    with pytest.raises(ServerError):
      client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token())

    assert len(http.requests) == 2

  @pytest.mark.parametrize(
    ("status", "reason", "expected"),
    [
      (404, "notFound", NotFoundError),
      (403, "forbidden", ForbiddenError),
      (401, "authError", ForbiddenError),
      (400, "badRequest", BadRequestError),
    ],
  )
  def test_client_errors_are_not_retried(self, make_client, make_token, sleeps, status, reason, expected):
    client, http = make_client([error(status, reason)])

    with pytest.raises(expected) as excinfo:
      client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token())

    assert excinfo.value.status_code == status
    assert len(http.requests) == 1
    assert sleeps == []


# ---------------------------------------------------------------------------
# Token refresh
# ---------------------------------------------------------------------------


class TestRefresh:
  def test_fresh_token_is_not_refreshed(self, make_client, make_token, token_store, monkeypatch):
    def unexpected(self, request):
      raise AssertionError("refresh should not be called")

    monkeypatch.setattr(Credentials, "refresh", unexpected)
    client, _ = make_client([ok({"items": []})])

    client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token(expires_in=timedelta(minutes=5)))

    assert token_store.load() is None

  def test_token_near_expiry_is_refreshed_and_saved(self, make_client, make_token, token_store, monkeypatch):
    def fake_refresh(self, request):
      self.token = "ya29.refreshed"
      self.expiry = datetime(2025, 1, 1, 13, 30)

    monkeypatch.setattr(Credentials, "refresh", fake_refresh)
    client, _ = make_client([ok({"items": []})])
    token = make_token(expires_in=timedelta(seconds=30))

    client.list_events(["primary"], TIME_MIN, TIME_MAX, token)

    assert token.access_token == "ya29.refreshed"
    assert token.expires_at == datetime(2025, 1, 1, 13, 30, tzinfo=timezone.utc)
    assert token.refresh_token == "1//refresh"
    assert token_store.load() == token

  def test_refresh_failure_is_terminal(self, make_client, make_token, token_store, monkeypatch):
    def failing_refresh(self, request):
      raise RefreshError("invalid_grant")

    monkeypatch.setattr(Credentials, "refresh", failing_refresh)
    client, http = make_client([])

    with pytest.raises(TokenRefreshError):
      client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token(expires_in=-timedelta(hours=1)))

    assert http.requests == []
    assert token_store.load() is None

  def test_expiry_must_increase(self, make_client, make_token, monkeypatch):
    token = make_token(expires_in=timedelta(seconds=10))
    stale_expiry = token.expires_at.replace(tzinfo=None)

    def stale_refresh(self, request):
      self.token = "ya29.stale"
      self.expiry = stale_expiry

    monkeypatch.setattr(Credentials, "refresh", stale_refresh)
    client, _ = make_client([])

    with pytest.raises(TokenRefreshError):
      client.list_events(["primary"], TIME_MIN, TIME_MAX, token)

  def test_expired_without_refresh_token(self, make_client, make_token):
    client, http = make_client([])

    with pytest.raises(TokenRefreshError):
      client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token(expires_in=-timedelta(seconds=1), refresh_token=None))

    assert http.requests == []


# ---------------------------------------------------------------------------
# insert_event
# ---------------------------------------------------------------------------


class TestInsertEvent:
  def test_empty_summary_fails_before_any_request(self, make_client, make_token):
    client, http = make_client([])
    tz = ZoneInfo("Asia/Tokyo")
    draft = EventDraft(
      summary="  ",
      start=datetime(2025, 1, 2, 10, 0, tzinfo=tz),
      end=datetime(2025, 1, 2, 11, 0, tzinfo=tz),
    )

    with pytest.raises(ValidationError):
      client.insert_event("primary", draft, make_token())

    assert http.requests == []

  def test_end_before_start_fails_before_any_request(self, make_client, make_token):
    client, http = make_client([])
    draft = EventDraft(summary="Trip", start=date(2025, 1, 3), end=date(2025, 1, 2), all_day=True)

    with pytest.raises(ValidationError):
      client.insert_event("primary", draft, make_token())

    assert http.requests == []

  def test_inserts_timed_event(self, make_client, make_token):
    client, http = make_client([ok({"id": "evt1", "htmlLink": "https://calendar.google.com/event?eid=evt1"})])
    tz = ZoneInfo("Asia/Tokyo")
    draft = EventDraft(
      summary="Standup",
      start=datetime(2025, 1, 2, 10, 0, tzinfo=tz),
      end=datetime(2025, 1, 2, 10, 15, tzinfo=tz),
      location="Room 1",
      attendees=["a@example.com"],
    )

    inserted = client.insert_event("primary", draft, make_token())

    assert inserted.id == "evt1"
    assert inserted.html_link == "https://calendar.google.com/event?eid=evt1"
    uri, method, body = http.requests[0]
    assert method == "POST"
    assert "/calendars/primary/events" in uri
    sent = json.loads(body)
    assert sent["summary"] == "Standup"
    assert sent["start"] == {"dateTime": "2025-01-02T10:00:00+09:00", "timeZone": "Asia/Tokyo"}
    assert sent["end"] == {"dateTime": "2025-01-02T10:15:00+09:00", "timeZone": "Asia/Tokyo"}
    assert sent["location"] == "Room 1"
    assert sent["attendees"] == [{"email": "a@example.com"}]


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------


class TestEventMapping:
  def test_cancelled_event_is_skipped(self):
    item = timed_item("x", "Gone", "2025-01-01T09:00:00Z", "2025-01-01T10:00:00Z", status="cancelled")
    assert event_from_item(item, "primary") is None

  def test_missing_summary_gets_placeholder(self):
    event = event_from_item(timed_item("x", None, "2025-01-01T09:00:00Z", "2025-01-01T10:00:00Z"), "primary")
    assert event.summary == NO_SUMMARY

  def test_all_day_event(self):
    item = all_day_item(
      "x",
      "Holiday",
      "2025-01-01",
      "2025-01-02",
      attendees=[{"email": "a@example.com"}, {"displayName": "no email"}],
      htmlLink="https://calendar.google.com/event?eid=x",
    )

    event = event_from_item(item, "primary")

    assert event.all_day
    assert event.start == date(2025, 1, 1)
    assert event.end == date(2025, 1, 2)
    assert event.attendees == ["a@example.com"]
    assert event.html_link == "https://calendar.google.com/event?eid=x"

  def test_timed_event_keeps_offset(self):
    event = event_from_item(
      timed_item("x", "Call", "2025-01-01T09:00:00+09:00", "2025-01-01T10:00:00+09:00"),
      "primary",
    )

    assert not event.all_day
    assert event.start == datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)

  def test_end_before_start_is_clamped(self):
    event = event_from_item(
      timed_item("x", "Odd", "2025-01-01T10:00:00Z", "2025-01-01T09:00:00Z"),
      "primary",
    )
    assert event.end == event.start

  def test_all_day_body_has_exclusive_end(self):
    body = event_body(EventDraft(summary="Trip", start=date(2025, 1, 1), end=date(2025, 1, 3), all_day=True))

    assert body == {
      "summary": "Trip",
      "start": {"date": "2025-01-01"},
      "end": {"date": "2025-01-04"},
    }


def test_clock_is_used_for_expiry(make_client, make_token, monkeypatch):
  calls = []

  def fake_refresh(self, request):
    calls.append(request)
    self.token = "ya29.refreshed"
    self.expiry = (NOW + timedelta(hours=2)).replace(tzinfo=None)

  monkeypatch.setattr(Credentials, "refresh", fake_refresh)
  late = NOW + timedelta(hours=1)
  client, _ = make_client([ok({"items": []})], clock=lambda: late)

  client.list_events(["primary"], TIME_MIN, TIME_MAX, make_token(expires_in=timedelta(hours=1)))

  assert len(calls) == 1
