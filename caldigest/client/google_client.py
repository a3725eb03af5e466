"""
Google Calendar API client.

googleapiclient is synchronous; callers on the event loop run these
methods through ``asyncio.to_thread``.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterator
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httplib2
from google.auth import exceptions as google_auth_exceptions
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..errors import (
  ApiError,
  BadRequestError,
  ForbiddenError,
  NotFoundError,
  RateLimitedError,
  ServerError,
  TokenRefreshError,
  TransportError,
)
from ..state.store import TokenStore
from ..state.types import CalendarEvent, EventDraft, InsertedEvent, OAuthToken
from ..validation import validate_draft

log = logging.getLogger("caldigest.client.google")


# Google Calendar API scopes
SCOPES = [
  "https://www.googleapis.com/auth/calendar.readonly",
  "https://www.googleapis.com/auth/calendar.events",
]
TOKEN_URI = "https://oauth2.googleapis.com/token"

MAX_ATTEMPTS = 4
BASE_BACKOFF_SECONDS = 1.0
REFRESH_MARGIN = timedelta(seconds=60)
PAGE_SIZE = 250
NO_SUMMARY = "(no summary)"

_RATE_LIMIT_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}


def build_service(credentials: Credentials) -> Any:
  """Build the Calendar v3 resource for the given credentials."""
  return build("calendar", "v3", credentials=credentials, cache_discovery=False)


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


class CalendarClient:
  """Client for Google Calendar API.

  The token is borrowed per call. When it is within ``refresh_margin`` of
  expiry it is refreshed in place and written back through ``store``.
  """

  def __init__(
    self,
    client_id: str,
    client_secret: str,
    store: TokenStore,
    *,
    service_factory: Callable[[Credentials], Any] = build_service,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], datetime] = _utcnow,
    max_attempts: int = MAX_ATTEMPTS,
    base_backoff: float = BASE_BACKOFF_SECONDS,
    refresh_margin: timedelta = REFRESH_MARGIN,
    page_size: int = PAGE_SIZE,
  ) -> None:
    if max_attempts < 1:
      raise ValueError("max_attempts must be at least 1")
    self.client_id = client_id
    self.client_secret = client_secret
    self.store = store
    self.service_factory = service_factory
    self.sleep = sleep
    self.clock = clock
    self.max_attempts = max_attempts
    self.base_backoff = base_backoff
    self.refresh_margin = refresh_margin
    self.page_size = page_size

  # -------------------------------------------------------------------------
  # Token lifecycle
  # -------------------------------------------------------------------------

  def _credentials(self, token: OAuthToken) -> Credentials:
    expiry = token.expires_at.astimezone(timezone.utc).replace(tzinfo=None) if token.expires_at else None
    return Credentials(
      token=token.access_token,
      refresh_token=token.refresh_token,
      token_uri=TOKEN_URI,
      client_id=self.client_id,
      client_secret=self.client_secret,
      scopes=token.scopes or None,
      expiry=expiry,
    )

  def ensure_fresh(self, token: OAuthToken) -> OAuthToken:
    """Refresh ``token`` in place if it is at or near expiry."""
    if not token.expires_within(self.refresh_margin, self.clock()):
      return token
    if not token.refresh_token:
      raise TokenRefreshError("Access token has expired and no refresh token is stored")

    creds = self._credentials(token)
    try:
      creds.refresh(Request())
    except (google_auth_exceptions.RefreshError, google_auth_exceptions.TransportError) as e:
      raise TokenRefreshError(f"Failed to refresh access token: {e}") from e

    expiry = creds.expiry
    if expiry is None:
      raise TokenRefreshError("Token endpoint returned no expiry")
    if expiry.tzinfo is None:
      expiry = expiry.replace(tzinfo=timezone.utc)
    if token.expires_at is not None and expiry <= token.expires_at:
      raise TokenRefreshError("Refreshed token does not expire later than the previous one")

    token.access_token = creds.token
    token.refresh_token = creds.refresh_token or token.refresh_token
    token.expires_at = expiry
    self.store.save(token)
    log.info("Refreshed access token (expires %s)", expiry.isoformat())
    return token

  # -------------------------------------------------------------------------
  # Requests
  # -------------------------------------------------------------------------

  def _execute(self, request: Any, operation: str) -> dict[str, Any]:
    """Execute with bounded exponential backoff on rate limits and 5xx."""
    attempt = 0
    while True:
      attempt += 1
      try:
        return request.execute()
      except HttpError as e:
        error = _api_error(e, operation)
        if not error.retryable or attempt >= self.max_attempts:
          log.error("%s failed: %s", operation, error.message)
          raise error from e
      except (OSError, httplib2.HttpLib2Error) as e:
        raise TransportError(f"{operation} failed: {e}") from e

      delay = self.base_backoff * 2 ** (attempt - 1)
      log.warning(
        "%s: %s (attempt %d/%d), retrying in %.1fs",
        operation,
        error.kind,
        attempt,
        self.max_attempts,
        delay,
      )
      self.sleep(delay)

  def list_events(
    self,
    calendar_ids: list[str],
    time_min: datetime,
    time_max: datetime,
    token: OAuthToken,
  ) -> list[CalendarEvent]:
    """List events overlapping [time_min, time_max) across calendars.

    Calendars are fetched one after another in the order given; the merged
    list keeps that order.
    """
    token = self.ensure_fresh(token)
    service = self.service_factory(self._credentials(token))

    events: list[CalendarEvent] = []
    for calendar_id in calendar_ids:
      fetched = 0
      for event in self._list_calendar(service, calendar_id, time_min, time_max):
        if event.all_day or (event.end >= time_min and event.start < time_max):
          events.append(event)
          fetched += 1
      log.debug("Fetched %d events from %s", fetched, calendar_id)
    return events

  def _list_calendar(
    self,
    service: Any,
    calendar_id: str,
    time_min: datetime,
    time_max: datetime,
  ) -> Iterator[CalendarEvent]:
    page_token: str | None = None
    while True:
      request = service.events().list(
        calendarId=calendar_id,
        timeMin=_google_rfc3339(time_min),
        timeMax=_google_rfc3339(time_max),
        singleEvents=True,
        orderBy="startTime",
        maxResults=self.page_size,
        pageToken=page_token,
      )
      response = self._execute(request, f"list events for {calendar_id}")
      for item in response.get("items", []):
        event = event_from_item(item, calendar_id)
        if event is not None:
          yield event
      page_token = response.get("nextPageToken")
      if not page_token:
        return

  def insert_event(self, calendar_id: str, draft: EventDraft, token: OAuthToken) -> InsertedEvent:
    """Create an event. The draft is validated before any network call."""
    validate_draft(draft)
    token = self.ensure_fresh(token)
    service = self.service_factory(self._credentials(token))

    request = service.events().insert(calendarId=calendar_id, body=event_body(draft))
    created = self._execute(request, f"insert event into {calendar_id}")
    log.info("Created event %s in %s", created.get("id"), calendar_id)
    return InsertedEvent(id=created.get("id", ""), html_link=created.get("htmlLink", ""))


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------


def _google_rfc3339(value: datetime) -> str:
  return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_google_datetime(value: str) -> datetime:
  dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
  if dt.tzinfo is None:
    dt = dt.replace(tzinfo=timezone.utc)
  return dt


def event_from_item(item: dict[str, Any], calendar_id: str) -> CalendarEvent | None:
  """Map a Google event resource; returns None for cancelled or dateless items."""
  if item.get("status") == "cancelled":
    return None
  start = item.get("start") or {}
  end = item.get("end") or {}

  if start.get("date"):
    start_value: date | datetime = date.fromisoformat(start["date"])
    end_value: date | datetime = date.fromisoformat(end["date"]) if end.get("date") else start_value
    if end_value <= start_value:
      end_value = start_value + timedelta(days=1)
    all_day = True
  elif start.get("dateTime"):
    start_value = _parse_google_datetime(start["dateTime"])
    end_value = _parse_google_datetime(end["dateTime"]) if end.get("dateTime") else start_value
    if end_value < start_value:
      end_value = start_value
    all_day = False
  else:
    log.debug("Skipping event %s without start", item.get("id"))
    return None

  attendees = [a["email"] for a in item.get("attendees") or [] if a.get("email")]
  return CalendarEvent(
    id=item.get("id", ""),
    summary=item.get("summary") or NO_SUMMARY,
    start=start_value,
    end=end_value,
    all_day=all_day,
    calendar_id=calendar_id,
    location=item.get("location") or None,
    description=item.get("description") or None,
    attendees=attendees,
    html_link=item.get("htmlLink"),
  )


def event_body(draft: EventDraft) -> dict[str, Any]:
  """Build the Google insert body for a validated draft."""
  body: dict[str, Any] = {"summary": draft.summary.strip()}

  if draft.all_day:
    # Google's all-day end date is exclusive
    body["start"] = {"date": draft.start.isoformat()}
    body["end"] = {"date": (draft.end + timedelta(days=1)).isoformat()}
  else:
    tz_name = getattr(draft.start.tzinfo, "key", None)
    body["start"] = {"dateTime": draft.start.isoformat()}
    body["end"] = {"dateTime": draft.end.isoformat()}
    if tz_name:
      body["start"]["timeZone"] = tz_name
      body["end"]["timeZone"] = tz_name

  if draft.description:
    body["description"] = draft.description
  if draft.location:
    body["location"] = draft.location
  if draft.attendees:
    body["attendees"] = [{"email": email} for email in draft.attendees]
  return body


def _error_payload(error: HttpError) -> dict[str, Any]:
  content = error.content
  if isinstance(content, bytes):
    content = content.decode("utf-8", errors="replace")
  try:
    payload = json.loads(content or "{}")
  except ValueError:
    return {}
  inner = payload.get("error") if isinstance(payload, dict) else None
  return inner if isinstance(inner, dict) else {}


def _api_error(error: HttpError, operation: str) -> ApiError:
  """Classify an HttpError into the caldigest API error taxonomy."""
  status = int(error.resp.status)
  payload = _error_payload(error)
  reasons = {e.get("reason") for e in payload.get("errors") or [] if isinstance(e, dict)}
  detail = payload.get("message") or error.resp.reason or "unknown error"
  message = f"{operation} failed ({status}): {detail}"

  if status == 429 or (status == 403 and reasons & _RATE_LIMIT_REASONS):
    return RateLimitedError(message, status)
  if status >= 500:
    return ServerError(message, status)
  if status in (404, 410):
    return NotFoundError(message, status)
  if status in (401, 403):
    return ForbiddenError(message, status)
  return BadRequestError(message, status)
