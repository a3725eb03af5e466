"""
Calendar API layer.

Orchestrates TokenStore -> OAuthFlow -> CalendarClient -> group_events for
one request. Everything here is synchronous; the protocol handlers run it
through ``asyncio.to_thread``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, tzinfo

from ..client.google_client import CalendarClient
from ..client.oauth_flow import OAuthFlow
from ..config import AppConfig
from ..events import group_events, local_bounds
from ..state.store import TokenStore
from ..state.types import DayGroup, EventDraft, InsertedEvent, OAuthToken
from ..validation import validate_draft, validate_range

log = logging.getLogger("caldigest.api")

Authorizer = Callable[[], OAuthToken]


class CalendarApi:
  def __init__(
    self,
    config: AppConfig,
    store: TokenStore,
    client: CalendarClient,
    authorize: Authorizer,
  ) -> None:
    self.config = config
    self.store = store
    self.client = client
    self.authorize = authorize

  @property
  def timezone(self) -> tzinfo:
    return self.config.tz

  def acquire_token(self) -> OAuthToken:
    """Return a token the client can use, authorizing interactively if needed.

    A stored token that is expired but refreshable is returned as is; the
    client refreshes it before its first provider call.
    """
    token = self.store.load()
    if token is not None and (token.refresh_token or not token.is_expired()):
      return token

    if token is None:
      log.info("No stored token; starting OAuth authorization")
    else:
      log.info("Stored token expired and cannot be refreshed; starting OAuth authorization")
    token = self.authorize()
    self.store.save(token)
    return token

  def list_days(self, since: date, until: date) -> list[DayGroup]:
    validate_range(since, until)
    token = self.acquire_token()
    time_min, time_max = local_bounds(since, until, self.timezone)
    events = self.client.list_events(self.config.calendar.calendar_ids, time_min, time_max, token)
    return group_events(events, since, until, self.timezone)

  def insert_event(self, draft: EventDraft) -> InsertedEvent:
    validate_draft(draft)
    token = self.acquire_token()
    return self.client.insert_event(self.config.calendar.insert_calendar_id, draft, token)


def create_api(config: AppConfig) -> CalendarApi:
  """Wire the production collaborators from ``config``."""
  store = TokenStore(config.settings.token_path)
  client = CalendarClient(
    config.oauth.client_id,
    config.oauth.client_secret,
    store,
    max_attempts=config.settings.max_attempts,
  )
  flow = OAuthFlow(timeout=config.settings.oauth_timeout_seconds)

  def authorize() -> OAuthToken:
    return flow.run(
      config.oauth.client_id,
      config.oauth.client_secret,
      config.oauth.scopes,
      config.oauth.redirect_url,
    )

  return CalendarApi(config, store, client, authorize)
