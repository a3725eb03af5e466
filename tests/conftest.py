"""Shared fixtures: token store, tokens and a stubbed Calendar transport."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo

import pytest
from googleapiclient.discovery import build
from googleapiclient.http import HttpMockSequence

from caldigest.client.google_client import SCOPES, CalendarClient
from caldigest.state.store import TokenStore
from caldigest.state.types import OAuthToken

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class CountingHttp(HttpMockSequence):
  """HttpMockSequence that records every request it serves."""

  def __init__(self, iterable: list[tuple[dict[str, str], Any]]) -> None:
    super().__init__(iterable)
    self.requests: list[tuple[str, str, Any]] = []

  def request(self, uri, method="GET", body=None, headers=None, redirections=1, connection_type=None):
    self.requests.append((uri, method, body))
    return super().request(uri, method, body, headers, redirections, connection_type)


def ok(payload: dict[str, Any]) -> tuple[dict[str, str], str]:
  return {"status": "200"}, json.dumps(payload)


def error(status: int, reason: str = "", message: str = "error") -> tuple[dict[str, str], str]:
  errors = [{"reason": reason, "message": message}] if reason else []
  body = {"error": {"code": status, "message": message, "errors": errors}}
  return {"status": str(status)}, json.dumps(body)


def timed_item(event_id: str, summary: str | None, start: str, end: str, **extra: Any) -> dict[str, Any]:
  item = {"id": event_id, "start": {"dateTime": start}, "end": {"dateTime": end}, **extra}
  if summary is not None:
    item["summary"] = summary
  return item


def all_day_item(event_id: str, summary: str, start: str, end: str, **extra: Any) -> dict[str, Any]:
  return {"id": event_id, "summary": summary, "start": {"date": start}, "end": {"date": end}, **extra}


@pytest.fixture
def utc() -> ZoneInfo:
  return ZoneInfo("UTC")


@pytest.fixture
def tokyo() -> ZoneInfo:
  return ZoneInfo("Asia/Tokyo")


@pytest.fixture
def token_store(tmp_path) -> TokenStore:
  return TokenStore(tmp_path / "caldigest" / "oauth")


@pytest.fixture
def make_token() -> Callable[..., OAuthToken]:
  def _make(expires_in: timedelta = timedelta(hours=1), refresh_token: str | None = "1//refresh") -> OAuthToken:
    return OAuthToken(
      access_token="ya29.access",
      refresh_token=refresh_token,
      expires_at=NOW + expires_in,
      scopes=list(SCOPES),
    )

  return _make


@pytest.fixture
def sleeps() -> list[float]:
  return []


@pytest.fixture
def make_client(token_store, sleeps) -> Callable[..., tuple[CalendarClient, CountingHttp]]:
  """Build a CalendarClient whose provider answers with ``responses`` in order."""

  def _make(responses: list[tuple[dict[str, str], Any]], **kwargs: Any) -> tuple[CalendarClient, CountingHttp]:
    http = CountingHttp(responses)

    def service_factory(credentials):
      return build("calendar", "v3", http=http, cache_discovery=False, static_discovery=True)

    kwargs.setdefault("sleep", sleeps.append)
    kwargs.setdefault("clock", lambda: NOW)
    client = CalendarClient("client-id", "client-secret", token_store, service_factory=service_factory, **kwargs)
    return client, http

  return _make
