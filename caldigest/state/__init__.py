"""Token persistence and calendar state types."""

from __future__ import annotations

from .store import TokenStore, default_token_path
from .types import CalendarEvent, DayGroup, EventDraft, InsertedEvent, OAuthToken

__all__ = [
  "CalendarEvent",
  "DayGroup",
  "EventDraft",
  "InsertedEvent",
  "OAuthToken",
  "TokenStore",
  "default_token_path",
]
