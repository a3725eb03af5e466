"""
Calendar state types.

``OAuthToken`` is persisted on disk and therefore a pydantic model; the
per-request values (events, day groups, drafts) are plain dataclasses that
never leave the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from pydantic import BaseModel, Field, field_validator


class OAuthToken(BaseModel):
  """Access/refresh token pair with its expiry and granted scopes."""

  access_token: str
  refresh_token: str | None = None
  expires_at: datetime | None = None
  scopes: list[str] = Field(default_factory=list)

  @field_validator("expires_at")
  @classmethod
  def _as_utc(cls, value: datetime | None) -> datetime | None:
    if value is None:
      return None
    if value.tzinfo is None:
      return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

  def is_expired(self, now: datetime | None = None) -> bool:
    return self.expires_within(timedelta(0), now)

  def expires_within(self, margin: timedelta, now: datetime | None = None) -> bool:
    """True when the token expires within ``margin`` of ``now``.

    A token without an expiry is treated as never expiring.
    """
    if self.expires_at is None:
      return False
    now = now or datetime.now(timezone.utc)
    return self.expires_at <= now + margin


@dataclass
class CalendarEvent:
  """A provider event mapped to caldigest's own shape.

  All-day events carry ``date`` values with Google's exclusive ``end``;
  timed events carry timezone-aware ``datetime`` values.
  """

  id: str
  summary: str
  start: date | datetime
  end: date | datetime
  all_day: bool
  calendar_id: str
  location: str | None = None
  description: str | None = None
  attendees: list[str] = field(default_factory=list)
  html_link: str | None = None

  def __post_init__(self) -> None:
    if self.all_day:
      if isinstance(self.start, datetime) or isinstance(self.end, datetime):
        raise ValueError("all-day events carry date-only start/end")
    else:
      if not isinstance(self.start, datetime) or not isinstance(self.end, datetime):
        raise ValueError("timed events carry date-time start/end")
      if self.end < self.start:
        raise ValueError("event end is earlier than its start")


@dataclass
class DayGroup:
  """Events attributed to one local calendar date."""

  date: date
  all_day_events: list[CalendarEvent] = field(default_factory=list)
  timed_events: list[CalendarEvent] = field(default_factory=list)


@dataclass
class EventDraft:
  """An event to be inserted.

  For all-day drafts ``end`` is the inclusive last day.
  """

  summary: str
  start: date | datetime
  end: date | datetime
  all_day: bool = False
  location: str | None = None
  description: str | None = None
  attendees: list[str] = field(default_factory=list)


@dataclass
class InsertedEvent:
  id: str
  html_link: str
