"""
Input validation helpers.
"""

from __future__ import annotations

import re
from datetime import date, datetime, tzinfo
from typing import Any

from .errors import ValidationError
from .state.types import EventDraft

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M"

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_DATETIME_RE = re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def opt_string(args: dict, key: str) -> str | None:
  """Optional text field; blank text is treated as absent."""
  value = args.get(key)
  if value is not None and not isinstance(value, str):
    raise ValidationError(f"Invalid parameter {key}: expected a string")
  return (value or "").strip() or None


def opt_bool(args: dict, key: str) -> bool | None:
  """Optional flag. Accepts JSON booleans and the strings "true"/"false"."""
  value = args.get(key)
  if value is None or isinstance(value, bool):
    return value
  flag = {"true": True, "false": False}.get(value.lower()) if isinstance(value, str) else None
  if flag is None:
    raise ValidationError(f"Invalid parameter {key}: expected a boolean")
  return flag


def opt_string_list(args: dict, key: str) -> list[str]:
  value = args.get(key)
  if value is None:
    return []
  if not isinstance(value, list) or any(not isinstance(item, str) for item in value):
    raise ValidationError(f"Invalid parameter {key}: expected a list of strings")
  return [item.strip() for item in value if item.strip()]


def parse_date(value: Any, key: str = "date") -> date:
  """Parse a ``yyyy-MM-dd`` value."""
  if not isinstance(value, str) or not _DATE_RE.fullmatch(value.strip()):
    raise ValidationError(f"Invalid {key}: expected yyyy-MM-dd, got {value!r}")
  try:
    return datetime.strptime(value.strip(), DATE_FORMAT).date()
  except ValueError as e:
    raise ValidationError(f"Invalid {key}: {e}") from e


def parse_moment(value: Any, key: str) -> date | datetime:
  """Parse ``yyyy-MM-dd`` into a date or ``yyyy-MM-dd HH:mm`` into a naive datetime."""
  if isinstance(value, str) and _DATETIME_RE.fullmatch(value.strip()):
    try:
      return datetime.strptime(value.strip(), DATETIME_FORMAT)
    except ValueError as e:
      raise ValidationError(f"Invalid {key}: {e}") from e
  if isinstance(value, str) and _DATE_RE.fullmatch(value.strip()):
    return parse_date(value, key)
  raise ValidationError(f"Invalid {key}: expected yyyy-MM-dd or yyyy-MM-dd HH:mm, got {value!r}")


def validate_range(since: date, until: date) -> None:
  if since > until:
    raise ValidationError(f"since ({since}) is after until ({until})")


def build_draft(
  summary: str,
  start: str,
  end: str,
  tz: tzinfo,
  all_day: bool | None = None,
  location: str | None = None,
  description: str | None = None,
  attendees: list[str] | None = None,
) -> EventDraft:
  """Build a validated ``EventDraft`` from tool-style string input.

  ``all_day`` defaults to whether both values are date-only. Timed values
  are interpreted in ``tz``.
  """
  start_value = parse_moment(start, "start")
  end_value = parse_moment(end, "end")
  date_only = not isinstance(start_value, datetime) and not isinstance(end_value, datetime)
  if all_day is None:
    all_day = date_only

  if all_day:
    start_value = start_value.date() if isinstance(start_value, datetime) else start_value
    end_value = end_value.date() if isinstance(end_value, datetime) else end_value
  else:
    if not isinstance(start_value, datetime) or not isinstance(end_value, datetime):
      raise ValidationError("Timed events need start and end as yyyy-MM-dd HH:mm")
    start_value = start_value.replace(tzinfo=tz)
    end_value = end_value.replace(tzinfo=tz)

  draft = EventDraft(
    summary=summary,
    start=start_value,
    end=end_value,
    all_day=all_day,
    location=location,
    description=description,
    attendees=list(attendees or []),
  )
  validate_draft(draft)
  return draft


def validate_draft(draft: EventDraft) -> None:
  """Reject drafts the provider could never accept."""
  if not draft.summary or not draft.summary.strip():
    raise ValidationError("Event summary must not be empty")

  if draft.all_day:
    if isinstance(draft.start, datetime) or isinstance(draft.end, datetime):
      raise ValidationError("All-day events take dates without a time of day")
  else:
    if not isinstance(draft.start, datetime) or not isinstance(draft.end, datetime):
      raise ValidationError("Timed events need a time of day on start and end")
    if draft.start.tzinfo is None or draft.end.tzinfo is None:
      raise ValidationError("Timed events need timezone-aware start and end")

  if draft.end < draft.start:
    raise ValidationError(f"Event end ({draft.end}) is before its start ({draft.start})")

  for address in draft.attendees:
    if not _EMAIL_RE.match(address):
      raise ValidationError(f"Invalid attendee address: {address}")
