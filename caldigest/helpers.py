"""
Shared formatting and error handling helpers.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

from .errors import CalDigestError, ErrorCategory
from .state.types import CalendarEvent, DayGroup, InsertedEvent

log = logging.getLogger("caldigest.helpers")


# ---------------------------------------------------------------------------
# Tool result
# ---------------------------------------------------------------------------


@dataclass
class ToolResult:
  content: str
  is_error: bool = False
  structured: dict[str, Any] | None = None

  @classmethod
  def ok(cls, structured: dict[str, Any]) -> ToolResult:
    return cls(content=json.dumps(structured, ensure_ascii=False), structured=structured)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _with_optional(out: dict[str, Any], event: CalendarEvent) -> dict[str, Any]:
  if event.location:
    out["location"] = event.location
  if event.description:
    out["description"] = event.description
  out["attendees"] = list(event.attendees)
  if event.html_link:
    out["htmlLink"] = event.html_link
  return out


def format_all_day_event(event: CalendarEvent) -> dict[str, Any]:
  return _with_optional({"summary": event.summary}, event)


def format_timed_event(event: CalendarEvent, tz: tzinfo) -> dict[str, Any]:
  """Timed event with local ``HH:MM`` start and end."""
  out = {
    "summary": event.summary,
    "start": event.start.astimezone(tz).strftime("%H:%M"),
    "end": event.end.astimezone(tz).strftime("%H:%M"),
  }
  return _with_optional(out, event)


def format_day(day: DayGroup, tz: tzinfo) -> dict[str, Any]:
  return {
    "date": day.date.isoformat(),
    "all_day_events": [format_all_day_event(e) for e in day.all_day_events],
    "timed_events": [format_timed_event(e, tz) for e in day.timed_events],
  }


def format_days(days: list[DayGroup], tz: tzinfo) -> dict[str, Any]:
  return {"days": [format_day(day, tz) for day in days]}


def format_inserted(event: InsertedEvent) -> dict[str, Any]:
  return {"id": event.id, "htmlLink": event.html_link}


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


def error_code(function_name: str, category: ErrorCategory | str | None) -> str:
  prefix = category.value if isinstance(category, ErrorCategory) else (category or "GEN")
  hash_val = sum(ord(c) for c in function_name) % 1000
  return f"{prefix}-ERR-{hash_val:03d}"


def log_and_format_error(function_name: str, error: Exception) -> ToolResult:
  """Log ``error`` and turn it into a structured error result.

  caldigest errors keep their kind and message; anything else is reported
  as an ``InternalError`` with only the error code exposed.
  """
  if isinstance(error, CalDigestError):
    code = error_code(function_name, error.category)
    log.error("[MCP] Error in %s - Code: %s - %s: %s", function_name, code, error.kind, error.message)
    payload = {
      "kind": error.kind,
      "category": error.category.value,
      "message": error.message,
      "code": code,
    }
  else:
    code = error_code(function_name, None)
    log.exception("[MCP] Error in %s - Code: %s - %s", function_name, code, error)
    payload = {
      "kind": "InternalError",
      "category": "INTERNAL",
      "message": f"An error occurred (code: {code}). Check logs for details.",
      "code": code,
    }

  body = {"error": payload}
  return ToolResult(content=json.dumps(body, ensure_ascii=False), is_error=True, structured=body)
