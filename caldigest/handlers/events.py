"""
Calendar event tool handlers.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from ..errors import SchemaViolationError, ValidationError
from ..helpers import ToolResult, format_days, format_inserted, log_and_format_error
from ..validation import (
  build_draft,
  opt_bool,
  opt_string,
  opt_string_list,
  parse_date,
  parse_moment,
)

if TYPE_CHECKING:
  from ..api.calendar_api import CalendarApi


def _require_present(args: dict[str, Any], key: str) -> Any:
  if args.get(key) is None:
    raise SchemaViolationError(f"Missing required parameter: {key}")
  return args[key]


async def list_calendar_events(api: CalendarApi, args: dict[str, Any]) -> ToolResult:
  try:
    try:
      since = parse_date(_require_present(args, "since"), "since")
      until = parse_date(_require_present(args, "until"), "until")
    except ValidationError as e:
      raise SchemaViolationError(e.message) from e

    days = await asyncio.to_thread(api.list_days, since, until)
    return ToolResult.ok(format_days(days, api.timezone))
  except Exception as e:
    return log_and_format_error("list_calendar_events", e)


async def insert_calendar_event(api: CalendarApi, args: dict[str, Any]) -> ToolResult:
  try:
    try:
      summary = _require_present(args, "summary")
      if not isinstance(summary, str):
        raise SchemaViolationError("Invalid parameter summary: expected a string")
      start = _require_present(args, "start")
      end = _require_present(args, "end")
      parse_moment(start, "start")
      parse_moment(end, "end")
      all_day = opt_bool(args, "allDay")
      location = opt_string(args, "location")
      description = opt_string(args, "description")
      attendees = opt_string_list(args, "attendees")
    except ValidationError as e:
      raise SchemaViolationError(e.message) from e

    draft = build_draft(
      summary,
      start,
      end,
      api.timezone,
      all_day=all_day,
      location=location,
      description=description,
      attendees=attendees,
    )
    inserted = await asyncio.to_thread(api.insert_event, draft)
    return ToolResult.ok(format_inserted(inserted))
  except Exception as e:
    return log_and_format_error("insert_calendar_event", e)
