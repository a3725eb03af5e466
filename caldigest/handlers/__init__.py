"""
Tool dispatch: routes tool names to handler functions.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from ..errors import MalformedRequestError, UnknownToolError
from ..helpers import ToolResult, log_and_format_error
from .events import insert_calendar_event, list_calendar_events

if TYPE_CHECKING:
  from ..api.calendar_api import CalendarApi

log = logging.getLogger("caldigest.handlers")


class ToolName(str, Enum):
  LIST_CALENDAR_EVENTS = "list_calendar_events"
  INSERT_CALENDAR_EVENT = "insert_calendar_event"


Handler = Callable[["CalendarApi", dict[str, Any]], Awaitable[ToolResult]]

HANDLERS: dict[ToolName, Handler] = {
  ToolName.LIST_CALENDAR_EVENTS: list_calendar_events,
  ToolName.INSERT_CALENDAR_EVENT: insert_calendar_event,
}


async def dispatch_tool(api: CalendarApi, tool_name: str, args: Any) -> ToolResult:
  """Dispatch a tool call to the appropriate handler."""
  try:
    name = ToolName(tool_name)
  except ValueError:
    return log_and_format_error("dispatch_tool", UnknownToolError(f"Unknown tool: {tool_name}"))

  if args is None:
    args = {}
  if not isinstance(args, dict):
    error = MalformedRequestError(f"Arguments for {name.value} must be an object")
    return log_and_format_error(name.value, error)

  log.debug("Dispatching %s", name.value)
  return await HANDLERS[name](api, args)
