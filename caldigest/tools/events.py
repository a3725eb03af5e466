"""
Calendar event tools (2 tools).
"""

from __future__ import annotations

from mcp.types import Tool

_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
_MOMENT_PATTERN = r"^\d{4}-\d{2}-\d{2}( \d{2}:\d{2})?$"

_EVENT_FIELDS = {
  "summary": {"type": "string"},
  "location": {"type": "string"},
  "description": {"type": "string"},
  "attendees": {"type": "array", "items": {"type": "string"}},
  "htmlLink": {"type": "string"},
}

event_tools: list[Tool] = [
  Tool(
    name="list_calendar_events",
    description=(
      "List events from the configured calendars between two dates (inclusive), "
      "grouped per day in the configured timezone. Every date in the range is "
      "present, days without events have empty lists."
    ),
    inputSchema={
      "type": "object",
      "properties": {
        "since": {
          "type": "string",
          "description": "First day, yyyy-MM-dd",
          "pattern": _DATE_PATTERN,
        },
        "until": {
          "type": "string",
          "description": "Last day (inclusive), yyyy-MM-dd",
          "pattern": _DATE_PATTERN,
        },
      },
      "required": ["since", "until"],
    },
    outputSchema={
      "type": "object",
      "properties": {
        "days": {
          "type": "array",
          "items": {
            "type": "object",
            "properties": {
              "date": {"type": "string"},
              "all_day_events": {
                "type": "array",
                "items": {
                  "type": "object",
                  "properties": _EVENT_FIELDS,
                  "required": ["summary", "attendees"],
                },
              },
              "timed_events": {
                "type": "array",
                "items": {
                  "type": "object",
                  "properties": {
                    **_EVENT_FIELDS,
                    "start": {"type": "string", "description": "Local start time, HH:MM"},
                    "end": {"type": "string", "description": "Local end time, HH:MM"},
                  },
                  "required": ["summary", "start", "end", "attendees"],
                },
              },
            },
            "required": ["date", "all_day_events", "timed_events"],
          },
        },
      },
      "required": ["days"],
    },
  ),
  Tool(
    name="insert_calendar_event",
    description=(
      "Create an event in the configured calendar. Times are interpreted in the "
      "configured timezone. For all-day events the end date is the last day of the event."
    ),
    inputSchema={
      "type": "object",
      "properties": {
        "summary": {"type": "string", "description": "Event title"},
        "start": {
          "type": "string",
          "description": "Start, yyyy-MM-dd HH:mm (or yyyy-MM-dd for all-day events)",
          "pattern": _MOMENT_PATTERN,
        },
        "end": {
          "type": "string",
          "description": "End, yyyy-MM-dd HH:mm (or yyyy-MM-dd for all-day events)",
          "pattern": _MOMENT_PATTERN,
        },
        "allDay": {
          "type": "boolean",
          "description": "All-day event. Defaults to true when start and end are both dates",
        },
        "location": {"type": "string", "description": "Event location"},
        "description": {"type": "string", "description": "Event description"},
        "attendees": {
          "type": "array",
          "items": {"type": "string"},
          "description": "Attendee email addresses",
        },
      },
      "required": ["summary", "start", "end"],
    },
    outputSchema={
      "type": "object",
      "properties": {
        "id": {"type": "string"},
        "htmlLink": {"type": "string"},
      },
      "required": ["id", "htmlLink"],
    },
  ),
]
