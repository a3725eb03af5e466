"""Request orchestration."""

from __future__ import annotations

from .calendar_api import CalendarApi, create_api

__all__ = ["CalendarApi", "create_api"]
