"""
Date range shortcuts for the one-shot CLI.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum


class Shortcut(str, Enum):
  TODAY = "today"
  THIS_WEEK = "this_week"
  THIS_MONTH = "this_month"
  NEXT_WEEK = "next_week"


def local_today(tz: tzinfo, now: datetime | None = None) -> date:
  now = now or datetime.now(timezone.utc)
  return now.astimezone(tz).date()


def week_bounds(day: date) -> tuple[date, date]:
  """Monday and Sunday of the week containing ``day``."""
  monday = day - timedelta(days=day.weekday())
  return monday, monday + timedelta(days=6)


def month_bounds(day: date) -> tuple[date, date]:
  last = calendar.monthrange(day.year, day.month)[1]
  return day.replace(day=1), day.replace(day=last)


def resolve_shortcut(
  shortcut: Shortcut | str,
  tz: tzinfo,
  now: datetime | None = None,
) -> tuple[date, date]:
  """Resolve a shortcut to an inclusive (since, until) range in ``tz``."""
  today = local_today(tz, now)
  shortcut = Shortcut(shortcut)
  if shortcut is Shortcut.TODAY:
    return today, today
  if shortcut is Shortcut.THIS_WEEK:
    return week_bounds(today)
  if shortcut is Shortcut.THIS_MONTH:
    return month_bounds(today)
  return week_bounds(today + timedelta(days=7))
