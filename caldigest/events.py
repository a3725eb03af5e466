"""
Day grouping of calendar events.

Turns the flat, multi-calendar event list into one ``DayGroup`` per local
date in the requested range, empty days included.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from .state.types import CalendarEvent, DayGroup
from .validation import validate_range


def date_range(since: date, until: date) -> Iterator[date]:
  """Yield every date from ``since`` to ``until`` inclusive."""
  current = since
  while current <= until:
    yield current
    current += timedelta(days=1)


def local_bounds(since: date, until: date, tz: tzinfo) -> tuple[datetime, datetime]:
  """UTC instants of local midnight on ``since`` and on the day after ``until``."""
  time_min = datetime.combine(since, time.min, tzinfo=tz)
  time_max = datetime.combine(until + timedelta(days=1), time.min, tzinfo=tz)
  return time_min.astimezone(timezone.utc), time_max.astimezone(timezone.utc)


def group_events(
  events: Iterable[CalendarEvent],
  since: date,
  until: date,
  tz: tzinfo,
) -> list[DayGroup]:
  """Group events into contiguous per-day buckets in ``tz``.

  Timed events land on the local date of their start only and are sorted
  by start, then summary. All-day events land on every date they cover
  within the range and keep the order they were given in. Anything that
  falls outside [since, until] is dropped.
  """
  validate_range(since, until)
  days = {day: DayGroup(date=day) for day in date_range(since, until)}

  for event in events:
    if event.all_day:
      first = max(event.start, since)
      last = min(event.end - timedelta(days=1), until)
      for day in date_range(first, last):
        days[day].all_day_events.append(event)
    else:
      local_day = event.start.astimezone(tz).date()
      group = days.get(local_day)
      if group is not None:
        group.timed_events.append(event)

  for group in days.values():
    group.timed_events.sort(key=lambda e: (e.start, e.summary))
  return list(days.values())
