"""
Template rendering of day groups with Jinja2.

The built-in template lives in ``caldigest/templates/``. A custom template
file can be configured with ``settings.template``; it receives:

    days      list of DayGroup (date, all_day_events, timed_events)
    timezone  the configured timezone name

and the ``hhmm`` filter, which formats a timed event's start or end as
local ``HH:MM``.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from .errors import ConfigError
from .state.types import DayGroup

_TEMPLATES_DIR = Path(__file__).parent / "templates"
DEFAULT_TEMPLATE = "digest.txt"


def _environment(directory: Path, tz: tzinfo) -> Environment:
  env = Environment(
    loader=FileSystemLoader(str(directory)),
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
    undefined=StrictUndefined,
  )

  def hhmm(value: datetime) -> str:
    return value.astimezone(tz).strftime("%H:%M")

  env.filters["hhmm"] = hhmm
  return env


def render_days(days: list[DayGroup], tz: tzinfo, template: Path | None = None) -> str:
  """Render ``days`` with the built-in template or the file at ``template``."""
  if template is None:
    directory, name = _TEMPLATES_DIR, DEFAULT_TEMPLATE
  else:
    directory, name = template.parent, template.name

  try:
    env = _environment(directory, tz)
    return env.get_template(name).render(days=days, timezone=str(tz))
  except TemplateError as e:
    raise ConfigError(f"Cannot render template {directory / name}: {e}") from e
