"""
caldigest entry point.

  caldigest [--today | --this-week | --this-month | --next-week]
  caldigest --since 2025-01-01 --until 2025-01-07 [--json]
  caldigest mcp
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date

from .api.calendar_api import create_api
from .config import AppConfig, load_config
from .dates import Shortcut, resolve_shortcut
from .errors import CalDigestError, ValidationError
from .helpers import format_days
from .render import render_days
from .server import run_server
from .validation import parse_date

log = logging.getLogger("caldigest")


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="caldigest",
    description="Print your Google Calendar schedule grouped per day, or serve it over MCP.",
    formatter_class=argparse.RawDescriptionHelpFormatter,
  )
  parser.add_argument("--config", help="Path to config.json")
  parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
  parser.add_argument("--since", help="First day, yyyy-MM-dd")
  parser.add_argument("--until", help="Last day (inclusive), yyyy-MM-dd")

  shortcuts = parser.add_mutually_exclusive_group()
  for shortcut in Shortcut:
    flag = "--" + shortcut.value.replace("_", "-")
    shortcuts.add_argument(
      flag,
      dest="shortcut",
      action="store_const",
      const=shortcut,
      help=f"Use {shortcut.value.replace('_', ' ')} as the range",
    )

  parser.add_argument("--json", action="store_true", help="Print the day structure as JSON")

  subparsers = parser.add_subparsers(dest="command")
  subparsers.add_parser("mcp", help="Run the MCP server on stdio")
  return parser


def resolve_range(args: argparse.Namespace, config: AppConfig) -> tuple[date, date]:
  if args.since or args.until:
    if not (args.since and args.until):
      raise ValidationError("--since and --until must be given together")
    if args.shortcut:
      raise ValidationError("--since/--until cannot be combined with a range shortcut")
    return parse_date(args.since, "since"), parse_date(args.until, "until")
  return resolve_shortcut(args.shortcut or Shortcut.TODAY, config.tz)


def run_once(args: argparse.Namespace, config: AppConfig) -> None:
  since, until = resolve_range(args, config)
  api = create_api(config)
  days = api.list_days(since, until)
  if args.json:
    print(json.dumps(format_days(days, config.tz), ensure_ascii=False, indent=2))
  else:
    sys.stdout.write(render_days(days, config.tz, config.settings.template))


def main(argv: list[str] | None = None) -> int:
  args = build_parser().parse_args(argv)

  logging.basicConfig(
    level=logging.DEBUG if args.verbose else logging.INFO,
    format="[%(name)s] %(levelname)s: %(message)s",
    stream=sys.stderr,
  )

  try:
    config = load_config(args.config)
    if args.command == "mcp":
      asyncio.run(run_server(config))
    else:
      run_once(args, config)
  except CalDigestError as e:
    print(f"caldigest: {e.kind}: {e.message}", file=sys.stderr)
    return 1
  except KeyboardInterrupt:
    log.info("Interrupted")
    return 130
  return 0


if __name__ == "__main__":
  sys.exit(main())
