"""
MCP server: tools/list and tools/call over stdio.

Tool calls are dispatched one at a time. A failed call returns an error
result for that call and the server keeps serving.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool

from .api.calendar_api import create_api
from .handlers import dispatch_tool
from .tools import ALL_TOOLS

if TYPE_CHECKING:
  from .api.calendar_api import CalendarApi
  from .config import AppConfig

log = logging.getLogger("caldigest.server")

SERVER_NAME = "caldigest"


class ToolCallFailed(Exception):
  """Carries the JSON error body of a failed call to the MCP SDK.

  The SDK turns any exception from a call_tool handler into an ``isError``
  result whose text is ``str(exc)``.
  """


def create_mcp_server(api: CalendarApi) -> Server:
  """Create and configure the MCP server with all tool handlers."""
  server = Server(SERVER_NAME)
  dispatch_lock = asyncio.Lock()

  @server.list_tools()
  async def list_tools() -> list[Tool]:
    return ALL_TOOLS

  # Arguments are checked by the handlers so schema failures come back as
  # SchemaViolation errors instead of the SDK's generic message.
  @server.call_tool(validate_input=False)
  async def call_tool(name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
    async with dispatch_lock:
      result = await dispatch_tool(api, name, arguments)
    if result.is_error:
      raise ToolCallFailed(result.content)
    return result.structured or {}

  return server


async def run_server(config: AppConfig) -> None:
  """Run the MCP server on stdio until the client closes the stream."""
  server = create_mcp_server(create_api(config))
  log.info("Serving %d tools on stdio", len(ALL_TOOLS))
  async with stdio_server() as (read_stream, write_stream):
    await server.run(read_stream, write_stream, server.create_initialization_options())
  log.info("Client closed the stream; shutting down")
