"""
caldigest: Google Calendar schedule digests for the terminal and for MCP hosts.
"""

from __future__ import annotations

__version__ = "0.1.0"
