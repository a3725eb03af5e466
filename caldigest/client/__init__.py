"""Google Calendar client and OAuth authorization flow."""

from __future__ import annotations

from .google_client import SCOPES, CalendarClient
from .oauth_flow import DEFAULT_REDIRECT_URL, OAuthFlow

__all__ = ["DEFAULT_REDIRECT_URL", "SCOPES", "CalendarClient", "OAuthFlow"]
