"""
Interactive OAuth2 authorization-code flow for Google Calendar.

The authorization URL and the code exchange come from
``google_auth_oauthlib``; the redirect is received by a single-request
loopback listener bound to the host/port of the configured redirect URL.
"""

from __future__ import annotations

import contextlib
import logging
import sys
import webbrowser
import wsgiref.simple_server
from collections.abc import Callable
from datetime import timezone
from typing import Any
from urllib.parse import parse_qs, urlparse

import requests
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from ..errors import (
  AuthDeniedError,
  AuthTimeoutError,
  ConfigError,
  PortBindError,
  TokenExchangeError,
)
from ..state.types import OAuthToken

log = logging.getLogger("caldigest.client.oauth")

AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_REDIRECT_URL = "http://127.0.0.1:9004"
DEFAULT_TIMEOUT_SECONDS = 300.0

_SUCCESS_MESSAGE = "caldigest received the authorization. You can close this tab and go back to your terminal."
_DENIED_MESSAGE = "caldigest was not authorized. You can close this tab."

FlowFactory = Callable[[str, str, list[str], str], Any]


def parse_redirect_url(redirect_url: str) -> tuple[str, int]:
  """Return the (host, port) the callback listener must bind."""
  parsed = urlparse(redirect_url)
  if parsed.scheme != "http" or not parsed.hostname:
    raise ConfigError(f"Redirect URL must be an http:// loopback URL: {redirect_url}")
  try:
    port = parsed.port
  except ValueError as e:
    raise ConfigError(f"Redirect URL has an invalid port: {redirect_url}") from e
  if port is None:
    raise ConfigError(f"Redirect URL must include an explicit port: {redirect_url}")
  return parsed.hostname, port


def google_flow(client_id: str, client_secret: str, scopes: list[str], redirect_url: str) -> Flow:
  client_config = {
    "installed": {
      "client_id": client_id,
      "client_secret": client_secret,
      "auth_uri": AUTH_URI,
      "token_uri": TOKEN_URI,
      "redirect_uris": [redirect_url],
    }
  }
  return Flow.from_client_config(
    client_config,
    scopes=scopes,
    redirect_uri=redirect_url,
    autogenerate_code_verifier=True,
  )


def present_authorization_url(url: str) -> None:
  """Print the URL to stderr and try to open it in a browser."""
  print(f"Open this URL to authorize caldigest:\n\n  {url}\n", file=sys.stderr)
  with contextlib.suppress(webbrowser.Error):
    webbrowser.open(url, new=1, autoraise=True)


class _QuietHandler(wsgiref.simple_server.WSGIRequestHandler):
  def log_message(self, format: str, *args: Any) -> None:
    log.debug("callback: %s", format % args)


class _CallbackServer(wsgiref.simple_server.WSGIServer):
  def handle_error(self, request: Any, client_address: Any) -> None:
    # An idle or broken connection ends the wait without a redirect
    log.debug("callback connection from %s failed", client_address, exc_info=True)


class CallbackListener:
  """Loopback HTTP listener that accepts exactly one request.

  ``timeout`` bounds both the wait for a connection and every read on the
  accepted socket, so a client that connects and stays silent cannot hold
  the flow open.
  """

  def __init__(self, host: str, port: int, timeout: float) -> None:
    self.params: dict[str, str] | None = None
    handler = type("_CallbackHandler", (_QuietHandler,), {"timeout": timeout})
    try:
      self._server = wsgiref.simple_server.make_server(
        host, port, self._app, server_class=_CallbackServer, handler_class=handler
      )
    except OSError as e:
      raise PortBindError(
        f"Cannot listen on {host}:{port} for the OAuth redirect ({e.strerror or e}). "
        "Free the port; the redirect URL must match the one registered with Google."
      ) from e
    self._server.timeout = timeout
    self.host = host
    self.port = self._server.server_port

  def _app(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> list[bytes]:
    query = parse_qs(environ.get("QUERY_STRING", ""))
    self.params = {key: values[0] for key, values in query.items() if values}
    message = _DENIED_MESSAGE if "error" in self.params else _SUCCESS_MESSAGE
    start_response("200 OK", [("Content-Type", "text/plain; charset=utf-8")])
    return [message.encode("utf-8")]

  def wait(self) -> dict[str, str]:
    """Block for one request or the timeout, whichever comes first."""
    self._server.handle_request()
    if self.params is None:
      raise AuthTimeoutError(
        f"No OAuth redirect received on {self.host}:{self.port} within {self._server.timeout:.0f}s"
      )
    return self.params

  def close(self) -> None:
    self._server.server_close()


class OAuthFlow:
  """Runs the browser-based authorization and returns a fresh token."""

  def __init__(
    self,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    presenter: Callable[[str], None] = present_authorization_url,
    flow_factory: FlowFactory = google_flow,
  ) -> None:
    self.timeout = timeout
    self.presenter = presenter
    self.flow_factory = flow_factory

  def run(
    self,
    client_id: str,
    client_secret: str,
    scopes: list[str],
    redirect_url: str = DEFAULT_REDIRECT_URL,
  ) -> OAuthToken:
    host, port = parse_redirect_url(redirect_url)
    flow = self.flow_factory(client_id, client_secret, scopes, redirect_url)
    auth_url, expected_state = flow.authorization_url(access_type="offline", prompt="consent")

    listener = CallbackListener(host, port, self.timeout)
    try:
      log.info("Waiting for OAuth redirect on %s:%d", host, port)
      self.presenter(auth_url)
      params = listener.wait()

      if "error" in params:
        detail = params.get("error_description") or params["error"]
        raise AuthDeniedError(f"Authorization was denied: {detail}")
      if expected_state and params.get("state") != expected_state:
        raise AuthDeniedError("OAuth redirect carried an unexpected state parameter")
      code = params.get("code")
      if not code:
        raise AuthDeniedError("OAuth redirect carried neither a code nor an error")

      try:
        flow.fetch_token(code=code)
      except (OAuth2Error, requests.RequestException, ValueError) as e:
        raise TokenExchangeError(f"Failed to exchange authorization code: {e}") from e
    finally:
      listener.close()

    token = token_from_credentials(flow.credentials, scopes)
    log.info("OAuth authorization complete (scopes: %s)", " ".join(token.scopes))
    return token


def token_from_credentials(credentials: Any, requested_scopes: list[str]) -> OAuthToken:
  """Map ``google.oauth2.credentials.Credentials`` to an ``OAuthToken``."""
  if not credentials.token:
    raise TokenExchangeError("Token endpoint returned no access token")
  expiry = credentials.expiry
  if expiry is not None and expiry.tzinfo is None:
    # google-auth keeps expiry as naive UTC
    expiry = expiry.replace(tzinfo=timezone.utc)
  scopes = getattr(credentials, "granted_scopes", None) or credentials.scopes or requested_scopes
  return OAuthToken(
    access_token=credentials.token,
    refresh_token=credentials.refresh_token,
    expires_at=expiry,
    scopes=list(scopes),
  )
