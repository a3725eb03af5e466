"""
On-disk store for the OAuth token record.

Every ``load`` is a fresh read; nothing is cached between calls. ``save``
writes a sibling temp file and promotes it with ``os.replace`` so an
interrupted write leaves the previous token intact.
"""

from __future__ import annotations

import contextlib
import logging
import os
import sys
import tempfile
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from ..errors import StorageIOError, TokenDecodeError
from .types import OAuthToken

log = logging.getLogger("caldigest.state.store")

TOKEN_FILE_NAME = "oauth"
APP_DIR_NAME = "caldigest"


def user_data_dir() -> Path:
  """Per-user data directory for the current platform."""
  if sys.platform == "win32":
    base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
    if base:
      return Path(base)
    return Path.home() / "AppData" / "Local"
  if sys.platform == "darwin":
    return Path.home() / "Library" / "Application Support"
  xdg = os.environ.get("XDG_DATA_HOME")
  if xdg:
    return Path(xdg)
  return Path.home() / ".local" / "share"


def default_token_path() -> Path:
  return user_data_dir() / APP_DIR_NAME / TOKEN_FILE_NAME


class TokenStore:
  """Loads and atomically saves one ``OAuthToken`` at ``path``."""

  def __init__(self, path: Path | str | None = None) -> None:
    self.path = Path(path).expanduser() if path else default_token_path()

  def load(self) -> OAuthToken | None:
    """Return the stored token, or ``None`` when no token has been saved.

    Raises ``StorageIOError`` when the file exists but cannot be read and
    ``TokenDecodeError`` when its content is not a valid token record.
    """
    try:
      raw = self.path.read_bytes()
    except FileNotFoundError:
      return None
    except OSError as e:
      raise StorageIOError(f"Cannot read token file {self.path}: {e}") from e

    try:
      return OAuthToken.model_validate_json(raw)
    except PydanticValidationError as e:
      raise TokenDecodeError(
        f"Token file {self.path} is corrupt; delete it to re-authorize ({e.error_count()} errors)"
      ) from e
    except UnicodeDecodeError as e:
      raise TokenDecodeError(f"Token file {self.path} is not UTF-8; delete it to re-authorize") from e

  def save(self, token: OAuthToken) -> None:
    directory = self.path.parent
    try:
      directory.mkdir(parents=True, exist_ok=True)
      fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}-", suffix=".tmp")
    except OSError as e:
      raise StorageIOError(f"Cannot prepare token directory {directory}: {e}") from e

    try:
      with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(token.model_dump_json(indent=2))
        f.flush()
        os.fsync(f.fileno())
      os.chmod(tmp_name, 0o600)
      os.replace(tmp_name, self.path)
    except OSError as e:
      with contextlib.suppress(OSError):
        os.unlink(tmp_name)
      raise StorageIOError(f"Cannot write token file {self.path}: {e}") from e

    log.info("Saved OAuth token to %s", self.path)
