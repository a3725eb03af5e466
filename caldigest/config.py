"""
Configuration file loading.

The config is a JSON document validated once at startup:

  {
    "oauth": {"client_id": "...", "client_secret": "...", "redirect_url": "http://127.0.0.1:9004"},
    "calendar": {"calendar_ids": ["primary"], "insert_calendar_id": "primary"},
    "settings": {"timezone": "Asia/Tokyo"}
  }

``GOOGLE_CLIENT_ID`` / ``GOOGLE_CLIENT_SECRET`` override the file's
OAuth credentials.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .client.google_client import MAX_ATTEMPTS, SCOPES
from .client.oauth_flow import DEFAULT_REDIRECT_URL, DEFAULT_TIMEOUT_SECONDS, parse_redirect_url
from .errors import ConfigError
from .state.store import default_token_path

log = logging.getLogger("caldigest.config")

CONFIG_ENV_VAR = "CALDIGEST_CONFIG"


class OAuthSettings(BaseModel):
  model_config = ConfigDict(extra="forbid")

  client_id: str = ""
  client_secret: str = ""
  redirect_url: str = DEFAULT_REDIRECT_URL
  scopes: list[str] = Field(default_factory=lambda: list(SCOPES))

  @field_validator("redirect_url")
  @classmethod
  def _check_redirect(cls, value: str) -> str:
    try:
      parse_redirect_url(value)
    except ConfigError as e:
      raise ValueError(e.message) from e
    return value


class CalendarSettings(BaseModel):
  model_config = ConfigDict(extra="forbid")

  calendar_ids: list[str] = Field(default_factory=lambda: ["primary"], min_length=1)
  insert_calendar_id: str = "primary"


class Settings(BaseModel):
  model_config = ConfigDict(extra="forbid")

  timezone: str = "UTC"
  token_path: Path = Field(default_factory=default_token_path)
  oauth_timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
  max_attempts: int = Field(default=MAX_ATTEMPTS, ge=1)
  template: Path | None = None

  @field_validator("timezone")
  @classmethod
  def _check_timezone(cls, value: str) -> str:
    try:
      ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
      raise ValueError(f"unknown timezone {value!r}") from e
    return value

  @field_validator("token_path", "template")
  @classmethod
  def _expand_user(cls, value: Path | None) -> Path | None:
    return value.expanduser() if value is not None else None


class AppConfig(BaseModel):
  model_config = ConfigDict(extra="forbid")

  oauth: OAuthSettings = Field(default_factory=OAuthSettings)
  calendar: CalendarSettings = Field(default_factory=CalendarSettings)
  settings: Settings = Field(default_factory=Settings)

  @property
  def tz(self) -> ZoneInfo:
    return ZoneInfo(self.settings.timezone)


def default_config_path() -> Path:
  base = os.environ.get("XDG_CONFIG_HOME")
  root = Path(base) if base else Path.home() / ".config"
  return root / "caldigest" / "config.json"


def resolve_config_path(path: Path | str | None = None) -> Path:
  if path:
    return Path(path).expanduser()
  env_path = os.environ.get(CONFIG_ENV_VAR)
  if env_path:
    return Path(env_path).expanduser()
  return default_config_path()


def load_config(path: Path | str | None = None) -> AppConfig:
  """Read, validate and return the configuration."""
  config_path = resolve_config_path(path)
  try:
    data = json.loads(config_path.read_text(encoding="utf-8"))
  except FileNotFoundError as e:
    raise ConfigError(f"Config file not found: {config_path}") from e
  except OSError as e:
    raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
  except json.JSONDecodeError as e:
    raise ConfigError(f"Config file {config_path} is not valid JSON: {e}") from e

  oauth = data.setdefault("oauth", {}) if isinstance(data, dict) else None
  if isinstance(oauth, dict):
    client_id = os.environ.get("GOOGLE_CLIENT_ID")
    client_secret = os.environ.get("GOOGLE_CLIENT_SECRET")
    if client_id:
      oauth["client_id"] = client_id
    if client_secret:
      oauth["client_secret"] = client_secret

  try:
    config = AppConfig.model_validate(data)
  except PydanticValidationError as e:
    raise ConfigError(f"Invalid config file {config_path}:\n{e}") from e

  if not config.oauth.client_id or not config.oauth.client_secret:
    raise ConfigError(
      "OAuth client_id/client_secret missing; set them in the config file "
      "or via GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET"
    )
  log.debug("Loaded config from %s", config_path)
  return config
