"""
Error taxonomy shared by every caldigest component.

Each error carries a ``category`` and a ``kind``; the protocol layer turns
both into the ``error`` object of a structured tool response.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
  AUTH = "AUTH"
  API = "API"
  VALIDATION = "VALIDATION"
  PROTOCOL = "PROTOCOL"
  STORAGE = "STORAGE"
  CONFIG = "CONFIG"


class CalDigestError(Exception):
  """Base class for all errors raised by caldigest."""

  category: ErrorCategory = ErrorCategory.API
  kind: str = "Error"

  def __init__(self, message: str = "") -> None:
    super().__init__(message or self.kind)
    self.message = message or self.kind


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class AuthError(CalDigestError):
  category = ErrorCategory.AUTH
  kind = "AuthError"


class PortBindError(AuthError):
  kind = "PortBindError"


class AuthDeniedError(AuthError):
  kind = "AuthDeniedError"


class AuthTimeoutError(AuthError):
  kind = "AuthTimeoutError"


class TokenExchangeError(AuthError):
  kind = "TokenExchangeError"


class TokenRefreshError(AuthError):
  kind = "TokenRefreshError"


# ---------------------------------------------------------------------------
# Provider API
# ---------------------------------------------------------------------------


class ApiError(CalDigestError):
  category = ErrorCategory.API
  kind = "ApiError"
  retryable = False

  def __init__(self, message: str = "", status_code: int | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code


class RateLimitedError(ApiError):
  kind = "RateLimited"
  retryable = True


class ServerError(ApiError):
  kind = "ServerError"
  retryable = True


class NotFoundError(ApiError):
  kind = "NotFound"


class ForbiddenError(ApiError):
  kind = "Forbidden"


class BadRequestError(ApiError):
  kind = "BadRequest"


class TransportError(ApiError):
  kind = "TransportError"


# ---------------------------------------------------------------------------
# Validation / protocol
# ---------------------------------------------------------------------------


class ValidationError(CalDigestError):
  """Raised when an event draft or date range cannot succeed."""

  category = ErrorCategory.VALIDATION
  kind = "ValidationError"


class ProtocolError(CalDigestError):
  category = ErrorCategory.PROTOCOL
  kind = "ProtocolError"


class MalformedRequestError(ProtocolError):
  kind = "MalformedRequest"


class UnknownToolError(ProtocolError):
  kind = "UnknownTool"


class SchemaViolationError(ProtocolError):
  kind = "SchemaViolation"


# ---------------------------------------------------------------------------
# Storage / config
# ---------------------------------------------------------------------------


class StorageError(CalDigestError):
  category = ErrorCategory.STORAGE
  kind = "StorageError"


class StorageIOError(StorageError):
  kind = "IOError"


class TokenDecodeError(StorageError):
  kind = "TokenDecodeError"


class ConfigError(CalDigestError):
  category = ErrorCategory.CONFIG
  kind = "ConfigError"
