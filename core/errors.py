# core/errors.py

"""
Error taxonomy for the residence portal.

Every caller-facing error carries a human-readable message plus structured
details (failing fields, current status, rejection reason) so the UI can
render a specific message. Storage internals never reach the caller: store
failures are logged here and surfaced as a generic retryable error.
"""

from typing import List, Optional

from core.logging_config import logger


class PortalError(Exception):
    """Base class for errors reported to API callers."""

    status_code = 500
    code = "portal_error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.code, **self.details}


class ValidationError(PortalError):
    """Malformed or missing submission fields, or an invalid date range."""

    status_code = 422
    code = "validation_error"

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message, fields=fields or [])
        self.fields = fields or []


class NotFoundError(PortalError):
    status_code = 404
    code = "not_found"


class InvalidTransitionError(PortalError):
    """The requested action has no edge from the request's current status."""

    status_code = 409
    code = "invalid_transition"

    def __init__(self, message: str, current_status: str = None, action: str = None):
        super().__init__(message, current_status=current_status, action=action)
        self.current_status = current_status
        self.action = action


class UnauthorizedError(PortalError):
    """Actor role is insufficient, or a supplied code did not match."""

    status_code = 403
    code = "unauthorized"

    def __init__(self, message: str, reason: str = None):
        super().__init__(message, reason=reason)
        self.reason = reason


class StoreUnavailableError(PortalError):
    """Persistence failed. Safe to retry: guarded writes never half-apply."""

    status_code = 503
    code = "store_unavailable"

    def __init__(self, message: str = "Storage temporarily unavailable"):
        super().__init__(message, retryable=True)


class NotificationEmissionError(Exception):
    """Raised inside the notification path; logged and never surfaced."""


def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors
      • GoTrue (Auth) errors
      • Generic Python exceptions
    """

    # Case 1 - Supabase Auth / PostgREST errors expose .message
    message = getattr(error, "message", None)
    if message:
        return str(message)

    # Case 2 - errors with args (common)
    if getattr(error, "args", None):
        return str(error.args[0])

    # Case 3 - plain string fallback
    return str(error) or "Unknown Supabase error"


def store_error(error: Exception, operation: str) -> StoreUnavailableError:
    """
    Log a storage failure with its underlying detail and return the
    caller-safe error. Returns (doesn't raise) so callers can `raise ... from`.
    """
    logger.error(f"{operation}: {extract_supabase_error(error)}")
    return StoreUnavailableError()
