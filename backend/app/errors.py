"""
Application error taxonomy.

Every failure a handler can signal maps to one HTTP status. The handlers
registered in ``app.main`` turn these into the JSON envelope
``{"success": false, "error": "<message>"}``.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base error carrying an HTTP status code."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        extra: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}
        self.headers = headers


class ValidationError(AppError):
    """Missing or malformed input."""
    status_code = 400


class AuthenticationError(AppError):
    """Missing, invalid or expired bearer token."""
    status_code = 401


class AuthorizationError(AppError):
    """Authenticated, but the role or ownership does not allow the action."""
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """Duplicate email, a second active session, an illegal state change."""
    status_code = 409


class PayloadTooLargeError(AppError):
    status_code = 413


class RangeNotSatisfiableError(AppError):
    status_code = 416


class InternalError(AppError):
    status_code = 500
