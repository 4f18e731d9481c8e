"""
Application error taxonomy.

Every error raised deliberately by the sync engine derives from AppError so
that task boundaries and API routes can turn it into a structured result
without inspecting library-specific exception types.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """
    Base application error.

    Attributes:
        message: Human-readable description
        status_code: HTTP status code to report at the API edge
        code: Stable machine-readable error code
        details: Optional extra context (upstream body, ids, ...)
    """

    code = "APP_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Any = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for JSON responses and structured logs."""
        return {
            "error": {
                "name": type(self).__name__,
                "message": self.message,
                "code": self.code,
                "status_code": self.status_code,
                "details": self.details,
            }
        }


class ConfigError(AppError):
    """Missing or invalid settings. Fatal at startup."""

    code = "CONFIG_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, status_code=500, details=details)


class DatabaseError(AppError):
    """Local store failure. Fatal to the current task only."""

    code = "DATABASE_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, status_code=500, details=details)


class ExternalAPIError(AppError):
    """
    Upstream API failure (4xx/5xx, timeout, or retries exhausted).

    The upstream status code is kept in ``status_code``; network failures that
    never produced a response are reported as 502.
    """

    code = "EXTERNAL_API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int = 502,
        service: str = "Guesty",
        details: Any = None,
    ):
        self.service = service
        super().__init__(message, status_code=status_code, details=details)


class ValidationError(AppError):
    """Malformed upstream payload or invalid caller input."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppError):
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)
