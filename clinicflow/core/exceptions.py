"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        """Initialize exception with message, status code and optional details."""
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found", details: Any = None):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, details=details)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request", details: Any = None):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400, details=details)


class ValidationException(BadRequestException):
    """Input failed a domain rule (bad range, series numbering, lifecycle)."""

    def __init__(self, message: str = "Validation error", field: str | None = None):
        """Initialize with 400 status code and per-field details."""
        details = [{"field": field, "message": message}] if field else None
        super().__init__(message, details=details)
        self.field = field


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict", details: Any = None):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, details=details)
