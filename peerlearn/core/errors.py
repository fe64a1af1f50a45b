"""
Domain errors raised by services and mapped to JSON responses in ``peerlearn.main``.
"""
from typing import Any, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Any = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.details = details
        self.extra = extra


class BadRequest(AppError):
    status_code = 400


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class UpstreamError(AppError):
    """The AI endpoint answered with a non-2xx status or could not be reached."""

    status_code = 500

    def __init__(self, message: str, status: Optional[int] = None, details: Any = None):
        super().__init__(message, details=details)
        self.status = status


class ParseError(AppError):
    """The AI endpoint answered, but not with a roadmap we can use."""

    status_code = 500

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message, details=raw_text)
        self.raw_text = raw_text
