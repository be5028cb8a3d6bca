"""
Domain errors raised by services and mapped onto HTTP responses by the app.
"""

from __future__ import annotations


class ImobError(Exception):
    """Base error. `status_code` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ImobError):
    status_code = 400


class AuthenticationError(ImobError):
    status_code = 401


class ForbiddenError(ImobError):
    status_code = 403


class NotFoundError(ImobError):
    status_code = 404


class ConflictError(ImobError):
    status_code = 409


class RateLimitError(ImobError):
    status_code = 429
