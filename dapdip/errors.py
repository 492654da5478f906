"""
dapdip.errors — Typed Service Errors
======================================

Services raise these; a single exception handler in
:mod:`dapdip.api.main` renders them as ``{"detail": ..., "code": ...}``
with the matching HTTP status.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for failures a caller is meant to see."""

    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(ServiceError):
    status_code = 400
    code = "BAD_REQUEST"


class UnauthorizedError(ServiceError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(ServiceError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ServiceError):
    status_code = 409
    code = "CONFLICT"


class TooManyRequestsError(ServiceError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class InternalError(ServiceError):
    status_code = 500
    code = "INTERNAL_SERVER_ERROR"
