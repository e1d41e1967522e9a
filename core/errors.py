"""
core/errors.py -- Typed service-layer errors.

Services raise these; api/main.py owns the single exception handler that turns
them into HTTP responses. Each class carries its HTTP status so the boundary
layer needs no lookup table, and a short machine-readable `code` so clients
can distinguish failures that share a status (e.g. bad_credentials vs
forbidden, both 400).

Layer rule: no imports from api/ or auth/. Nothing in here knows about FastAPI.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for every error a service deliberately raises."""

    status_code: int = 500
    default_code: str = "internal_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class BadRequestError(ServiceError):
    status_code = 400
    default_code = "bad_request"


class UnauthorizedError(ServiceError):
    status_code = 401
    default_code = "unauthorized"


class ForbiddenError(ServiceError):
    status_code = 403
    default_code = "forbidden"


class NotFoundError(ServiceError):
    status_code = 404
    default_code = "not_found"


class InternalServerError(ServiceError):
    status_code = 500
    default_code = "internal_error"
