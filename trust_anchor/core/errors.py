"""Service-level exceptions.

Each exception carries the HTTP status it maps to. The application renders
them as ``{"error": message}`` so every endpoint shares one error contract.
"""


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(ServiceError):
    status_code = 400


class UnauthorizedError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class IntegrationError(ServiceError):
    """An upstream provider call failed."""

    status_code = 502
