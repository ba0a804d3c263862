"""Service-level exceptions.

Services raise these; the app factory registers one error handler that turns
any of them into ``{"error": message}`` with the matching HTTP status.
"""


class ServiceError(Exception):
    """Base class for errors that are safe to show to API clients."""
    status_code = 500

    def __init__(self, message, status_code=None):
        self.message = message
        if status_code:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(ServiceError):
    """Malformed input or a request the current state cannot accept."""
    status_code = 400


class UnauthorizedError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    """Caller is authenticated but does not own the resource."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404
