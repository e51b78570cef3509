"""
Shared error types for core services.
"""


class ValidationIssue(ValueError):
    http_status = 400

    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
        error_code: str | None = None,
        data: dict | None = None,
    ):
        super().__init__(message)
        self.field = field
        self.error_type = error_type
        self.error_code = error_code
        self.data = data


class ServiceError(Exception):
    """Base for failures that map onto a fixed HTTP status."""

    http_status = 500
    error_type = "unexpected"


class AuthenticationRequired(ServiceError):
    http_status = 401
    error_type = "authentication_required"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class AuthorizationDenied(ServiceError):
    http_status = 403
    error_type = "authorization_denied"


class NotFound(ServiceError):
    http_status = 404
    error_type = "not_found"


class InvalidState(ServiceError):
    """Raised when a link or branch is not in a state that allows the operation."""

    http_status = 400
    error_type = "invalid_state"
