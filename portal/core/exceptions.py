"""
Portal-wide exception hierarchy.

Services raise these; the app-level handlers registered in
``portal.utils.errors.register_error_handlers`` turn them into JSON
responses with consistent HTTP status codes.

Usage:
    from portal.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Adjustment", resource_id=42)
    raise ValidationError("Amount must be greater than 0", details={"amount": -5})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not exist.  Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "Adjustment", "Receipt").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")


class ValidationError(Exception):
    """Raised when input is missing or violates a business rule.  Maps to HTTP 400.

    Covers both malformed input (missing required field) and illegal state
    transitions (approving a non-PENDING adjustment).

    Args:
        message: Human-readable explanation of what failed.
        details: Optional structured context returned alongside the message.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique value.  Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class AuthenticationRequired(Exception):
    """No (valid) bearer token on a call that needs a user.  Maps to HTTP 401."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class PermissionDenied(Exception):
    """Authenticated user lacks the role for the action.  Maps to HTTP 403."""

    def __init__(self, required_roles: tuple | list = (), message: str = "Insufficient permissions") -> None:
        self.required_roles = list(required_roles)
        super().__init__(message)
