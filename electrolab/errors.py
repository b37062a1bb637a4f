"""Client-facing error taxonomy shared by the services and the API layer.

- ServiceError: base class, never raised directly
- ValidationError: malformed or semantically invalid input (422)
- ConflictError: uniqueness or referential-integrity violation (409)
- NotFoundError: the targeted id does not exist (404)

A ConflictError returned for a retried create means the first attempt
already went through.
"""


class ServiceError(Exception):
    """Base exception for content, comment and analytics service errors.

    Attributes:
        message: Human-readable error description.
        field: Name of the offending input field, when there is one.
    """

    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)

    def __str__(self) -> str:
        if self.field:
            return f"{self.message} (field: {self.field})"
        return self.message

    def to_dict(self) -> dict:
        return {"detail": self.message, "field": self.field}


class ValidationError(ServiceError):
    """Raised for bad foreign keys and empty required fields."""

    status_code = 422


class ConflictError(ServiceError):
    """Raised when a write would break a uniqueness or reference rule."""

    status_code = 409


class NotFoundError(ServiceError):
    """Raised when an operation targets an id that does not exist."""

    status_code = 404


def require_text(value: str | None, field: str) -> str:
    """Return *value* stripped; blank or missing raises ``ValidationError``."""
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty", field=field)
    return value.strip()
