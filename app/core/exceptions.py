"""
Platform-wide exception hierarchy.

Services raise these; blueprints register handlers against them once
(see ``register_error_handlers``) and get consistent HTTP status codes
everywhere.  Nothing here is retried automatically: the caller decides.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Approval", resource_id="a1b2")
    raise ValidationError("Invalid action", details={"action": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "Program", "Approval").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when input is malformed or outside an enumerated set.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation collides with current state.

    Two flavours share this type: re-processing an already resolved
    approval, and a duplicate value on a unique field.  Both map to
    HTTP 400 with an ``ERR_CONFLICT_*`` code so clients can tell them
    apart from validation failures.

    Args:
        message: Human-readable explanation.
        resource: Model name.
        field: The unique field that would be duplicated, if any.
        value: The conflicting value (logged, not returned).
    """

    def __init__(
        self,
        message: str,
        resource: str | None = None,
        field: str | None = None,
        value: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message)

    @classmethod
    def duplicate(cls, resource: str, field: str, value: str | None = None) -> "ConflictError":
        return cls(f"{resource} with this {field} already exists", resource, field, value)

    @property
    def is_duplicate(self) -> bool:
        return self.field is not None


class UnauthorizedError(Exception):
    """Raised when no authenticated identity is attached to the request.

    Maps to HTTP 401.
    """

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)
