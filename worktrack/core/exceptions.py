"""
Service-layer exception hierarchy.

Services raise these for expected business-rule failures; the
``service_operation`` boundary in ``worktrack.core.results`` converts them
into typed ``ServiceResult`` values so no exception ever reaches a caller.

Usage:
    from worktrack.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("Cannot create epic under story")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the actor's scope.

    Used for BOTH genuinely missing rows AND rows owned by another company.
    A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Work item").
        resource_id: The PK that was looked up. Logged, never shown to callers.
        company_id: Optional scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        company_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.company_id = company_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if company_id is not None:
            msg += f" (company={company_id})"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when well-formed input violates a business rule.

    Illegal parent/child type, duplicate name, illegal state transition,
    missing manager assignment, last-manager removal. Maps to BadRequest.

    Args:
        message: Human-readable explanation, safe to show to the caller.
        details: Optional field-level breakdown.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(ValidationError):
    """Raised when an operation would duplicate a unique value.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
        message: Optional caller-facing text overriding the generated one.
    """

    def __init__(
        self,
        resource: str,
        field: str,
        value: str | None = None,
        message: str | None = None,
    ) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(message or f"{resource} with {field}={value!r} already exists")


class ForbiddenError(Exception):
    """Raised when the actor is known but lacks rights on the target."""


class UnauthorizedError(Exception):
    """Raised when the acting user cannot be resolved."""
