"""
Platform-wide exception hierarchy.

Services raise these types; the application factory registers one error
handler per type so every blueprint gets the same HTTP mapping:

    NotFoundError        → 404
    ValidationError      → 422  (InvalidTransition, UnknownStateValue included)
    ConflictError        → 409
    TenantRequiredError  → 403

Usage:
    from wsjfp.core.exceptions import NotFoundError, InvalidTransition

    raise NotFoundError(resource="Feature", resource_id=42)
    raise InvalidTransition("commitment", "accepted", "suggested")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Security note: Used for BOTH genuinely missing records AND cross-tenant
    access attempts. A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable model/entity name (e.g. "Feature", "Planning").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        tenant_id: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        tenant_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.tenant_id = tenant_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if tenant_id is not None:
            msg += f" (tenant={tenant_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 422 in the error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidTransition(ValidationError):
    """Raised when a status change is neither declared nor a no-op.

    Args:
        entity_type: "feature" | "project" | "planning" | "commitment".
        current: Status the entity is in.
        target: Requested status.
        reason: Optional extra explanation (kept out of the field error).
    """

    message = "Status transition not allowed."

    def __init__(
        self,
        entity_type: str,
        current: str | None,
        target: str | None,
        reason: str | None = None,
    ) -> None:
        self.entity_type = entity_type
        self.current_status = current
        self.target_status = target
        self.reason = reason
        super().__init__(self.message, details={"status": self.message})

    def __str__(self) -> str:
        msg = f"{self.message} ({self.entity_type}: {self.current_status} → {self.target_status})"
        if self.reason:
            msg += f": {self.reason}"
        return msg


class UnknownStateValue(ValidationError):
    """Raised on write paths when a status string is not declared for its type."""

    def __init__(self, entity_type: str, value) -> None:
        self.entity_type = entity_type
        self.value = value
        super().__init__(
            f"Unknown {entity_type} status: {value!r}",
            details={"status": "Invalid status."},
        )


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique record or repeat a one-shot action.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class TenantRequiredError(Exception):
    """Raised when a tenant-scoped write has no resolvable tenant.

    Reads never raise this: a missing tenant simply yields no rows.
    """

    def __init__(self, resource: str) -> None:
        self.resource = resource
        super().__init__(f"{resource} cannot be written without a tenant")
