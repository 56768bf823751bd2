"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
(see ``app.blueprints.register_error_handlers``) and get consistent HTTP
status codes everywhere.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=project_id)
    raise ValidationError("title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable entity name (e.g. "Project", "Task").
        resource_id: The key that was looked up. Included in the message.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input violates a business rule.

    Covers blank required fields, unknown enum values, cross-project
    parents, hierarchy cycles and protected-role operations.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a uniquely keyed row.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class PermissionDeniedError(Exception):
    """Raised when the caller's workspace role does not allow an action.

    Maps to HTTP 403.
    """

    def __init__(self, action: str, role: str | None = None, workspace_id: str | None = None) -> None:
        self.action = action
        self.role = role
        self.workspace_id = workspace_id
        if role is None:
            msg = f"Not a member of workspace {workspace_id}"
        else:
            msg = f"Role '{role}' may not perform '{action}'"
        super().__init__(msg)


class AuthenticationError(Exception):
    """Raised when no usable caller identity is present. Maps to HTTP 401."""
