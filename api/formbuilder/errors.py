"""Error taxonomy for the form builder.

Every failure the core raises on purpose derives from FormBuilderError. The HTTP
layer maps ``error_code`` to a status in ``handlers.py``; the backfill CLI maps
them to exit codes.
"""

from typing import Any, Dict, Optional


class FormBuilderError(Exception):
    """Base class carrying a human message, a machine code and extra details."""

    error_code = "FORM_BUILDER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error_code, "detail": self.message}


class NotFoundError(FormBuilderError):
    """Entity absent, or unresolvable even under elevated access."""

    error_code = "NOT_FOUND"

    def __init__(self, resource: str, entity_id: Any = None):
        self.resource = resource
        self.entity_id = entity_id
        super().__init__(f"{resource} not found", {"resource": resource, "id": entity_id})


class AccessDeniedError(FormBuilderError):
    """The actor's decision was Deny, or the entity falls outside its scope."""

    error_code = "ACCESS_DENIED"

    def __init__(
        self,
        collection: str,
        operation: str,
        reason: str = "",
        authenticated: bool = True,
        entity_id: Any = None,
    ):
        self.collection = collection
        self.operation = operation
        self.reason = reason
        self.authenticated = authenticated
        self.entity_id = entity_id
        message = f"Permission denied: {operation} on {collection}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, {"collection": collection, "operation": operation})


class DraftValidationError(FormBuilderError):
    """A draft entity is malformed (e.g. a required value is missing)."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, {"field": field} if field else {})


class FormInactiveError(FormBuilderError):
    error_code = "FORM_INACTIVE"

    def __init__(self, form_id: Any):
        self.form_id = form_id
        super().__init__("This form is not accepting submissions", {"form_id": form_id})


class StorageError(FormBuilderError):
    error_code = "STORAGE_ERROR"


class PreconditionFailedError(FormBuilderError):
    error_code = "PRECONDITION_FAILED"
