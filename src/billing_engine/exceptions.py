"""Typed exception hierarchy for the billing engine.

Every error carries a machine-readable ``code`` so the API layer and callers
can branch on type instead of parsing messages.

    BillingEngineError
    +-- ValidationError
    |   +-- InvalidTransitionError
    +-- NotFoundError
    |   +-- NoBillableEntriesError
    +-- ConflictError
    +-- AuthorizationError
    +-- ExternalSystemError
        +-- BillComAuthError
"""

from __future__ import annotations

from typing import Any


class BillingEngineError(Exception):
    """Base class for all billing engine errors."""

    code: str = "BILLING_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)


class ValidationError(BillingEngineError):
    """Input is missing or invalid. Raised before any persistence."""

    code = "VALIDATION_ERROR"


class InvalidTransitionError(ValidationError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity: str,
        from_status: str,
        to_status: str,
        reason: str | None = None,
    ):
        from_status = getattr(from_status, "value", from_status)
        to_status = getattr(to_status, "value", to_status)
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid {entity} transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, entity=entity, from_status=from_status, to_status=to_status)


class NotFoundError(BillingEngineError):
    """A referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any = None, message: str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity} not found", entity=entity, entity_id=entity_id)


class NoBillableEntriesError(NotFoundError):
    """No approved time entries exist in the requested invoice window."""

    code = "NO_BILLABLE_ENTRIES"

    def __init__(self, start_date: Any, end_date: Any):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            "TimeEntry",
            message="No approved time entries found in the specified date range",
        )


class ConflictError(BillingEngineError):
    """The request would violate a uniqueness rule."""

    code = "CONFLICT"


class AuthorizationError(BillingEngineError):
    """The caller's role does not allow the operation."""

    code = "FORBIDDEN"


class ExternalSystemError(BillingEngineError):
    """The external billing system rejected or failed a request."""

    code = "EXTERNAL_SYSTEM_ERROR"

    def __init__(self, message: str, status_code: int | None = None, **context: Any):
        self.status_code = status_code
        super().__init__(message, status_code=status_code, **context)


class BillComAuthError(ExternalSystemError):
    """The external billing system answered 401; the session must be renewed."""

    code = "EXTERNAL_AUTH_ERROR"
