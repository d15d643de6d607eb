"""Time entry and invoice state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from billing_engine.exceptions import InvalidTransitionError


class TimeEntryStatus(str, Enum):
    """Time entry status values."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class InvoiceStatus(str, Enum):
    """Invoice status values. There is no REJECTED state for invoices."""

    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    SUBMITTED = "SUBMITTED"
    FAILED = "FAILED"


class BatchStatus(str, Enum):
    """Invoice batch status values."""

    DRAFT = "DRAFT"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class TimeEntryStateMachine:
    """State machine for time entry status transitions.

    Allowed transitions:
    - DRAFT → SUBMITTED (owner)
    - SUBMITTED → APPROVED (reviewer)
    - SUBMITTED → REJECTED (reviewer)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        TimeEntryStatus.DRAFT: [TimeEntryStatus.SUBMITTED],
        TimeEntryStatus.SUBMITTED: [TimeEntryStatus.APPROVED, TimeEntryStatus.REJECTED],
        TimeEntryStatus.APPROVED: [],  # Terminal state
        TimeEntryStatus.REJECTED: [],  # Terminal state
    }

    # Statuses where the owner may edit or delete the entry
    OWNER_MUTABLE = {TimeEntryStatus.DRAFT}

    # Statuses that feed invoicing, incentives and reporting
    BILLABLE = {TimeEntryStatus.APPROVED}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError("time entry", from_status, to_status)

    @classmethod
    def can_modify(cls, status: str) -> bool:
        """Check if the owner may still edit or delete the entry."""
        return status in cls.OWNER_MUTABLE

    @classmethod
    def is_billable(cls, status: str) -> bool:
        return status in cls.BILLABLE


class InvoiceStateMachine:
    """State machine for invoice status transitions.

    Allowed transitions:
    - DRAFT → APPROVED
    - APPROVED → DRAFT (reopen for edits)
    - APPROVED → SUBMITTED (batch submission only)
    - APPROVED → FAILED (batch submission only)
    - FAILED → APPROVED (re-queue for another submission attempt)
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        InvoiceStatus.DRAFT: [InvoiceStatus.APPROVED],
        InvoiceStatus.APPROVED: [
            InvoiceStatus.DRAFT,
            InvoiceStatus.SUBMITTED,
            InvoiceStatus.FAILED,
        ],
        InvoiceStatus.SUBMITTED: [],  # Terminal state
        InvoiceStatus.FAILED: [InvoiceStatus.APPROVED],
    }

    # Transitions only the submission adapter may perform
    SUBMISSION_ONLY = {InvoiceStatus.SUBMITTED, InvoiceStatus.FAILED}

    # Statuses where notes and line items can be modified
    EDITABLE = {InvoiceStatus.DRAFT}

    # Statuses eligible for batch submission
    SUBMITTABLE = {InvoiceStatus.APPROVED}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError("invoice", from_status, to_status)

    @classmethod
    def validate_manual_transition(cls, from_status: str, to_status: str) -> None:
        """Validate an admin-requested transition (not via submission)."""
        if to_status in cls.SUBMISSION_ONLY:
            raise InvalidTransitionError(
                "invoice",
                from_status,
                to_status,
                "only batch submission can set this status",
            )
        cls.validate_transition(from_status, to_status)

    @classmethod
    def can_edit(cls, status: str) -> bool:
        """Check if notes/line items may be changed."""
        return status in cls.EDITABLE

    @classmethod
    def can_submit(cls, status: str) -> bool:
        return status in cls.SUBMITTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @staticmethod
    def batch_status_after_submission(failure_count: int) -> BatchStatus:
        """Batch status derived from one submission run."""
        return BatchStatus.FAILED if failure_count > 0 else BatchStatus.COMPLETED
