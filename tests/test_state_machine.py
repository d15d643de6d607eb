"""Tests for time entry and invoice state machines."""

import pytest

from billing_engine.exceptions import InvalidTransitionError, ValidationError
from billing_engine.services.state_machine import (
    BatchStatus,
    InvoiceStateMachine,
    InvoiceStatus,
    TimeEntryStateMachine,
    TimeEntryStatus,
)


class TestTimeEntryStateMachine:
    """Test time entry transitions."""

    def test_valid_transitions(self):
        assert TimeEntryStateMachine.can_transition("DRAFT", "SUBMITTED") is True
        assert TimeEntryStateMachine.can_transition("SUBMITTED", "APPROVED") is True
        assert TimeEntryStateMachine.can_transition("SUBMITTED", "REJECTED") is True

    def test_invalid_transitions(self):
        # Can't skip submission
        assert TimeEntryStateMachine.can_transition("DRAFT", "APPROVED") is False

        # Approved and rejected are terminal
        assert TimeEntryStateMachine.can_transition("APPROVED", "DRAFT") is False
        assert TimeEntryStateMachine.can_transition("APPROVED", "REJECTED") is False
        assert TimeEntryStateMachine.can_transition("REJECTED", "SUBMITTED") is False

    def test_validate_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            TimeEntryStateMachine.validate_transition("APPROVED", TimeEntryStatus.SUBMITTED)

        assert exc_info.value.from_status == "APPROVED"
        assert exc_info.value.to_status == "SUBMITTED"
        assert isinstance(exc_info.value, ValidationError)

    def test_only_drafts_are_mutable(self):
        assert TimeEntryStateMachine.can_modify("DRAFT") is True
        assert TimeEntryStateMachine.can_modify("SUBMITTED") is False
        assert TimeEntryStateMachine.can_modify("APPROVED") is False

    def test_only_approved_is_billable(self):
        assert TimeEntryStateMachine.is_billable("APPROVED") is True
        assert TimeEntryStateMachine.is_billable("SUBMITTED") is False


class TestInvoiceStateMachine:
    """Test invoice transitions."""

    def test_review_transitions(self):
        assert InvoiceStateMachine.can_transition("DRAFT", "APPROVED") is True
        assert InvoiceStateMachine.can_transition("APPROVED", "DRAFT") is True
        assert InvoiceStateMachine.can_transition("FAILED", "APPROVED") is True

    def test_submission_transitions(self):
        assert InvoiceStateMachine.can_transition("APPROVED", "SUBMITTED") is True
        assert InvoiceStateMachine.can_transition("APPROVED", "FAILED") is True
        assert InvoiceStateMachine.can_transition("DRAFT", "SUBMITTED") is False

    def test_submitted_is_terminal(self):
        assert InvoiceStateMachine.get_next_statuses("SUBMITTED") == []

    def test_there_is_no_rejected_status(self):
        assert "REJECTED" not in {s.value for s in InvoiceStatus}
        assert InvoiceStateMachine.can_transition("DRAFT", "REJECTED") is False

    def test_manual_transition_cannot_set_submission_statuses(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            InvoiceStateMachine.validate_manual_transition("APPROVED", "SUBMITTED")
        assert "only batch submission" in str(exc_info.value)

        with pytest.raises(InvalidTransitionError):
            InvoiceStateMachine.validate_manual_transition("APPROVED", "FAILED")

    def test_manual_transition_allows_approve_and_reopen(self):
        InvoiceStateMachine.validate_manual_transition("DRAFT", "APPROVED")
        InvoiceStateMachine.validate_manual_transition("APPROVED", "DRAFT")

    def test_edit_and_submit_eligibility(self):
        assert InvoiceStateMachine.can_edit("DRAFT") is True
        assert InvoiceStateMachine.can_edit("APPROVED") is False
        assert InvoiceStateMachine.can_submit("APPROVED") is True
        assert InvoiceStateMachine.can_submit("DRAFT") is False

    def test_batch_status_after_submission(self):
        assert InvoiceStateMachine.batch_status_after_submission(0) == BatchStatus.COMPLETED
        assert InvoiceStateMachine.batch_status_after_submission(1) == BatchStatus.FAILED
