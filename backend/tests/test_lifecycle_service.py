# Overview: Pytest coverage for purchase, purchase return and sale state machines.

import pytest

from retailflow.models import (
    PURCHASE_STATUS_CANCELLED,
    PURCHASE_STATUS_ORDERED,
    PURCHASE_STATUS_RECEIVED,
    RETURN_STATUS_APPROVED,
    RETURN_STATUS_CANCELLED,
    RETURN_STATUS_DRAFT,
    RETURN_STATUS_PROCESSED,
)
from retailflow.services.lifecycle_service import (
    ACTION_APPROVE,
    ACTION_CANCEL,
    ACTION_PROCESS,
    ACTION_RECEIVE,
    ACTION_REFUND,
    PURCHASE_LIFECYCLE,
    PURCHASE_RETURN_LIFECYCLE,
    SALE_LIFECYCLE,
    TransitionError,
)
from retailflow.services.purchase_service import PURCHASE_WORKFLOW
from retailflow.services.return_service import PURCHASE_RETURN_WORKFLOW


@pytest.mark.workflow
class TestPurchaseLifecycle:
    def test_receive_and_cancel_from_ordered(self):
        assert PURCHASE_LIFECYCLE.next_status(ACTION_RECEIVE, PURCHASE_STATUS_ORDERED) == PURCHASE_STATUS_RECEIVED
        assert PURCHASE_LIFECYCLE.next_status(ACTION_CANCEL, PURCHASE_STATUS_ORDERED) == PURCHASE_STATUS_CANCELLED

    @pytest.mark.parametrize("status", [PURCHASE_STATUS_RECEIVED, PURCHASE_STATUS_CANCELLED])
    def test_terminal_states(self, status):
        assert PURCHASE_LIFECYCLE.is_terminal(status)
        assert PURCHASE_LIFECYCLE.actions_from(status) == []
        with pytest.raises(TransitionError) as exc:
            PURCHASE_LIFECYCLE.next_status(ACTION_CANCEL, status)
        assert "terminal" in exc.value.message

    def test_unknown_status(self):
        with pytest.raises(TransitionError):
            PURCHASE_LIFECYCLE.can(ACTION_RECEIVE, "shipped")

    def test_actions_in_declaration_order(self):
        assert PURCHASE_LIFECYCLE.actions_from(PURCHASE_STATUS_ORDERED) == [ACTION_RECEIVE, ACTION_CANCEL]


@pytest.mark.workflow
class TestPurchaseReturnLifecycle:
    def test_happy_path(self):
        status = PURCHASE_RETURN_LIFECYCLE.initial
        assert status == RETURN_STATUS_DRAFT
        status = PURCHASE_RETURN_LIFECYCLE.next_status(ACTION_APPROVE, status)
        assert status == RETURN_STATUS_APPROVED
        status = PURCHASE_RETURN_LIFECYCLE.next_status(ACTION_PROCESS, status)
        assert status == RETURN_STATUS_PROCESSED

    def test_process_from_draft_is_rejected(self):
        with pytest.raises(TransitionError) as exc:
            PURCHASE_RETURN_LIFECYCLE.next_status(ACTION_PROCESS, RETURN_STATUS_DRAFT)
        assert exc.value.code == "ILLEGAL_TRANSITION"
        assert "approve" in exc.value.message

    @pytest.mark.parametrize("status", [RETURN_STATUS_DRAFT, RETURN_STATUS_APPROVED])
    def test_cancel_before_processing(self, status):
        assert PURCHASE_RETURN_LIFECYCLE.next_status(ACTION_CANCEL, status) == RETURN_STATUS_CANCELLED

    def test_cannot_cancel_processed(self):
        assert not PURCHASE_RETURN_LIFECYCLE.can(ACTION_CANCEL, RETURN_STATUS_PROCESSED)

    def test_refund_keeps_processed(self):
        assert PURCHASE_RETURN_LIFECYCLE.next_status(ACTION_REFUND, RETURN_STATUS_PROCESSED) == RETURN_STATUS_PROCESSED
        # Repeatable: the status never moves on
        assert PURCHASE_RETURN_LIFECYCLE.can(ACTION_REFUND, RETURN_STATUS_PROCESSED)

    def test_processed_is_terminal_but_refundable(self):
        assert PURCHASE_RETURN_LIFECYCLE.is_terminal(RETURN_STATUS_PROCESSED)
        assert PURCHASE_RETURN_LIFECYCLE.actions_from(RETURN_STATUS_PROCESSED) == [ACTION_REFUND]

    def test_cancelled_is_dead_end(self):
        assert PURCHASE_RETURN_LIFECYCLE.actions_from(RETURN_STATUS_CANCELLED) == []

    def test_no_refund_before_processing(self):
        for status in (RETURN_STATUS_DRAFT, RETURN_STATUS_APPROVED, RETURN_STATUS_CANCELLED):
            assert not PURCHASE_RETURN_LIFECYCLE.can(ACTION_REFUND, status)


@pytest.mark.workflow
class TestSaleLifecycle:
    @pytest.mark.parametrize("status", ["completed", "pending", "partial", "anything-the-server-says"])
    def test_any_server_status_accepted(self, status):
        SALE_LIFECYCLE.validate_status(status)
        assert SALE_LIFECYCLE.actions_from(status) == []


class TestWorkflowDefinitions:
    def test_every_transition_action_has_a_handler(self):
        for workflow in (PURCHASE_WORKFLOW, PURCHASE_RETURN_WORKFLOW):
            for action in workflow.actions:
                assert action.name in workflow.handlers

    def test_unknown_action(self):
        with pytest.raises(TransitionError):
            PURCHASE_WORKFLOW.action("reopen")

    def test_return_actions_order(self):
        assert [a.name for a in PURCHASE_RETURN_WORKFLOW.actions] == ["approve", "process", "refund", "cancel"]
