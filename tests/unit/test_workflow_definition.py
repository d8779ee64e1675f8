"""Tests for workflow definitions (fx_kernel/domain/workflow.py, orders workflow)."""

import pytest

from fx_kernel.domain.workflow import Transition, Workflow
from fx_modules.orders.workflows import (
    ACTION_ADD_PAYMENT,
    ACTION_ADD_RECEIPT,
    ACTION_ADJUST_RATE,
    ACTION_CANCEL,
    ACTION_DELETE,
    ACTION_PROCEED_PARTIAL,
    ACTION_PROCESS,
    BENEFICIARIES_PRESENT,
    FLEX_ORDER,
    ORDER_WORKFLOW,
)


class TestWorkflowValidation:

    def test_unknown_initial_state_rejected(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow("w", "", "draft", ("open",), ())

    def test_unknown_target_state_rejected(self):
        with pytest.raises(ValueError, match="unknown to_state"):
            Workflow("w", "", "open", ("open",), (Transition("open", "closed", "close"),))

    def test_terminal_state_cannot_leave(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                "w", "", "open", ("open", "done"),
                (Transition("done", "open", "reopen"),),
                terminal_states=("done",),
            )

    def test_terminal_state_may_be_deleted(self):
        wf = Workflow(
            "w", "", "open", ("open", "done"),
            (Transition("done", None, "delete"),),
            terminal_states=("done",),
        )
        assert wf.find_transition("done", "delete").to_state is None


class TestOrderWorkflow:

    def test_initial_state_is_pending(self):
        assert ORDER_WORKFLOW.initial_state == "pending"

    def test_pending_offers_no_uploads(self):
        actions = ORDER_WORKFLOW.actions_from("pending")
        assert ACTION_PROCESS in actions
        assert ACTION_ADD_RECEIPT not in actions
        assert ACTION_ADD_PAYMENT not in actions

    @pytest.mark.parametrize("state", ["completed", "cancelled"])
    def test_terminal_states_offer_no_cancel(self, state):
        assert ORDER_WORKFLOW.is_terminal(state)
        assert ORDER_WORKFLOW.find_transition(state, ACTION_CANCEL) is None
        assert ORDER_WORKFLOW.find_transition(state, ACTION_DELETE) is not None

    def test_receipt_and_payment_are_externally_confirmed(self):
        receipt = ORDER_WORKFLOW.find_transition("waiting_for_receipt", ACTION_ADD_RECEIPT)
        payment = ORDER_WORKFLOW.find_transition("waiting_for_payment", ACTION_ADD_PAYMENT)
        assert receipt.externally_confirmed
        assert payment.externally_confirmed
        assert payment.guard == BENEFICIARIES_PRESENT

    def test_cancel_and_delete_require_capabilities(self):
        cancel = ORDER_WORKFLOW.find_transition("pending", ACTION_CANCEL)
        delete = ORDER_WORKFLOW.find_transition("completed", ACTION_DELETE)
        assert cancel.requires_capability == "cancelOrder"
        assert delete.requires_capability == "deleteOrder"

    def test_flex_transitions_are_guarded(self):
        proceed = ORDER_WORKFLOW.find_transition("waiting_for_receipt", ACTION_PROCEED_PARTIAL)
        assert proceed.to_state == "waiting_for_payment"
        assert proceed.guard == FLEX_ORDER
        assert not proceed.externally_confirmed
        for state in ("waiting_for_receipt", "waiting_for_payment"):
            adjust = ORDER_WORKFLOW.find_transition(state, ACTION_ADJUST_RATE)
            assert adjust.to_state == state
            assert adjust.guard == FLEX_ORDER
        assert ORDER_WORKFLOW.find_transition("pending", ACTION_ADJUST_RATE) is None
