"""Tests for the workflow state-machine types and the registered document workflows."""

import pytest

from erp_kernel.domain.workflow import Transition, Workflow, resolve_transition
from erp_kernel.exceptions import InvalidStateTransitionError
from erp_modules.payables.workflows import INVOICE_APPROVAL_WORKFLOW
from erp_modules.procurement.workflows import (
    INVOICEABLE_ORDER_STATES,
    PURCHASE_ORDER_WORKFLOW,
    PURCHASE_REQUEST_WORKFLOW,
)


class TestWorkflowConstruction:

    def test_initial_state_must_exist(self):
        with pytest.raises(ValueError, match="initial state"):
            Workflow(
                name="broken", description="", initial_state="draft",
                states=("pending",), transitions=(),
            )

    def test_transition_states_must_exist(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="broken", description="", initial_state="pending",
                states=("pending",),
                transitions=(Transition("pending", "approved", "approve"),),
            )

    def test_terminal_state_cannot_have_outgoing_transition(self):
        with pytest.raises(ValueError, match="terminal"):
            Workflow(
                name="broken", description="", initial_state="pending",
                states=("pending", "approved"),
                transitions=(Transition("approved", "pending", "reopen"),),
                terminal_states=("approved",),
            )


@pytest.mark.parametrize("workflow", [PURCHASE_REQUEST_WORKFLOW, INVOICE_APPROVAL_WORKFLOW])
class TestApprovalWorkflows:

    def test_pending_can_be_approved_or_rejected(self, workflow):
        assert workflow.initial_state == "pending"
        assert set(workflow.actions_from("pending")) == {"approve", "reject"}
        assert resolve_transition(workflow, "doc", "d-1", "pending", "approve") == "approved"
        assert resolve_transition(workflow, "doc", "d-1", "pending", "reject") == "rejected"

    @pytest.mark.parametrize("state", ["approved", "rejected"])
    @pytest.mark.parametrize("action", ["approve", "reject"])
    def test_decided_documents_are_terminal(self, workflow, state, action):
        assert workflow.actions_from(state) == ()
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            resolve_transition(workflow, "doc", "d-1", state, action)
        assert exc_info.value.current_state == state
        assert exc_info.value.action == action


class TestPurchaseOrderWorkflow:

    @pytest.mark.parametrize("state, action, target", [
        ("draft", "send", "sent"),
        ("sent", "confirm", "confirmed"),
        ("confirmed", "receive", "received"),
        ("draft", "cancel", "cancelled"),
        ("sent", "cancel", "cancelled"),
        ("confirmed", "cancel", "cancelled"),
    ])
    def test_transitions(self, state, action, target):
        assert resolve_transition(PURCHASE_ORDER_WORKFLOW, "po", "po-1", state, action) == target

    @pytest.mark.parametrize("state, action", [
        ("draft", "confirm"),
        ("draft", "receive"),
        ("sent", "receive"),
        ("received", "cancel"),
        ("cancelled", "send"),
    ])
    def test_illegal_actions(self, state, action):
        with pytest.raises(InvalidStateTransitionError):
            resolve_transition(PURCHASE_ORDER_WORKFLOW, "po", "po-1", state, action)

    def test_invoiceable_states(self):
        assert INVOICEABLE_ORDER_STATES == {"confirmed", "received"}
        assert INVOICEABLE_ORDER_STATES <= set(PURCHASE_ORDER_WORKFLOW.states)
