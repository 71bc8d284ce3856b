"""
Procurement Workflows.

State machines for purchase request approval and the purchase order
lifecycle.  Request approval is a single step: a pending request is
approved or rejected once and stays there.  An order goes draft -> sent ->
confirmed -> received and may be cancelled at any point before receipt.
"""

from erp_kernel.domain.workflow import Transition, Workflow
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.workflows")


# -----------------------------------------------------------------------------
# Purchase Request Workflow
# -----------------------------------------------------------------------------

PURCHASE_REQUEST_WORKFLOW = Workflow(
    name="purchase_request",
    description="Purchase request approval",
    initial_state="pending",
    states=(
        "pending",
        "approved",
        "rejected",
    ),
    transitions=(
        Transition("pending", "approved", action="approve"),
        Transition("pending", "rejected", action="reject"),
    ),
    terminal_states=("approved", "rejected"),
)

logger.info(
    "procurement_request_workflow_registered",
    extra={
        "workflow_name": PURCHASE_REQUEST_WORKFLOW.name,
        "state_count": len(PURCHASE_REQUEST_WORKFLOW.states),
        "transition_count": len(PURCHASE_REQUEST_WORKFLOW.transitions),
        "initial_state": PURCHASE_REQUEST_WORKFLOW.initial_state,
    },
)


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "sent",
        "confirmed",
        "received",
        "cancelled",
    ),
    transitions=(
        Transition("draft", "sent", action="send"),
        Transition("sent", "confirmed", action="confirm"),
        Transition("confirmed", "received", action="receive"),
        Transition("draft", "cancelled", action="cancel"),
        Transition("sent", "cancelled", action="cancel"),
        Transition("confirmed", "cancelled", action="cancel"),
    ),
    terminal_states=("received", "cancelled"),
)

# States from which an order may be turned into a purchase invoice.
INVOICEABLE_ORDER_STATES = frozenset({"confirmed", "received"})

logger.info(
    "procurement_order_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)
