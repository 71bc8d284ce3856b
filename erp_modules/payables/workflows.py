"""
Payables Workflows.

State machine for purchase invoice approval.  Payment status is not a
workflow: it is derived from amounts and dates on every read.
"""

from erp_kernel.domain.workflow import Transition, Workflow
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.payables.workflows")


# -----------------------------------------------------------------------------
# Invoice Approval Workflow
# -----------------------------------------------------------------------------

INVOICE_APPROVAL_WORKFLOW = Workflow(
    name="purchase_invoice_approval",
    description="Purchase invoice approval",
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
    "payables_invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_APPROVAL_WORKFLOW.name,
        "state_count": len(INVOICE_APPROVAL_WORKFLOW.states),
        "transition_count": len(INVOICE_APPROVAL_WORKFLOW.transitions),
        "initial_state": INVOICE_APPROVAL_WORKFLOW.initial_state,
    },
)
