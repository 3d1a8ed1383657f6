"""
Invoice Workflow.

Pending -> Partial -> Paid as payments arrive.  Paid is terminal; nothing
moves an invoice backwards.
"""

from freight_kernel.domain.workflow import Guard, Transition, Workflow
from freight_kernel.logging_config import get_logger

logger = get_logger("modules.ar.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

WITHIN_BALANCE = Guard(
    name="within_balance",
    description="Payment does not exceed the outstanding balance",
)

FULLY_PAID = Guard(
    name="fully_paid",
    description="Payments equal the invoice amount",
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="customer_invoice",
    description="Customer invoice payment lifecycle",
    initial_state="pending",
    states=(
        "pending",
        "partial",
        "paid",
    ),
    transitions=(
        Transition("pending", "partial", action="record_payment", guard=WITHIN_BALANCE),
        Transition("pending", "paid", action="record_payment", guard=FULLY_PAID),
        Transition("partial", "partial", action="record_payment", guard=WITHIN_BALANCE),
        Transition("partial", "paid", action="record_payment", guard=FULLY_PAID),
    ),
    terminal_states=("paid",),
)

logger.debug(
    "invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
    },
)
