"""
Settlement Workflow.

Draft -> Computed -> Committed, and Committed -> Superseded when a
replacement is generated.  Draft and Computed live only in memory; the
database only ever holds committed and superseded settlements.
"""

from freight_kernel.domain.workflow import Guard, Transition, Workflow
from freight_kernel.logging_config import get_logger

logger = get_logger("modules.settlement.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

LEDGER_UNCHANGED = Guard(
    name="ledger_unchanged",
    description="Touched ledger rows still match the computed before-state",
)

REVERSAL_POSSIBLE = Guard(
    name="reversal_possible",
    description="Touched ledger rows still hold this settlement's after-state",
)


# -----------------------------------------------------------------------------
# Settlement Workflow
# -----------------------------------------------------------------------------

SETTLEMENT_WORKFLOW = Workflow(
    name="driver_settlement",
    description="Driver settlement lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "computed",
        "committed",
        "superseded",
    ),
    transitions=(
        Transition("draft", "computed", action="compute"),
        Transition("computed", "computed", action="recompute"),
        Transition("computed", "committed", action="commit", guard=LEDGER_UNCHANGED, mutates_ledger=True),
        Transition("committed", "superseded", action="supersede", guard=REVERSAL_POSSIBLE, mutates_ledger=True),
    ),
    terminal_states=("superseded",),
)

logger.debug(
    "settlement_workflow_registered",
    extra={
        "workflow_name": SETTLEMENT_WORKFLOW.name,
        "state_count": len(SETTLEMENT_WORKFLOW.states),
        "transition_count": len(SETTLEMENT_WORKFLOW.transitions),
    },
)
