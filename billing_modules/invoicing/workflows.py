"""
Invoice Workflow.

State machine for the invoice lifecycle. Declarative only: the states,
transitions, guards and the lifecycle events each transition emits. The
lifecycle module evaluates the guards and applies the effects.
"""

from billing_kernel.domain.workflow import Guard, Transition, Workflow
from billing_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_LINE_ITEMS = Guard(
    name="has_line_items",
    description="Invoice has at least one line item",
)

CLIENT_RESOLVABLE = Guard(
    name="client_resolvable",
    description="Invoice client id resolves in the client directory",
)

CLIENT_CURRENCY_MATCHES = Guard(
    name="client_currency_matches",
    description="Invoice is billed in the client's currency",
)

PAID_IN_FULL = Guard(
    name="paid_in_full",
    description="Cumulative payments reach the invoice total",
)

PARTIAL_PAYMENT_ALLOWED = Guard(
    name="partial_payment_allowed",
    description="Payment leaves a balance and partial payments are enabled",
)

PAST_DUE = Guard(
    name="past_due",
    description="Check date is after the invoice due date",
)

logger.info(
    "invoice_workflow_guards_defined",
    extra={
        "guards": [
            HAS_LINE_ITEMS.name,
            CLIENT_RESOLVABLE.name,
            CLIENT_CURRENCY_MATCHES.name,
            PAID_IN_FULL.name,
            PARTIAL_PAYMENT_ALLOWED.name,
            PAST_DUE.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

def _payment_transitions(state: str) -> tuple[Transition, ...]:
    # Full payment is tried first; a partial payment keeps the status
    return (
        Transition(
            state, "paid", action="payment_received",
            guards=(PAID_IN_FULL,),
            emits=("payment_received", "invoice_paid"),
        ),
        Transition(
            state, state, action="payment_received",
            guards=(PARTIAL_PAYMENT_ALLOWED,),
            emits=("payment_received",),
        ),
    )


INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Client invoice lifecycle",
    initial_state="draft",
    states=(
        "draft",
        "sent",
        "viewed",
        "paid",
        "overdue",
        "cancelled",
    ),
    transitions=(
        Transition(
            "draft", "sent", action="send",
            guards=(HAS_LINE_ITEMS, CLIENT_RESOLVABLE, CLIENT_CURRENCY_MATCHES),
            emits=("invoice_sent",),
        ),
        Transition("draft", "cancelled", action="cancel", emits=("invoice_cancelled",)),
        Transition("sent", "viewed", action="read_receipt", emits=("invoice_viewed",)),
        *_payment_transitions("sent"),
        *_payment_transitions("viewed"),
        *_payment_transitions("overdue"),
        Transition(
            "sent", "overdue", action="check_overdue",
            guards=(PAST_DUE,), emits=("invoice_overdue",),
        ),
        Transition(
            "viewed", "overdue", action="check_overdue",
            guards=(PAST_DUE,), emits=("invoice_overdue",),
        ),
        Transition("sent", "cancelled", action="cancel", emits=("invoice_cancelled",)),
        Transition("viewed", "cancelled", action="cancel", emits=("invoice_cancelled",)),
        Transition("overdue", "cancelled", action="cancel", emits=("invoice_cancelled",)),
    ),
    terminal_states=("paid", "cancelled"),
)

logger.info(
    "invoice_workflow_defined",
    extra={
        "workflow": INVOICE_WORKFLOW.name,
        "states": list(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
    },
)
