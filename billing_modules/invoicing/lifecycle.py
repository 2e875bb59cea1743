"""
Invoice lifecycle (``billing_modules.invoicing.lifecycle``).

Responsibility
--------------
Creates draft invoices, reprices them from line items, and drives status
transitions (send, read receipt, payment, overdue check, cancel) against
``INVOICE_WORKFLOW``. Every successful transition returns the new invoice
together with the lifecycle events it emits.

Architecture position
---------------------
**Modules layer.** Evaluates the declarative workflow, calls the pure
line-item engine, and reads clients through an injected
``ClientDirectory``. No I/O, no clock: every date arrives on a signal.

Invariants enforced
-------------------
* A failed operation returns a failed ``Outcome`` and leaves the input
  invoice untouched (frozen dataclasses; changes go through
  ``dataclasses.replace``).
* ``paid`` and ``cancelled`` reject every transition with
  ``InvalidTransitionError``.
* Financial fields change only while no payment has been recorded and the
  invoice is not terminal; otherwise ``InvoiceImmutableError``.
* A non-draft invoice always has at least one line item.
* Each successful change bumps ``version`` by one.

Failure modes (all returned, never raised)
------------------------------------------
* InvalidTransitionError, MissingClientReferenceError,
  EmptyLineItemsOnSendError, InvalidPaymentError, CurrencyMismatchError,
  InvoiceImmutableError, InvalidDiscountError, InvalidTaxRateError,
  InvalidLineItemError, InvalidMetadataError.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from billing_engines.line_items import DerivedTotals, compute_totals
from billing_kernel.domain.outcome import Outcome
from billing_kernel.domain.values import Currency, Money, Scalar
from billing_kernel.domain.workflow import Guard, Transition
from billing_kernel.exceptions import (
    BillingKernelError,
    CurrencyMismatchError,
    EmptyLineItemsOnSendError,
    InvalidMetadataError,
    InvalidPaymentError,
    InvalidTransitionError,
    InvoiceImmutableError,
    MissingClientReferenceError,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.events import (
    CheckOverdue,
    LifecycleEvent,
    LifecycleEventType,
    PaymentReceived,
    SendInvoice,
    Signal,
    signal_date,
)
from billing_modules.invoicing.models import (
    INVOICE_METADATA,
    PAYMENT_METADATA,
    Client,
    EmailStatus,
    Invoice,
    InvoiceStatus,
    LineItem,
    PaymentRecord,
    PaymentTerms,
    RecurrenceSettings,
)
from billing_modules.invoicing.ports import ClientDirectory
from billing_modules.invoicing.workflows import (
    CLIENT_CURRENCY_MATCHES,
    CLIENT_RESOLVABLE,
    HAS_LINE_ITEMS,
    INVOICE_WORKFLOW,
    PAID_IN_FULL,
    PARTIAL_PAYMENT_ALLOWED,
    PAST_DUE,
)

logger = get_logger("modules.invoicing.lifecycle")

_UNSET: Any = object()


@dataclass(frozen=True)
class TransitionOutcome:
    """A successful transition: the new invoice and the events it emits."""
    invoice: Invoice
    from_status: InvoiceStatus
    to_status: InvoiceStatus
    events: tuple[LifecycleEvent, ...]

    @property
    def event_types(self) -> tuple[LifecycleEventType, ...]:
        return tuple(e.event_type for e in self.events)


# -----------------------------------------------------------------------------
# Guard evaluation
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class GuardContext:
    """Everything a guard may look at. ``paid_after`` is set for payments."""
    invoice: Invoice
    signal: Signal
    client: Client | None
    config: InvoicingConfig
    paid_after: Money | None = None


class GuardExecutor:
    """Evaluates workflow guards by name.

    Guards are declared on transitions (name + description). This executor
    holds the evaluation logic per guard name and the error reported when
    the guard blocks the transition.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[GuardContext], bool]] = {}
        self._errors: dict[str, Callable[[GuardContext], BillingKernelError]] = {}

    def register(
        self,
        guard: Guard,
        evaluator: Callable[[GuardContext], bool],
        error: Callable[[GuardContext], BillingKernelError],
    ) -> None:
        self._evaluators[guard.name] = evaluator
        self._errors[guard.name] = error

    def evaluate(self, guard: Guard, context: GuardContext) -> bool:
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning("guard_no_evaluator", extra={"guard_name": guard.name})
            return False
        return fn(context)

    def error_for(self, guard: Guard, context: GuardContext) -> BillingKernelError:
        factory = self._errors.get(guard.name)
        if factory is None:
            inv = context.invoice
            return InvalidTransitionError(
                str(inv.id), inv.status.value, context.signal.action,
                reason=f"guard {guard.name} failed",
            )
        return factory(context)


def _past_due(ctx: GuardContext) -> bool:
    return isinstance(ctx.signal, CheckOverdue) and ctx.invoice.is_past_due(ctx.signal.as_of)


def _not_past_due_error(ctx: GuardContext) -> BillingKernelError:
    inv = ctx.invoice
    due = inv.due_date.isoformat() if inv.due_date else "unset"
    return InvalidTransitionError(
        str(inv.id), inv.status.value, ctx.signal.action,
        reason=f"not past due date {due} as of {signal_date(ctx.signal).isoformat()}",
    )


def _partial_payment_error(ctx: GuardContext) -> BillingKernelError:
    amount = ctx.signal.amount if isinstance(ctx.signal, PaymentReceived) else None
    return InvalidPaymentError(
        str(ctx.invoice.id), str(amount),
        "partial payments are disabled; payment must settle the balance",
    )


def default_guard_executor() -> GuardExecutor:
    """GuardExecutor with the invoice workflow guards registered."""
    ex = GuardExecutor()
    ex.register(
        HAS_LINE_ITEMS,
        lambda ctx: len(ctx.invoice.line_items) > 0,
        lambda ctx: EmptyLineItemsOnSendError(str(ctx.invoice.id)),
    )
    ex.register(
        CLIENT_RESOLVABLE,
        lambda ctx: ctx.client is not None,
        lambda ctx: MissingClientReferenceError(str(ctx.invoice.id), str(ctx.invoice.client_id)),
    )
    ex.register(
        CLIENT_CURRENCY_MATCHES,
        lambda ctx: ctx.client is not None and ctx.client.currency == ctx.invoice.currency,
        lambda ctx: CurrencyMismatchError(ctx.client.currency.code, ctx.invoice.currency.code),
    )
    ex.register(
        PAID_IN_FULL,
        lambda ctx: ctx.paid_after is not None and ctx.paid_after >= ctx.invoice.total,
        _partial_payment_error,
    )
    ex.register(
        PARTIAL_PAYMENT_ALLOWED,
        lambda ctx: (
            ctx.config.allow_partial_payment
            and ctx.paid_after is not None
            and ctx.paid_after < ctx.invoice.total
        ),
        _partial_payment_error,
    )
    ex.register(PAST_DUE, _past_due, _not_past_due_error)
    return ex


_GUARDS = default_guard_executor()


# -----------------------------------------------------------------------------
# Creation and repricing
# -----------------------------------------------------------------------------


def _check_financials_mutable(invoice: Invoice) -> InvoiceImmutableError | None:
    if invoice.is_terminal:
        return InvoiceImmutableError(
            str(invoice.id), invoice.status.value, "invoice is paid or cancelled"
        )
    if invoice.payments:
        return InvoiceImmutableError(
            str(invoice.id), invoice.status.value, "payments have been recorded"
        )
    return None


def new_draft(
    *,
    client_id: UUID,
    invoice_number: str,
    currency: str | Currency,
    line_items: Sequence[LineItem] = (),
    tax_rate: Scalar = Decimal("0"),
    discount: Money | None = None,
    issue_date: date | None = None,
    due_date: date | None = None,
    notes: str | None = None,
    terms: str | None = None,
    recurring: RecurrenceSettings | None = None,
    recurrence_id: UUID | None = None,
    metadata: Mapping[str, Any] | None = None,
    invoice_id: UUID | None = None,
) -> Outcome[Invoice]:
    """Create a draft invoice with totals derived from ``line_items``."""
    if isinstance(currency, str):
        currency = Currency(currency)
    discount = discount if discount is not None else Money.zero(currency)
    if discount.currency != currency:
        return Outcome.fail(CurrencyMismatchError(currency.code, discount.currency.code))

    try:
        parsed_metadata = INVOICE_METADATA.parse(metadata)
    except InvalidMetadataError as e:
        return Outcome.fail(e)

    totals = compute_totals(tuple(line_items), tax_rate, discount)
    if not totals.success:
        return Outcome.fail(totals.error)
    derived = totals.value

    invoice = Invoice(
        id=invoice_id or uuid4(),
        invoice_number=invoice_number,
        client_id=client_id,
        currency=currency,
        line_items=tuple(line_items),
        tax_rate=derived.tax_rate,
        discount=derived.discount,
        subtotal=derived.subtotal,
        tax_amount=derived.tax_amount,
        total=derived.total,
        issue_date=issue_date,
        due_date=due_date,
        notes=notes,
        terms=terms,
        recurring=recurring,
        recurrence_id=recurrence_id,
        metadata=parsed_metadata,
    )
    logger.info(
        "invoice_draft_created",
        extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice_number,
            "client_id": str(client_id),
            "total_minor": invoice.total.minor_units,
            "line_count": len(invoice.line_items),
        },
    )
    return Outcome.ok(invoice)


def apply_line_items(
    invoice: Invoice,
    items: Sequence[LineItem],
    tax_rate: Scalar,
    discount: Money,
) -> Outcome[DerivedTotals]:
    """
    Derive totals for ``items`` on ``invoice`` without changing it.

    The caller writes the derived fields back (see ``reprice``). Empty
    items are only acceptable while the invoice is a draft.
    """
    blocked = _check_financials_mutable(invoice)
    if blocked is not None:
        return Outcome.fail(blocked)
    if discount.currency != invoice.currency:
        return Outcome.fail(CurrencyMismatchError(invoice.currency.code, discount.currency.code))
    if not items and invoice.status != InvoiceStatus.DRAFT:
        return Outcome.fail(EmptyLineItemsOnSendError(str(invoice.id)))
    return compute_totals(tuple(items), tax_rate, discount)


def reprice(
    invoice: Invoice,
    items: Sequence[LineItem] | None = None,
    tax_rate: Scalar | None = None,
    discount: Money | None = None,
) -> Outcome[Invoice]:
    """Replace line items, tax rate or discount and write the totals back.

    Arguments left as None keep the invoice's current value.
    """
    items = tuple(items) if items is not None else invoice.line_items
    tax_rate = tax_rate if tax_rate is not None else invoice.tax_rate
    discount = discount if discount is not None else invoice.discount

    outcome = apply_line_items(invoice, items, tax_rate, discount)
    if not outcome.success:
        logger.warning(
            "invoice_reprice_rejected",
            extra={"invoice_id": str(invoice.id), "error_code": outcome.error_code},
        )
        return Outcome.fail(outcome.error)
    derived = outcome.value

    updated = replace(
        invoice,
        line_items=items,
        tax_rate=derived.tax_rate,
        discount=derived.discount,
        subtotal=derived.subtotal,
        tax_amount=derived.tax_amount,
        total=derived.total,
        version=invoice.version + 1,
    )
    logger.info(
        "invoice_repriced",
        extra={
            "invoice_id": str(invoice.id),
            "subtotal_minor": derived.subtotal.minor_units,
            "tax_minor": derived.tax_amount.minor_units,
            "total_minor": derived.total.minor_units,
        },
    )
    return Outcome.ok(updated)


# -----------------------------------------------------------------------------
# Non-transition edits
# -----------------------------------------------------------------------------


def annotate(
    invoice: Invoice,
    *,
    notes: str | None = _UNSET,
    terms: str | None = _UNSET,
    metadata: Mapping[str, Any] | None = None,
) -> Outcome[Invoice]:
    """
    Update notes, terms or metadata.

    Notes and metadata may change in any state. Terms are part of the
    commercial agreement and are frozen once the invoice is paid or
    cancelled.
    """
    changes: dict[str, Any] = {}
    if notes is not _UNSET:
        changes["notes"] = notes
    if terms is not _UNSET:
        if invoice.is_terminal and terms != invoice.terms:
            return Outcome.fail(
                InvoiceImmutableError(
                    str(invoice.id), invoice.status.value, "terms cannot change"
                )
            )
        changes["terms"] = terms
    if metadata:
        try:
            changes["metadata"] = invoice.metadata.merged_with(INVOICE_METADATA, metadata)
        except InvalidMetadataError as e:
            return Outcome.fail(e)
    if not changes:
        return Outcome.ok(invoice)
    return Outcome.ok(replace(invoice, version=invoice.version + 1, **changes))


def record_email_status(invoice: Invoice, email_status: EmailStatus) -> Outcome[Invoice]:
    """Record a delivery report from the mail collaborator. No financial effect."""
    email_status = EmailStatus(email_status)
    if email_status == invoice.email_status:
        return Outcome.ok(invoice)
    logger.info(
        "invoice_email_status_recorded",
        extra={
            "invoice_id": str(invoice.id),
            "from_email_status": invoice.email_status.value,
            "to_email_status": email_status.value,
        },
    )
    return Outcome.ok(replace(invoice, email_status=email_status, version=invoice.version + 1))


# -----------------------------------------------------------------------------
# Transitions
# -----------------------------------------------------------------------------


def _settles_zero_total(invoice: Invoice, amount: Money) -> bool:
    # nothing is owed, so a zero receipt is the settlement
    return amount.is_zero and invoice.total.is_zero and invoice.amount_paid.is_zero


def _validate_payment(
    invoice: Invoice,
    signal: PaymentReceived,
    config: InvoicingConfig,
) -> BillingKernelError | None:
    amount = signal.amount
    if amount.currency != invoice.currency:
        return CurrencyMismatchError(invoice.currency.code, amount.currency.code)
    if not amount.is_positive and not _settles_zero_total(invoice, amount):
        return InvalidPaymentError(str(invoice.id), str(amount), "payment must be positive")
    if invoice.issue_date is not None and signal.received_on < invoice.issue_date:
        return InvalidPaymentError(
            str(invoice.id), str(amount),
            f"received {signal.received_on.isoformat()} before issue date "
            f"{invoice.issue_date.isoformat()}",
        )
    paid_after = invoice.amount_paid + amount
    if paid_after > invoice.total and not config.allow_overpayment:
        return InvalidPaymentError(
            str(invoice.id), str(amount),
            f"exceeds outstanding balance {invoice.total - invoice.amount_paid}",
        )
    return None


def _select(
    candidates: tuple[Transition, ...],
    context: GuardContext,
) -> tuple[Transition | None, BillingKernelError | None]:
    """First candidate whose guards all pass, else the blocking error.

    The error reported is the first failing guard of the last candidate,
    the most permissive route through the workflow.
    """
    blocking: BillingKernelError | None = None
    for candidate in candidates:
        failed = next(
            (g for g in candidate.guards if not _GUARDS.evaluate(g, context)), None
        )
        if failed is None:
            return candidate, None
        blocking = _GUARDS.error_for(failed, context)
    return None, blocking


def _apply_effects(
    invoice: Invoice,
    signal: Signal,
    to_status: InvoiceStatus,
    client: Client | None,
    config: InvoicingConfig,
) -> Invoice:
    changes: dict[str, Any] = {"status": to_status, "version": invoice.version + 1}

    if isinstance(signal, SendInvoice):
        issue_date = invoice.issue_date or signal.at
        changes["issue_date"] = issue_date
        if invoice.due_date is None:
            terms = client.payment_terms if client is not None else config.default_payment_terms
            changes["due_date"] = issue_date + timedelta(days=PaymentTerms(terms).days)
        if invoice.email_status == EmailStatus.NOT_SENT:
            changes["email_status"] = EmailStatus.SENT

    elif signal.action == "read_receipt":
        changes["email_status"] = EmailStatus.OPENED

    elif isinstance(signal, PaymentReceived):
        record = PaymentRecord(
            amount=signal.amount,
            received_on=signal.received_on,
            reference=signal.reference,
            method=signal.method,
            metadata=PAYMENT_METADATA.parse(signal.metadata),
        )
        changes["payments"] = invoice.payments + (record,)
        changes["amount_paid"] = invoice.amount_paid + signal.amount
        if to_status == InvoiceStatus.PAID:
            changes["paid_date"] = signal.received_on

    return replace(invoice, **changes)


def transition(
    invoice: Invoice,
    signal: Signal,
    directory: ClientDirectory,
    config: InvoicingConfig | None = None,
) -> Outcome[TransitionOutcome]:
    """
    Apply ``signal`` to ``invoice``.

    Returns the new invoice and its lifecycle events, or the typed error
    that prevented the transition. The input invoice is never modified.
    """
    config = config or InvoicingConfig()
    action = signal.action
    from_state = invoice.status.value

    with LogContext.bind(invoice_id=str(invoice.id), client_id=str(invoice.client_id)):
        outcome = _transition(invoice, signal, directory, config, action, from_state)
        if outcome.success:
            logger.info(
                "invoice_transitioned",
                extra={
                    "action": action,
                    "from_status": from_state,
                    "to_status": outcome.value.to_status.value,
                    "events": [e.value for e in outcome.value.event_types],
                    "version": outcome.value.invoice.version,
                },
            )
        else:
            logger.warning(
                "invoice_transition_rejected",
                extra={
                    "action": action,
                    "from_status": from_state,
                    "error_code": outcome.error_code,
                    "reason": str(outcome.error),
                },
            )
        return outcome


def _transition(
    invoice: Invoice,
    signal: Signal,
    directory: ClientDirectory,
    config: InvoicingConfig,
    action: str,
    from_state: str,
) -> Outcome[TransitionOutcome]:
    if INVOICE_WORKFLOW.is_terminal(from_state):
        return Outcome.fail(
            InvalidTransitionError(
                str(invoice.id), from_state, action, reason=f"invoice is {from_state}"
            )
        )

    candidates = INVOICE_WORKFLOW.find(from_state, action)
    if not candidates:
        return Outcome.fail(InvalidTransitionError(str(invoice.id), from_state, action))

    paid_after: Money | None = None
    if isinstance(signal, PaymentReceived):
        rejected = _validate_payment(invoice, signal, config)
        if rejected is not None:
            return Outcome.fail(rejected)
        try:
            PAYMENT_METADATA.parse(signal.metadata)
        except InvalidMetadataError as e:
            return Outcome.fail(e)
        paid_after = invoice.amount_paid + signal.amount

    client = directory.get(invoice.client_id) if action == "send" else None

    context = GuardContext(
        invoice=invoice,
        signal=signal,
        client=client,
        config=config,
        paid_after=paid_after,
    )
    chosen, blocking = _select(candidates, context)
    if chosen is None:
        return Outcome.fail(blocking)

    to_status = InvoiceStatus(chosen.to_state)
    updated = _apply_effects(invoice, signal, to_status, client, config)

    occurred_on = signal_date(signal)
    events = tuple(
        LifecycleEvent(
            event_type=LifecycleEventType(name),
            invoice=updated,
            occurred_on=occurred_on,
            amount=(
                signal.amount
                if isinstance(signal, PaymentReceived)
                and name == LifecycleEventType.PAYMENT_RECEIVED.value
                else updated.total
            ),
        )
        for name in chosen.emits
    )

    return Outcome.ok(
        TransitionOutcome(
            invoice=updated,
            from_status=invoice.status,
            to_status=to_status,
            events=events,
        )
    )
