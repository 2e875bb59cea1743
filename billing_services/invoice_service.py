"""
billing_services.invoice_service -- Invoice orchestration.

Responsibility:
    The application-facing entry point for invoices. Each operation loads
    the invoice from the store, applies a lifecycle operation, saves the
    result and publishes the emitted lifecycle events. Also builds drafts
    for recurring generation requests and the receivables and revenue
    reports.

Architecture position:
    Services layer. Thin coordinator: business rules live in
    ``billing_modules.invoicing.lifecycle`` and the engines; persistence
    lives behind the ``InvoiceStore`` port.

Invariants enforced:
    - Load, transition, save and publish for one invoice happen under a
      per-invoice lock, so two signals for the same invoice never race.
    - Nothing is saved or published when the lifecycle rejects an
      operation; the stored invoice stays as it was.
    - Events are published only after the new invoice has been saved.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import date
from typing import Any
from uuid import UUID

from billing_engines.aging import AgingReport, age_receivables, buckets_from_boundaries
from billing_engines.revenue import RevenueSummary, quarterly_breakdown, summarize_revenue
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.domain.outcome import Outcome
from billing_kernel.domain.values import Currency, Money, Scalar
from billing_kernel.exceptions import CurrencyMismatchError, InvoiceNotFoundError
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing import lifecycle
from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.events import (
    CancelInvoice,
    CheckOverdue,
    GenerateInvoiceRequest,
    LifecycleEvent,
    LifecycleEventType,
    PaymentReceived,
    ReadReceipt,
    SendInvoice,
    Signal,
)
from billing_modules.invoicing.lifecycle import TransitionOutcome
from billing_modules.invoicing.models import EmailStatus, Invoice, LineItem
from billing_modules.invoicing.ports import ClientDirectory, InvoiceStore
from billing_services.event_bus import EventBus
from billing_services.locks import KeyedLocks

logger = get_logger("services.invoice_service")


class InvoiceService:
    """Load, change, save and publish invoices."""

    def __init__(
        self,
        store: InvoiceStore,
        directory: ClientDirectory,
        bus: EventBus | None = None,
        config: InvoicingConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._bus = bus or EventBus()
        self._config = config or InvoicingConfig()
        self._clock = clock or SystemClock()
        self._locks = KeyedLocks()

    @property
    def bus(self) -> EventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Creation and editing
    # ------------------------------------------------------------------

    def create_draft(self, **fields: Any) -> Outcome[Invoice]:
        """Create and save a draft; ``fields`` as for ``lifecycle.new_draft``.

        The currency defaults to the client's billing currency, or the
        configured currency when the client is not in the directory. An
        explicit currency other than the client's is rejected.
        """
        client = self._directory.get(fields["client_id"]) if "client_id" in fields else None
        if client is None:
            fields.setdefault("currency", self._config.currency)
        else:
            currency = fields.setdefault("currency", client.currency)
            if isinstance(currency, str):
                currency = Currency(currency)
            if currency != client.currency:
                return Outcome.fail(CurrencyMismatchError(client.currency.code, currency.code))
        outcome = lifecycle.new_draft(**fields)
        if not outcome.success:
            return outcome
        invoice = outcome.value
        self._store.save(invoice)
        self._bus.publish(
            LifecycleEvent(
                event_type=LifecycleEventType.INVOICE_CREATED,
                invoice=invoice,
                occurred_on=self._clock.today(),
                amount=invoice.total,
            )
        )
        return outcome

    def generate_from_template(
        self,
        request: GenerateInvoiceRequest,
        invoice_number: str,
    ) -> Outcome[Invoice]:
        """Build the draft a recurring generation request asks for."""
        template = self._store.get(request.template_invoice_id)
        if template is None:
            return Outcome.fail(InvoiceNotFoundError(str(request.template_invoice_id)))
        return self.create_draft(
            client_id=template.client_id,
            invoice_number=invoice_number,
            currency=template.currency,
            line_items=tuple(
                LineItem(
                    description=item.description,
                    quantity=item.quantity,
                    rate=item.rate,
                    taxable=item.taxable,
                )
                for item in template.line_items
            ),
            tax_rate=template.tax_rate,
            discount=template.discount,
            issue_date=request.issue_date,
            notes=template.notes,
            terms=template.terms,
            recurrence_id=request.recurrence_id,
            metadata=template.metadata.as_dict(),
        )

    def _update(
        self,
        invoice_id: UUID,
        change: Callable[[Invoice], Outcome[Invoice]],
    ) -> Outcome[Invoice]:
        with LogContext.bind(invoice_id=str(invoice_id)), self._locks.hold(invoice_id):
            invoice = self._store.get(invoice_id)
            if invoice is None:
                return Outcome.fail(InvoiceNotFoundError(str(invoice_id)))
            outcome = change(invoice)
            if outcome.success and outcome.value is not invoice:
                self._store.save(outcome.value)
            return outcome

    def reprice(
        self,
        invoice_id: UUID,
        items: Sequence[LineItem] | None = None,
        tax_rate: Scalar | None = None,
        discount: Money | None = None,
    ) -> Outcome[Invoice]:
        return self._update(
            invoice_id, lambda inv: lifecycle.reprice(inv, items, tax_rate, discount)
        )

    def annotate(self, invoice_id: UUID, **changes: Any) -> Outcome[Invoice]:
        return self._update(invoice_id, lambda inv: lifecycle.annotate(inv, **changes))

    def record_email_status(self, invoice_id: UUID, status: EmailStatus) -> Outcome[Invoice]:
        return self._update(
            invoice_id, lambda inv: lifecycle.record_email_status(inv, status)
        )

    # ------------------------------------------------------------------
    # Lifecycle signals
    # ------------------------------------------------------------------

    def apply(self, invoice_id: UUID, signal: Signal) -> Outcome[TransitionOutcome]:
        """Apply ``signal`` to the stored invoice, save and publish."""
        with LogContext.bind(invoice_id=str(invoice_id)), self._locks.hold(invoice_id):
            invoice = self._store.get(invoice_id)
            if invoice is None:
                logger.warning("invoice_not_found", extra={"action": signal.action})
                return Outcome.fail(InvoiceNotFoundError(str(invoice_id)))

            outcome = lifecycle.transition(invoice, signal, self._directory, self._config)
            if not outcome.success:
                return outcome

            self._store.save(outcome.value.invoice)
            self._bus.publish_all(outcome.value.events)
            return outcome

    def send(self, invoice_id: UUID, at: date | None = None) -> Outcome[TransitionOutcome]:
        return self.apply(invoice_id, SendInvoice(at=at or self._clock.today()))

    def record_read_receipt(
        self, invoice_id: UUID, at: date | None = None
    ) -> Outcome[TransitionOutcome]:
        return self.apply(invoice_id, ReadReceipt(at=at or self._clock.today()))

    def record_payment(
        self,
        invoice_id: UUID,
        amount: Money,
        received_on: date | None = None,
        reference: str | None = None,
        method: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> Outcome[TransitionOutcome]:
        return self.apply(
            invoice_id,
            PaymentReceived(
                amount=amount,
                received_on=received_on or self._clock.today(),
                reference=reference,
                method=method,
                metadata=metadata,
            ),
        )

    def check_overdue(
        self, invoice_id: UUID, as_of: date | None = None
    ) -> Outcome[TransitionOutcome]:
        return self.apply(invoice_id, CheckOverdue(as_of=as_of or self._clock.today()))

    def cancel(
        self, invoice_id: UUID, at: date | None = None, reason: str | None = None
    ) -> Outcome[TransitionOutcome]:
        return self.apply(invoice_id, CancelInvoice(at=at or self._clock.today(), reason=reason))

    def sweep_overdue(self, as_of: date | None = None) -> list[TransitionOutcome]:
        """Move every sent or viewed invoice past its due date to overdue."""
        as_of = as_of or self._clock.today()
        moved: list[TransitionOutcome] = []
        for invoice in self._store.list_all():
            if invoice.status.value not in ("sent", "viewed") or not invoice.is_past_due(as_of):
                continue
            outcome = self.check_overdue(invoice.id, as_of)
            if outcome.success:
                moved.append(outcome.value)
        logger.info(
            "overdue_sweep_completed",
            extra={"as_of": as_of.isoformat(), "moved_count": len(moved)},
        )
        return moved

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def get(self, invoice_id: UUID) -> Invoice | None:
        return self._store.get(invoice_id)

    def aging_report(
        self,
        as_of: date | None = None,
        client_id: UUID | None = None,
    ) -> Outcome[AgingReport]:
        invoices = (
            self._store.list_for_client(client_id)
            if client_id is not None
            else self._store.list_all()
        )
        return age_receivables(
            invoices,
            as_of or self._clock.today(),
            buckets_from_boundaries(self._config.aging_buckets),
        )

    def revenue_summary(self, start: date, end: date) -> Outcome[RevenueSummary]:
        return summarize_revenue(self._store.list_all(), start, end)

    def quarterly_revenue(self, year: int) -> Outcome[tuple[RevenueSummary, ...]]:
        return quarterly_breakdown(self._store.list_all(), year)
