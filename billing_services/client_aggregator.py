"""
billing_services.client_aggregator -- Client financial aggregation service.

Responsibility:
    Keeps each client's ``ClientFinancials`` current. Reacts to invoice
    lifecycle events by reloading the client's invoices and recomputing
    the summary with the pure ``recompute_client_aggregates`` engine.

Architecture position:
    Services layer. Reads through the ``InvoiceStore`` and
    ``ClientDirectory`` ports; holds the latest summary per client.

Invariants enforced:
    - Recomputation for one client is serialized by a per-client lock, so
      concurrent events for the same client cannot interleave a stale
      invoice read with a newer summary. Different clients run in
      parallel.
    - The stored summary is always a full recomputation, never an
      incremental adjustment.
"""

from __future__ import annotations

from uuid import UUID

from billing_engines.client_financials import recompute_client_aggregates
from billing_kernel.domain.outcome import Outcome
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.events import LifecycleEvent, LifecycleEventType
from billing_modules.invoicing.models import ClientFinancials
from billing_modules.invoicing.ports import ClientDirectory, InvoiceStore
from billing_services.event_bus import EventBus
from billing_services.locks import KeyedLocks

logger = get_logger("services.client_aggregator")

TRIGGER_EVENTS: tuple[LifecycleEventType, ...] = (
    LifecycleEventType.INVOICE_SENT,
    LifecycleEventType.PAYMENT_RECEIVED,
    LifecycleEventType.INVOICE_PAID,
    LifecycleEventType.INVOICE_OVERDUE,
    LifecycleEventType.INVOICE_CANCELLED,
)


class ClientFinancialAggregator:
    """Per-client serialized recomputation of client financials."""

    def __init__(
        self,
        invoices: InvoiceStore,
        directory: ClientDirectory,
        config: InvoicingConfig | None = None,
    ) -> None:
        self._invoices = invoices
        self._directory = directory
        self._config = config or InvoicingConfig()
        self._locks = KeyedLocks()
        self._financials: dict[UUID, ClientFinancials] = {}

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(self.handle, TRIGGER_EVENTS)

    def handle(self, event: LifecycleEvent) -> Outcome[ClientFinancials]:
        return self.recompute(event.client_id)

    def recompute(self, client_id: UUID) -> Outcome[ClientFinancials]:
        """Reload the client's invoices and replace its stored summary."""
        with LogContext.bind(client_id=str(client_id)), self._locks.hold(client_id):
            client = self._directory.get(client_id)
            currency = client.currency if client is not None else self._config.currency
            invoices = self._invoices.list_for_client(client_id)

            outcome = recompute_client_aggregates(
                client_id,
                invoices,
                currency=currency,
                thresholds=self._config.health,
            )
            if not outcome.success:
                logger.warning(
                    "client_recompute_failed",
                    extra={"error_code": outcome.error_code, "reason": str(outcome.error)},
                )
                return outcome

            self._financials[client_id] = outcome.value
            return outcome

    def get(self, client_id: UUID) -> ClientFinancials | None:
        """Latest summary for the client, or None before its first event."""
        return self._financials.get(client_id)
