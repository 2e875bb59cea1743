"""
billing_services.recurring_scheduler -- Recurring invoice scheduling.

Responsibility:
    Observes lifecycle events and, for invoices that belong to a
    recurrence, asks the invoice-creation collaborator for the next
    instance. Never builds the invoice itself.

Architecture position:
    Services layer. Calendar arithmetic comes from the pure
    ``billing_engines.recurrence`` engine; schedules are read and written
    through the ``RecurringStore`` port.

Invariants enforced:
    - Only the configured trigger event (``invoice_paid`` by default,
      ``invoice_sent`` optionally) schedules anything.
    - At most one generation request per occurrence date: a repeated or
      concurrent trigger for an already generated occurrence is ignored.
      Work for one schedule is serialized by a per-schedule lock.
    - A schedule whose next occurrence falls on or after its end date is
      deactivated instead of generating.
    - A ``next_date`` on the template's recurrence settings is the first
      generated date and fixes the day of month for the series.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID, uuid4

from billing_engines.recurrence import (
    add_interval,
    advance,
    deactivate,
    is_duplicate,
    next_recurrence,
)
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.events import (
    GenerateInvoiceRequest,
    LifecycleEvent,
    LifecycleEventType,
)
from billing_modules.invoicing.models import Invoice, RecurringInvoice
from billing_modules.invoicing.ports import GenerationSink, RecurringStore
from billing_services.event_bus import EventBus
from billing_services.locks import KeyedLocks

logger = get_logger("services.recurring_scheduler")

_TRIGGERS = {
    "paid": LifecycleEventType.INVOICE_PAID,
    "sent": LifecycleEventType.INVOICE_SENT,
}


class RecurringInvoiceScheduler:
    def __init__(
        self,
        schedules: RecurringStore,
        sink: GenerationSink,
        config: InvoicingConfig | None = None,
    ) -> None:
        self._schedules = schedules
        self._sink = sink
        self._config = config or InvoicingConfig()
        self._trigger = _TRIGGERS[self._config.recurrence_trigger]
        self._locks = KeyedLocks()

    @property
    def trigger(self) -> LifecycleEventType:
        return self._trigger

    def subscribe(self, bus: EventBus) -> None:
        bus.subscribe(self.handle, (self._trigger,))

    def handle(self, event: LifecycleEvent) -> GenerateInvoiceRequest | None:
        """Schedule the next instance after ``event``; returns the request sent."""
        if event.event_type != self._trigger:
            return None
        invoice = event.invoice
        key = invoice.recurrence_id or invoice.id
        with LogContext.bind(invoice_id=invoice.id, recurrence_id=invoice.recurrence_id), \
                self._locks.hold(key):
            as_of = invoice.issue_date or event.occurred_on
            schedule = self._resolve(invoice, as_of)
            if schedule is None:
                return None
            return self._schedule_next(schedule, as_of)

    def _resolve(self, invoice: Invoice, as_of: date) -> RecurringInvoice | None:
        if invoice.recurrence_id is not None:
            schedule = self._schedules.get(invoice.recurrence_id)
            if schedule is None:
                logger.warning(
                    "recurrence_not_found",
                    extra={"recurrence_id": str(invoice.recurrence_id)},
                )
            return schedule

        settings = invoice.recurring
        if settings is None or not settings.enabled:
            return None

        existing = self._schedules.find_by_template(invoice.id)
        if existing is not None:
            return existing

        # a start date chosen on the template also fixes the day of month
        anchor = settings.next_date or as_of
        schedule = RecurringInvoice(
            id=uuid4(),
            template_invoice_id=invoice.id,
            client_id=invoice.client_id,
            frequency=settings.frequency,
            next_date=settings.next_date or add_interval(as_of, settings.frequency),
            end_date=settings.end_date,
            anchor_day=anchor.day,
        )
        self._schedules.save(schedule)
        logger.info(
            "recurrence_created",
            extra={
                "recurrence_id": str(schedule.id),
                "frequency": schedule.frequency.value,
                "next_date": schedule.next_date.isoformat(),
                "end_date": schedule.end_date.isoformat() if schedule.end_date else None,
            },
        )
        return schedule

    def _schedule_next(
        self,
        schedule: RecurringInvoice,
        as_of: date,
    ) -> GenerateInvoiceRequest | None:
        log_extra = {"recurrence_id": str(schedule.id)}
        if not schedule.active:
            logger.info("recurrence_inactive_skipped", extra=log_extra)
            return None

        candidate = next_recurrence(schedule, as_of)
        if candidate is None:
            self._schedules.save(deactivate(schedule))
            logger.info("recurrence_deactivated", extra={**log_extra, "reason": "past_end_date"})
            return None

        if is_duplicate(schedule, candidate):
            logger.info(
                "recurrence_duplicate_trigger_ignored",
                extra={**log_extra, "candidate": candidate.isoformat()},
            )
            return None

        request = GenerateInvoiceRequest(
            recurrence_id=schedule.id,
            template_invoice_id=schedule.template_invoice_id,
            client_id=schedule.client_id,
            issue_date=candidate,
        )
        self._sink.submit(request)

        updated = advance(schedule, candidate)
        self._schedules.save(updated)
        logger.info(
            "recurrence_advanced",
            extra={
                **log_extra,
                "generated_on": candidate.isoformat(),
                "next_date": updated.next_date.isoformat(),
                "active": updated.active,
            },
        )
        return request

    def get_schedule(self, recurrence_id: UUID) -> RecurringInvoice | None:
        return self._schedules.get(recurrence_id)
