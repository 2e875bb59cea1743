"""
Tests for ClientFinancialAggregator.

Covers:
- Recompute on lifecycle events
- Event subscription filter
- Currency fallback and mismatch handling
- Draft, send and payment driven through InvoiceService
- Per-client serialization under concurrent recomputation
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date
from threading import Barrier
from uuid import uuid4

import pytest

from billing_kernel.domain.values import Currency
from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.events import LifecycleEvent, LifecycleEventType
from billing_modules.invoicing.models import ClientHealth, InvoiceStatus
from billing_services.client_aggregator import TRIGGER_EVENTS, ClientFinancialAggregator
from billing_services.stores import InMemoryClientDirectory, InMemoryInvoiceStore


def _event(event_type, invoice):
    return LifecycleEvent(
        event_type=event_type, invoice=invoice, occurred_on=date(2024, 1, 15), amount=invoice.total
    )


class TestRecompute:

    def test_unknown_before_first_event(self, aggregator, client):
        assert aggregator.get(client.id) is None

    def test_recompute_from_store(self, aggregator, invoice_store, make_invoice, client, usd):
        sent = replace(make_invoice(), status=InvoiceStatus.SENT, issue_date=date(2024, 1, 1))
        invoice_store.save(sent)
        fin = aggregator.recompute(client.id).unwrap()
        assert fin.lifetime_billed == usd("100.00")
        assert aggregator.get(client.id) == fin

    def test_handle_uses_event_client(self, aggregator, invoice_store, make_invoice, client):
        sent = replace(make_invoice(), status=InvoiceStatus.SENT)
        invoice_store.save(sent)
        aggregator.handle(_event(LifecycleEventType.INVOICE_SENT, sent))
        assert aggregator.get(client.id).invoice_count == 1

    def test_subscription_filter(self, aggregator, bus, invoice_store, make_invoice, client):
        draft = make_invoice()
        invoice_store.save(draft)
        bus.publish(_event(LifecycleEventType.INVOICE_CREATED, draft))
        assert aggregator.get(client.id) is None

        bus.publish(_event(LifecycleEventType.INVOICE_CANCELLED, draft))
        assert aggregator.get(client.id) is not None

    def test_trigger_events(self):
        assert LifecycleEventType.INVOICE_CREATED not in TRIGGER_EVENTS
        assert LifecycleEventType.INVOICE_VIEWED not in TRIGGER_EVENTS
        assert LifecycleEventType.INVOICE_PAID in TRIGGER_EVENTS

    def test_unknown_client_uses_config_currency(self, invoice_store):
        config = InvoicingConfig(default_currency="EUR")
        aggregator = ClientFinancialAggregator(invoice_store, InMemoryClientDirectory(), config)
        fin = aggregator.recompute(uuid4()).unwrap()
        assert fin.currency == Currency("EUR")

    def test_mismatch_keeps_previous(self, aggregator, invoice_store, make_invoice, make_item, client):
        first = aggregator.recompute(client.id).unwrap()
        eur = make_invoice(items=(make_item(currency="EUR"),), currency="EUR")
        invoice_store.save(replace(eur, status=InvoiceStatus.SENT))

        outcome = aggregator.recompute(client.id)
        assert outcome.error_code == "CURRENCY_MISMATCH"
        assert aggregator.get(client.id) == first

    def test_health_uses_config_thresholds(self, invoice_store, directory, make_invoice, client):
        paid = replace(
            make_invoice(),
            status=InvoiceStatus.PAID,
            issue_date=date(2024, 1, 1),
            paid_date=date(2024, 1, 11),
        )
        invoice_store.save(paid)
        default = ClientFinancialAggregator(invoice_store, directory).recompute(client.id).unwrap()
        assert default.health == ClientHealth.EXCELLENT

        strict = InvoicingConfig.from_dict({"health": {"excellent_max_days": 5}})
        tiered = ClientFinancialAggregator(invoice_store, directory, strict).recompute(client.id).unwrap()
        assert tiered.health == ClientHealth.GOOD


class TestThroughInvoiceService:
    """Financials follow invoices driven through the service and event bus."""

    @pytest.fixture
    def draft(self, invoice_service, client, scenario_items, usd):
        return invoice_service.create_draft(
            client_id=client.id,
            invoice_number="INV-1001",
            line_items=scenario_items,
            tax_rate="0.08",
            discount=usd("10.00"),
        ).unwrap()

    def test_draft_not_aggregated(self, aggregator, draft, client):
        assert aggregator.get(client.id) is None

    def test_sent_then_paid(self, invoice_service, aggregator, draft, client, usd):
        invoice_service.send(draft.id).unwrap()
        before = aggregator.get(client.id)
        assert before.lifetime_billed == usd("148.00")
        assert before.lifetime_paid.is_zero
        assert before.outstanding == usd("148.00")
        assert before.invoice_count == 1

        invoice_service.record_payment(draft.id, usd("148.00"), received_on=date(2024, 1, 25)).unwrap()
        after = aggregator.get(client.id)
        assert after.lifetime_paid - before.lifetime_paid == usd("148.00")
        assert after.lifetime_billed == before.lifetime_billed
        assert after.outstanding.is_zero
        assert after.average_payment_days == 10

    def test_partial_payment_tracked_separately(self, invoice_service, aggregator, draft, client, usd):
        invoice_service.send(draft.id).unwrap()
        invoice_service.record_payment(draft.id, usd("48.00"), received_on=date(2024, 1, 20)).unwrap()
        fin = aggregator.get(client.id)
        assert fin.lifetime_paid.is_zero
        assert fin.outstanding == usd("148.00")
        assert fin.partially_collected == usd("48.00")

    def test_foreign_currency_draft_cannot_break_recompute(
        self, invoice_service, aggregator, draft, client, make_item
    ):
        rejected = invoice_service.create_draft(
            client_id=client.id,
            invoice_number="INV-EU",
            currency="EUR",
            line_items=(make_item(currency="EUR"),),
        )
        assert rejected.error_code == "CURRENCY_MISMATCH"

        invoice_service.send(draft.id).unwrap()
        assert aggregator.recompute(client.id).success


class TestConcurrentRecompute:
    """Concurrent events for the same client converge on the full recomputation."""

    def test_parallel_recompute_consistent(self, directory, client, make_invoice, usd):
        store = InMemoryInvoiceStore()
        aggregator = ClientFinancialAggregator(store, directory)
        invoices = [
            replace(make_invoice(), status=InvoiceStatus.SENT, issue_date=date(2024, 1, 1))
            for _ in range(20)
        ]
        barrier = Barrier(len(invoices))

        def save_and_recompute(invoice):
            barrier.wait()
            store.save(invoice)
            return aggregator.handle(_event(LifecycleEventType.INVOICE_SENT, invoice))

        with ThreadPoolExecutor(max_workers=len(invoices)) as pool:
            outcomes = list(pool.map(save_and_recompute, invoices))

        assert all(o.success for o in outcomes)
        # a final recompute sees every saved invoice
        final = aggregator.recompute(client.id).unwrap()
        assert final.lifetime_billed == usd("2000.00")
        assert final.outstanding == final.lifetime_billed - final.lifetime_paid

    def test_different_clients_do_not_share_locks(self, invoice_store, directory):
        aggregator = ClientFinancialAggregator(invoice_store, directory)
        ids = [uuid4() for _ in range(5)]
        with ThreadPoolExecutor(max_workers=5) as pool:
            list(pool.map(aggregator.recompute, ids))
        assert all(aggregator.get(i) is not None for i in ids)
