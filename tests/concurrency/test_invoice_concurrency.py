"""
Concurrent payment signals against one invoice.

Each thread waits on a barrier so the payments land together. The
per-invoice lock in InvoiceService must serialize them: the invoice is
never overpaid, exactly one payment completes it, and the client
aggregates agree with the final stored invoice.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from threading import Barrier

import pytest

from billing_modules.invoicing.models import InvoiceStatus

THREADS = 8


@pytest.fixture
def sent_invoice(invoice_service, aggregator, client, make_item):
    invoice = invoice_service.create_draft(
        client_id=client.id,
        invoice_number="INV-RACE",
        line_items=(make_item(rate="400.00"),),
    ).unwrap()
    invoice_service.send(invoice.id, at=date(2024, 1, 15)).unwrap()
    return invoice


def _race(invoice_service, invoice_id, amounts):
    barrier = Barrier(len(amounts))

    def pay(amount):
        barrier.wait()
        return invoice_service.record_payment(
            invoice_id, amount, received_on=date(2024, 1, 25)
        )

    with ThreadPoolExecutor(max_workers=len(amounts)) as pool:
        return list(pool.map(pay, amounts))


class TestConcurrentPayments:

    def test_full_payments_settle_once(self, invoice_service, sent_invoice, usd):
        results = _race(invoice_service, sent_invoice.id, [usd("400.00")] * THREADS)

        assert sum(1 for r in results if r.success) == 1
        stored = invoice_service.get(sent_invoice.id)
        assert stored.status == InvoiceStatus.PAID
        assert stored.amount_paid == usd("400.00")
        assert len(stored.payments) == 1

    def test_partial_payments_never_overpay(self, invoice_service, sent_invoice, usd):
        results = _race(invoice_service, sent_invoice.id, [usd("100.00")] * THREADS)

        assert sum(1 for r in results if r.success) == 4
        stored = invoice_service.get(sent_invoice.id)
        assert stored.status == InvoiceStatus.PAID
        assert stored.amount_paid == stored.total
        assert len(stored.payments) == 4

    def test_aggregates_match_final_state(
        self, invoice_service, aggregator, sent_invoice, client, usd
    ):
        _race(invoice_service, sent_invoice.id, [usd("200.00")] * THREADS)

        financials = aggregator.get(client.id)
        assert financials.lifetime_billed == usd("400.00")
        assert financials.lifetime_paid == usd("400.00")
        assert financials.outstanding == usd("0.00")
        assert financials.paid_invoice_count == 1
