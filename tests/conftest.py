"""
Pytest fixtures for the billing test suite.

Provides:
- Structured logging configuration and log capture
- A deterministic clock
- Clients, line items and draft invoices
- In-memory stores, the event bus and wired services
"""

import itertools
import json
import logging
from datetime import date, datetime, UTC
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.domain.values import Currency, Money, Quantity
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_modules.invoicing import lifecycle
from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.models import Client, LineItem, PaymentTerms
from billing_services.client_aggregator import ClientFinancialAggregator
from billing_services.event_bus import EventBus
from billing_services.invoice_service import InvoiceService
from billing_services.recurring_scheduler import RecurringInvoiceScheduler
from billing_services.stores import (
    InMemoryClientDirectory,
    InMemoryInvoiceStore,
    InMemoryRecurringStore,
    RecordingGenerationSink,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, invoice_service):
            invoice_service.send(invoice.id)
            logs = captured_logs()
            assert any(r["message"] == "invoice_transitioned" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and money fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def usd():
    """``usd("148.00")`` -> Money(148.00, 'USD')."""

    def _usd(amount: str | int | Decimal) -> Money:
        return Money.of(amount, "USD")

    return _usd


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def client():
    return Client(
        id=uuid4(),
        name="Acme Studio",
        email="billing@acme.test",
        currency=Currency("USD"),
        payment_terms=PaymentTerms.NET_30,
    )


@pytest.fixture
def directory(client):
    return InMemoryClientDirectory([client])


@pytest.fixture
def config():
    return InvoicingConfig()


@pytest.fixture
def make_item():
    """Factory for line items priced in USD."""

    def _make(
        rate: str = "100.00",
        quantity: str = "1",
        taxable: bool = True,
        description: str = "Consulting",
        currency: str = "USD",
    ) -> LineItem:
        return LineItem(
            description=description,
            quantity=Quantity.of(quantity, "hour"),
            rate=Money.of(rate, currency),
            taxable=taxable,
        )

    return _make


@pytest.fixture
def make_invoice(client, make_item):
    """Factory for draft invoices; defaults to one $100 taxable line."""
    numbers = itertools.count(1)

    def _make(items=None, tax_rate="0", discount=None, client_id=None, **fields):
        items = (make_item(),) if items is None else tuple(items)
        return lifecycle.new_draft(
            client_id=client_id or client.id,
            invoice_number=fields.pop("invoice_number", f"INV-{next(numbers):04d}"),
            currency=fields.pop("currency", "USD"),
            line_items=items,
            tax_rate=Decimal(tax_rate),
            discount=discount,
            **fields,
        ).unwrap()

    return _make


@pytest.fixture
def scenario_items(make_item):
    """$100 taxable plus $50 non-taxable."""
    return (
        make_item(rate="100.00", taxable=True, description="Design"),
        make_item(rate="50.00", taxable=False, description="Hosting"),
    )


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def invoice_store():
    return InMemoryInvoiceStore()


@pytest.fixture
def recurring_store():
    return InMemoryRecurringStore()


@pytest.fixture
def generation_sink():
    return RecordingGenerationSink()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def aggregator(invoice_store, directory, config, bus):
    agg = ClientFinancialAggregator(invoice_store, directory, config)
    agg.subscribe(bus)
    return agg


@pytest.fixture
def scheduler(recurring_store, generation_sink, config, bus):
    sched = RecurringInvoiceScheduler(recurring_store, generation_sink, config)
    sched.subscribe(bus)
    return sched


@pytest.fixture
def invoice_service(invoice_store, directory, bus, config, deterministic_clock):
    return InvoiceService(
        invoice_store,
        directory,
        bus=bus,
        config=config,
        clock=deterministic_clock,
    )
