"""
Tests for client financial aggregation.

Covers:
- Lifetime billed / paid / outstanding
- Average payment days
- Health tiers
- Order independence and currency handling
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_engines.client_financials import (
    HealthThresholds,
    average_payment_days,
    classify_health,
    recompute_client_aggregates,
)
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import CurrencyMismatchError
from billing_modules.invoicing.models import ClientFinancials, ClientHealth, InvoiceStatus


@pytest.fixture
def issued(make_invoice, make_item):
    """Build an invoice in a given state with the dates set."""

    def _issued(status, issue=date(2024, 1, 1), paid_on=None, amount="100.00", **kw):
        inv = make_invoice(items=(make_item(rate=amount),), **kw)
        changes = {"status": status, "issue_date": issue}
        if status == InvoiceStatus.PAID:
            changes["paid_date"] = paid_on
            changes["amount_paid"] = inv.total
        return replace(inv, **changes)

    return _issued


class TestRecomputeClientAggregates:
    """Full recomputation from the client's invoices."""

    def test_no_invoices(self, client):
        fin = recompute_client_aggregates(client.id, [], currency=Currency("USD")).unwrap()
        assert fin.lifetime_billed.is_zero
        assert fin.lifetime_paid.is_zero
        assert fin.outstanding.is_zero
        assert fin.average_payment_days == Decimal("0")
        assert fin.health == ClientHealth.EXCELLENT

    def test_drafts_and_cancelled_not_billed(self, client, issued):
        invoices = [
            issued(InvoiceStatus.DRAFT),
            issued(InvoiceStatus.CANCELLED),
        ]
        fin = recompute_client_aggregates(client.id, invoices).unwrap()
        assert fin.lifetime_billed.is_zero
        assert fin.invoice_count == 0

    def test_billed_paid_outstanding(self, client, issued, usd):
        invoices = [
            issued(InvoiceStatus.PAID, paid_on=date(2024, 1, 11)),
            issued(InvoiceStatus.SENT),
            issued(InvoiceStatus.OVERDUE),
            issued(InvoiceStatus.DRAFT),
        ]
        fin = recompute_client_aggregates(client.id, invoices).unwrap()

        assert fin.lifetime_billed == usd("300.00")
        assert fin.lifetime_paid == usd("100.00")
        assert fin.outstanding == usd("200.00")
        assert fin.invoice_count == 3
        assert fin.paid_invoice_count == 1

    def test_other_clients_ignored(self, client, issued):
        other = issued(InvoiceStatus.SENT, client_id=uuid4())
        fin = recompute_client_aggregates(client.id, [other]).unwrap()
        assert fin.lifetime_billed.is_zero

    def test_partial_payments_reported_separately(self, client, issued, usd):
        sent = replace(issued(InvoiceStatus.SENT), amount_paid=usd("40.00"))
        fin = recompute_client_aggregates(client.id, [sent]).unwrap()
        assert fin.partially_collected == usd("40.00")
        assert fin.outstanding == usd("100.00")

    def test_order_independent(self, client, issued):
        invoices = [
            issued(InvoiceStatus.PAID, paid_on=date(2024, 1, 20)),
            issued(InvoiceStatus.SENT),
            issued(InvoiceStatus.PAID, paid_on=date(2024, 1, 5)),
        ]
        forward = recompute_client_aggregates(client.id, invoices).unwrap()
        backward = recompute_client_aggregates(client.id, list(reversed(invoices))).unwrap()
        assert forward == backward

    def test_mixed_currencies_fail(self, client, make_item, make_invoice):
        eur = make_invoice(items=(make_item(currency="EUR"),), currency="EUR")
        eur = replace(eur, status=InvoiceStatus.SENT)
        outcome = recompute_client_aggregates(client.id, [eur], currency=Currency("USD"))
        assert isinstance(outcome.error, CurrencyMismatchError)

    def test_currency_defaults_to_usd(self, client):
        fin = recompute_client_aggregates(client.id, []).unwrap()
        assert fin.currency == Currency("USD")


class TestAveragePaymentDays:

    def test_mean_of_paid_invoices(self, issued):
        invoices = [
            issued(InvoiceStatus.PAID, paid_on=date(2024, 1, 11)),  # 10 days
            issued(InvoiceStatus.PAID, paid_on=date(2024, 1, 16)),  # 15 days
        ]
        assert average_payment_days(invoices) == Decimal("12.50")

    def test_rounded_to_hundredths(self, issued):
        invoices = [
            issued(InvoiceStatus.PAID, paid_on=date(2024, 1, 2)),
            issued(InvoiceStatus.PAID, paid_on=date(2024, 1, 3)),
            issued(InvoiceStatus.PAID, paid_on=date(2024, 1, 3)),
        ]
        assert average_payment_days(invoices) == Decimal("1.67")

    def test_unpaid_ignored(self, issued):
        assert average_payment_days([issued(InvoiceStatus.SENT)]) == Decimal("0")


class TestClassifyHealth:
    """Tier boundaries with default thresholds."""

    def setup_method(self):
        self.billed = Money.of("1000.00", "USD")

    def test_excellent(self):
        assert classify_health(Money.zero("USD"), self.billed, Decimal("10")) == ClientHealth.EXCELLENT

    def test_good_when_slow_but_settled(self):
        assert classify_health(Money.zero("USD"), self.billed, Decimal("20")) == ClientHealth.GOOD

    def test_good_with_small_balance(self):
        outstanding = Money.of("100.00", "USD")  # 10%
        assert classify_health(outstanding, self.billed, Decimal("5")) == ClientHealth.GOOD

    def test_warning(self):
        outstanding = Money.of("500.00", "USD")
        assert classify_health(outstanding, self.billed, Decimal("10")) == ClientHealth.WARNING

    def test_at_risk(self):
        outstanding = Money.of("500.00", "USD")
        assert classify_health(outstanding, self.billed, Decimal("90")) == ClientHealth.AT_RISK

    def test_nothing_billed_ratio_zero(self):
        zero = Money.zero("USD")
        assert classify_health(zero, zero, Decimal("0")) == ClientHealth.EXCELLENT

    def test_custom_thresholds(self):
        strict = HealthThresholds(excellent_max_days=Decimal("5"))
        assert classify_health(
            Money.zero("USD"), self.billed, Decimal("10"), strict
        ) == ClientHealth.GOOD


class TestHealthThresholds:

    def test_ratio_out_of_range(self):
        with pytest.raises(ValueError):
            HealthThresholds(good_max_ratio=Decimal("1.5"))

    def test_ratios_must_be_ordered(self):
        with pytest.raises(ValueError):
            HealthThresholds(good_max_ratio=Decimal("0.5"), warning_max_ratio=Decimal("0.3"))

    def test_days_must_be_ordered(self):
        with pytest.raises(ValueError):
            HealthThresholds(excellent_max_days=Decimal("40"))


class TestClientFinancialsInvariant:

    def test_outstanding_must_match(self, client):
        usd = Currency("USD")
        with pytest.raises(ValueError):
            ClientFinancials(
                client_id=client.id,
                currency=usd,
                lifetime_billed=Money.of("10", usd),
                lifetime_paid=Money.of("5", usd),
                outstanding=Money.of("1", usd),
                average_payment_days=Decimal("0"),
                health=ClientHealth.GOOD,
            )
