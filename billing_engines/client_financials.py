"""
Module: billing_engines.client_financials
Responsibility:
    Recompute a client's derived financial summary from the invoices that
    reference it: lifetime billed, lifetime paid, outstanding, average
    days to pay and a health tier.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The services layer (ClientFinancialAggregator) loads the invoices and
    serializes recomputation per client; this module only computes.

Invariants enforced:
    - outstanding == lifetime_billed - lifetime_paid, always.
    - lifetime_billed sums totals of every non-draft, non-cancelled
      invoice; lifetime_paid sums totals of paid invoices.
    - Deterministic, idempotent and order-independent: the result depends
      only on the multiset of invoices passed in.
    - average_payment_days is 0 when the client has no paid invoices.

Failure modes (returned as a failed Outcome):
    - CurrencyMismatchError when the client's counted invoices mix
      currencies.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal
from uuid import UUID

from billing_engines.tracer import traced_engine
from billing_kernel.domain.outcome import Outcome
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import CurrencyMismatchError
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import (
    ClientFinancials,
    ClientHealth,
    Invoice,
    InvoiceStatus,
)

logger = get_logger("engines.client_financials")

_DAYS_QUANTUM = Decimal("0.01")

_UNBILLED_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED})


@dataclass(frozen=True)
class HealthThresholds:
    """
    Cut-offs for the client health tiers.

    Tiers are evaluated in order; the first that matches wins:
        excellent: nothing outstanding and avg days <= excellent_max_days
        good:      outstanding ratio <= good_max_ratio and avg <= good_max_days
        warning:   outstanding ratio <= warning_max_ratio or avg <= warning_max_days
        at_risk:   otherwise
    """
    excellent_max_days: Decimal = Decimal("15")
    good_max_ratio: Decimal = Decimal("0.1")
    good_max_days: Decimal = Decimal("30")
    warning_max_ratio: Decimal = Decimal("0.3")
    warning_max_days: Decimal = Decimal("60")

    def __post_init__(self) -> None:
        for name in ("good_max_ratio", "warning_max_ratio"):
            value = getattr(self, name)
            if not Decimal("0") <= value <= Decimal("1"):
                raise ValueError(f"{name} must be between 0 and 1, got {value}")
        if self.good_max_ratio > self.warning_max_ratio:
            raise ValueError("good_max_ratio cannot exceed warning_max_ratio")
        if not self.excellent_max_days <= self.good_max_days <= self.warning_max_days:
            raise ValueError(
                "day thresholds must satisfy excellent <= good <= warning"
            )


DEFAULT_HEALTH_THRESHOLDS = HealthThresholds()


def classify_health(
    outstanding: Money,
    lifetime_billed: Money,
    average_payment_days: Decimal,
    thresholds: HealthThresholds = DEFAULT_HEALTH_THRESHOLDS,
) -> ClientHealth:
    """Map outstanding ratio and payment speed to a health tier.

    The outstanding ratio is taken as 0 when nothing has been billed.
    """
    ratio = (
        Decimal("0") if lifetime_billed.is_zero
        else outstanding.ratio_to(lifetime_billed)
    )
    if outstanding.is_zero and average_payment_days <= thresholds.excellent_max_days:
        return ClientHealth.EXCELLENT
    if ratio <= thresholds.good_max_ratio and average_payment_days <= thresholds.good_max_days:
        return ClientHealth.GOOD
    if ratio <= thresholds.warning_max_ratio or average_payment_days <= thresholds.warning_max_days:
        return ClientHealth.WARNING
    return ClientHealth.AT_RISK


def average_payment_days(invoices: Iterable[Invoice]) -> Decimal:
    """Mean of (paid_date - issue_date) in days over paid invoices, to 0.01."""
    days = [
        inv.days_to_pay for inv in invoices
        if inv.status == InvoiceStatus.PAID and inv.days_to_pay is not None
    ]
    if not days:
        return Decimal("0")
    mean = Decimal(sum(days)) / Decimal(len(days))
    return mean.quantize(_DAYS_QUANTUM, rounding=ROUND_HALF_EVEN)


@traced_engine("client_financials", "1.0", fingerprint_fields=("client_id",))
def recompute_client_aggregates(
    client_id: UUID,
    invoices: Iterable[Invoice],
    currency: Currency | None = None,
    thresholds: HealthThresholds = DEFAULT_HEALTH_THRESHOLDS,
) -> Outcome[ClientFinancials]:
    """
    Recompute ``ClientFinancials`` for ``client_id`` from ``invoices``.

    Invoices belonging to other clients are ignored, so callers may pass
    an unfiltered collection. ``currency`` is used when the client has no
    billed invoices yet; otherwise it must match the invoices' currency.
    """
    own = [inv for inv in invoices if inv.client_id == client_id]
    billed = [inv for inv in own if inv.status not in _UNBILLED_STATUSES]

    currencies = {inv.currency for inv in billed}
    if currency is not None:
        currencies.add(currency)
    if len(currencies) > 1:
        codes = sorted(c.code for c in currencies)
        logger.warning(
            "client_currency_mismatch",
            extra={"client_id": str(client_id), "currencies": codes},
        )
        return Outcome.fail(CurrencyMismatchError(codes[0], codes[1]))
    resolved = currencies.pop() if currencies else Currency("USD")

    lifetime_billed = Money.sum([inv.total for inv in billed], resolved)
    paid = [inv for inv in billed if inv.status == InvoiceStatus.PAID]
    lifetime_paid = Money.sum([inv.total for inv in paid], resolved)
    outstanding = lifetime_billed - lifetime_paid
    partially_collected = Money.sum(
        [inv.amount_paid for inv in billed if inv.is_open], resolved
    )

    avg_days = average_payment_days(paid)
    health = classify_health(outstanding, lifetime_billed, avg_days, thresholds)

    financials = ClientFinancials(
        client_id=client_id,
        currency=resolved,
        lifetime_billed=lifetime_billed,
        lifetime_paid=lifetime_paid,
        outstanding=outstanding,
        average_payment_days=avg_days,
        health=health,
        invoice_count=len(billed),
        paid_invoice_count=len(paid),
        partially_collected=partially_collected,
    )

    logger.info(
        "client_financials_recomputed",
        extra={
            "client_id": str(client_id),
            "lifetime_billed_minor": lifetime_billed.minor_units,
            "lifetime_paid_minor": lifetime_paid.minor_units,
            "outstanding_minor": outstanding.minor_units,
            "average_payment_days": str(avg_days),
            "health": health.value,
        },
    )
    return Outcome.ok(financials)
