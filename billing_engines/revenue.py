"""
Module: billing_engines.revenue
Responsibility:
    Revenue summaries over a date range: amount invoiced, cash received
    and balance still outstanding, plus a calendar-quarter breakdown for
    a year.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - invoiced counts every non-draft, non-cancelled invoice whose issue
      date falls inside the period (inclusive on both ends).
    - received counts payment records by their received date, so a
      partial payment lands in the period it was received.
    - outstanding is the open balance, at period end, of invoices issued
      on or before period end.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from billing_engines.tracer import traced_engine
from billing_kernel.domain.outcome import Outcome
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import CurrencyMismatchError
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import Invoice, InvoiceStatus

logger = get_logger("engines.revenue")

_UNBILLED = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED})

_QUARTER_BOUNDS = (
    ((1, 1), (3, 31)),
    ((4, 1), (6, 30)),
    ((7, 1), (9, 30)),
    ((10, 1), (12, 31)),
)


@dataclass(frozen=True)
class RevenueSummary:
    label: str
    period_start: date
    period_end: date
    currency: Currency
    invoiced: Money
    received: Money
    outstanding: Money
    invoice_count: int = 0
    payment_count: int = 0


def _balance_at(inv: Invoice, as_of: date) -> Money:
    if inv.status in _UNBILLED:
        return Money.zero(inv.currency)
    received = Money.sum(
        [p.amount for p in inv.payments if p.received_on <= as_of], inv.currency
    )
    remaining = inv.total - received
    return remaining if remaining.is_positive else Money.zero(inv.currency)


@traced_engine("revenue", "1.0", fingerprint_fields=("start", "end"))
def summarize_revenue(
    invoices: Iterable[Invoice],
    start: date,
    end: date,
    currency: Currency | None = None,
    label: str = "",
) -> Outcome[RevenueSummary]:
    """Revenue summary for invoices and payments in [start, end]."""
    if end < start:
        raise ValueError(f"period end {end} is before start {start}")

    billed = [inv for inv in invoices if inv.status not in _UNBILLED]
    for inv in billed:
        if currency is None:
            currency = inv.currency
        elif inv.currency != currency:
            return Outcome.fail(CurrencyMismatchError(currency.code, inv.currency.code))
    currency = currency or Currency("USD")

    issued = [
        inv for inv in billed
        if inv.issue_date is not None and start <= inv.issue_date <= end
    ]
    payments = [
        p for inv in billed for p in inv.payments if start <= p.received_on <= end
    ]
    open_at_end = [
        inv for inv in billed
        if inv.issue_date is not None and inv.issue_date <= end
    ]

    summary = RevenueSummary(
        label=label or f"{start.isoformat()}..{end.isoformat()}",
        period_start=start,
        period_end=end,
        currency=currency,
        invoiced=Money.sum([inv.total for inv in issued], currency),
        received=Money.sum([p.amount for p in payments], currency),
        outstanding=Money.sum([_balance_at(inv, end) for inv in open_at_end], currency),
        invoice_count=len(issued),
        payment_count=len(payments),
    )
    logger.debug(
        "revenue_summarized",
        extra={
            "label": summary.label,
            "invoiced_minor": summary.invoiced.minor_units,
            "received_minor": summary.received.minor_units,
        },
    )
    return Outcome.ok(summary)


def quarterly_breakdown(
    invoices: Iterable[Invoice],
    year: int,
    currency: Currency | None = None,
) -> Outcome[tuple[RevenueSummary, ...]]:
    """Q1..Q4 revenue summaries for ``year``."""
    invoices = list(invoices)
    quarters: list[RevenueSummary] = []
    for number, ((sm, sd), (em, ed)) in enumerate(_QUARTER_BOUNDS, start=1):
        outcome = summarize_revenue(
            invoices, date(year, sm, sd), date(year, em, ed), currency, label=f"Q{number} {year}"
        )
        if not outcome.success:
            return Outcome.fail(outcome.error)
        quarters.append(outcome.value)
    return Outcome.ok(tuple(quarters))
