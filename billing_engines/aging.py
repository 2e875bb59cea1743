"""
Module: billing_engines.aging
Responsibility:
    Age open invoice balances and classify them into day buckets
    (Current, 1-30, 31-60, 61-90, Over 90) for a receivables report,
    in total and per client.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access.

Invariants enforced:
    - Only open invoices (sent, viewed, overdue) with a positive
      outstanding balance are aged.
    - Age is counted from the due date, or the issue date when there is
      no due date; invoices not yet due land in the Current bucket.
    - Bucket totals sum to the report total.

Failure modes:
    - ValueError when bucket boundaries are not strictly increasing.
    - CurrencyMismatchError (failed Outcome) when the open invoices mix
      currencies.

Usage:
    from billing_engines.aging import age_receivables

    report = age_receivables(invoices, as_of=date(2024, 3, 31)).unwrap()
    report.total_by_bucket()["31-60"]
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from billing_engines.tracer import traced_engine
from billing_kernel.domain.outcome import Outcome
from billing_kernel.domain.values import Currency, Money
from billing_kernel.exceptions import CurrencyMismatchError
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import Invoice

logger = get_logger("engines.aging")


@dataclass(frozen=True)
class AgeBucket:
    """A contiguous range of days past due. ``max_days=None`` is unbounded."""

    name: str
    min_days: int
    max_days: int | None

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        if age_days < self.min_days:
            return False
        return self.max_days is None or age_days <= self.max_days


def buckets_from_boundaries(boundaries: Sequence[int]) -> tuple[AgeBucket, ...]:
    """
    Build Current / 1-a / (a+1)-b / ... / Over z buckets.

    ``(30, 60, 90)`` yields the standard receivables buckets.
    """
    if not boundaries:
        raise ValueError("at least one aging boundary is required")
    if any(b <= 0 for b in boundaries) or list(boundaries) != sorted(set(boundaries)):
        raise ValueError(f"aging boundaries must be positive and strictly increasing: {boundaries}")

    buckets = [AgeBucket("Current", 0, 0)]
    lower = 1
    for upper in boundaries:
        buckets.append(AgeBucket(f"{lower}-{upper}", lower, upper))
        lower = upper + 1
    buckets.append(AgeBucket(f"Over {boundaries[-1]}", lower, None))
    return tuple(buckets)


STANDARD_BUCKETS: tuple[AgeBucket, ...] = buckets_from_boundaries((30, 60, 90))


def classify(age_days: int, buckets: Sequence[AgeBucket] = STANDARD_BUCKETS) -> AgeBucket:
    """Bucket for ``age_days``; negative ages (not yet due) map to Current."""
    if age_days < 0:
        return buckets[0]
    for bucket in buckets:
        if bucket.contains(age_days):
            return bucket
    raise ValueError(f"Age {age_days} does not fit any bucket")


@dataclass(frozen=True)
class AgedInvoice:
    invoice_id: UUID
    invoice_number: str
    client_id: UUID
    due_date: date | None
    balance: Money
    age_days: int
    bucket: AgeBucket

    @property
    def days_past_due(self) -> int:
        return max(0, self.age_days)


@dataclass(frozen=True)
class AgingReport:
    """Snapshot of open receivables as of a date."""

    as_of_date: date
    currency: Currency
    buckets: tuple[AgeBucket, ...]
    items: tuple[AgedInvoice, ...]

    def total(self) -> Money:
        return Money.sum([i.balance for i in self.items], self.currency)

    def total_by_bucket(self) -> dict[str, Money]:
        """Every bucket name mapped to its summed balance (zero when empty)."""
        result = {b.name: Money.zero(self.currency) for b in self.buckets}
        for item in self.items:
            result[item.bucket.name] = result[item.bucket.name] + item.balance
        return result

    def total_by_client(self) -> dict[UUID, dict[str, Money]]:
        result: dict[UUID, dict[str, Money]] = {}
        for item in self.items:
            per_client = result.setdefault(
                item.client_id, {b.name: Money.zero(self.currency) for b in self.buckets}
            )
            per_client[item.bucket.name] = per_client[item.bucket.name] + item.balance
        return result

    def items_in_bucket(self, bucket_name: str) -> tuple[AgedInvoice, ...]:
        return tuple(i for i in self.items if i.bucket.name == bucket_name)

    def overdue_total(self) -> Money:
        return Money.sum([i.balance for i in self.items if i.age_days > 0], self.currency)


@traced_engine("aging", "1.0", fingerprint_fields=("as_of",))
def age_receivables(
    invoices: Iterable[Invoice],
    as_of: date,
    buckets: Sequence[AgeBucket] = STANDARD_BUCKETS,
    currency: Currency | None = None,
) -> Outcome[AgingReport]:
    """Age every open invoice balance in ``invoices`` as of ``as_of``."""
    items: list[AgedInvoice] = []
    for inv in invoices:
        balance = inv.outstanding_amount
        if not inv.is_open or not balance.is_positive:
            continue
        if currency is None:
            currency = inv.currency
        elif inv.currency != currency:
            return Outcome.fail(CurrencyMismatchError(currency.code, inv.currency.code))

        reference = inv.due_date or inv.issue_date or as_of
        age_days = (as_of - reference).days
        items.append(
            AgedInvoice(
                invoice_id=inv.id,
                invoice_number=inv.invoice_number,
                client_id=inv.client_id,
                due_date=inv.due_date,
                balance=balance,
                age_days=age_days,
                bucket=classify(age_days, buckets),
            )
        )

    report = AgingReport(
        as_of_date=as_of,
        currency=currency or Currency("USD"),
        buckets=tuple(buckets),
        items=tuple(sorted(items, key=lambda i: (-i.age_days, i.invoice_number))),
    )
    logger.info(
        "aging_report_generated",
        extra={
            "as_of_date": as_of.isoformat(),
            "item_count": len(report.items),
            "total_minor": report.total().minor_units,
        },
    )
    return Outcome.ok(report)
