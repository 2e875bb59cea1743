"""
Invoicing Domain Models (``billing_modules.invoicing.models``).

Responsibility
--------------
Frozen dataclass value objects representing the nouns of invoicing:
clients, line items, invoices, payment records, recurrence settings,
recurring schedules and derived client financials.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O. Consumed by the
engines, the lifecycle state machine and the services layer.

Invariants enforced
-------------------
* All models are ``frozen=True``; a change is a new object built with
  ``dataclasses.replace``.
* Money fields are ``Money`` (integer minor units), never float.
* ``Invoice``: ``total == subtotal - discount + tax_amount``, every money
  field is in the invoice currency, and ``paid_date`` is set iff
  ``status == PAID``.
* ``Client`` never stores aggregates; see ``ClientFinancials``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from billing_kernel.domain.metadata import Metadata, MetadataSchema
from billing_kernel.domain.values import Currency, Money, Quantity
from billing_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.models")


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


OPEN_STATUSES: frozenset[InvoiceStatus] = frozenset(
    {InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.OVERDUE}
)
TERMINAL_STATUSES: frozenset[InvoiceStatus] = frozenset(
    {InvoiceStatus.PAID, InvoiceStatus.CANCELLED}
)


class EmailStatus(str, Enum):
    """Delivery state of the invoice email, reported by the mail collaborator."""
    NOT_SENT = "not_sent"
    SENT = "sent"
    DELIVERED = "delivered"
    OPENED = "opened"
    BOUNCED = "bounced"


class RecurrenceFrequency(str, Enum):
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class PaymentTerms(str, Enum):
    """Client payment terms; drive the due date of a sent invoice."""
    NET_30 = "net_30"
    NET_60 = "net_60"
    NET_90 = "net_90"
    DUE_ON_RECEIPT = "due_on_receipt"

    @property
    def days(self) -> int:
        return _TERMS_DAYS[self]


_TERMS_DAYS = {
    PaymentTerms.NET_30: 30,
    PaymentTerms.NET_60: 60,
    PaymentTerms.NET_90: 90,
    PaymentTerms.DUE_ON_RECEIPT: 0,
}


class ClientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class ClientHealth(str, Enum):
    """Heuristic client risk tier derived from payment behavior."""
    EXCELLENT = "excellent"
    GOOD = "good"
    WARNING = "warning"
    AT_RISK = "at_risk"


# -----------------------------------------------------------------------------
# Metadata schemas (recognized keys per call site)
# -----------------------------------------------------------------------------

INVOICE_METADATA = MetadataSchema(
    call_site="invoice",
    fields={
        "notion_id": (str,),
        "template": (str,),
        "payment_link": (str,),
        "payment_method": (str,),
        "po_number": (str,),
        "project_id": (str,),
    },
)

CLIENT_METADATA = MetadataSchema(
    call_site="client",
    fields={
        "notion_id": (str,),
        "tax_id": (str,),
        "tags": (list, tuple),
    },
)

PAYMENT_METADATA = MetadataSchema(
    call_site="payment",
    fields={
        "processor": (str,),
        "transaction_id": (str,),
        "fee_minor_units": (int,),
    },
)


# -----------------------------------------------------------------------------
# Client
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Client:
    """A client who is billed. Aggregates live in ``ClientFinancials``."""
    id: UUID
    name: str
    email: str
    currency: Currency = field(default_factory=lambda: Currency("USD"))
    status: ClientStatus = ClientStatus.ACTIVE
    payment_terms: PaymentTerms = PaymentTerms.NET_30
    metadata: Metadata = field(default_factory=CLIENT_METADATA.empty)

    def __post_init__(self) -> None:
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        if not self.name or not self.name.strip():
            raise ValueError("Client name cannot be empty")


@dataclass(frozen=True)
class ClientFinancials:
    """
    Derived financial summary for one client.

    Always produced by ``recompute_client_aggregates``; never set by callers.
    ``outstanding == lifetime_billed - lifetime_paid``.
    """
    client_id: UUID
    currency: Currency
    lifetime_billed: Money
    lifetime_paid: Money
    outstanding: Money
    average_payment_days: Decimal
    health: ClientHealth
    invoice_count: int = 0
    paid_invoice_count: int = 0
    partially_collected: Money | None = None

    def __post_init__(self) -> None:
        if self.outstanding != self.lifetime_billed - self.lifetime_paid:
            raise ValueError(
                f"outstanding {self.outstanding} != lifetime_billed "
                f"{self.lifetime_billed} - lifetime_paid {self.lifetime_paid}"
            )
        if self.partially_collected is None:
            object.__setattr__(self, "partially_collected", Money.zero(self.currency))


# -----------------------------------------------------------------------------
# Line items, payments, recurrence
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItem:
    """
    A single priced line on an invoice.

    ``amount`` is derived: ``quantity * rate`` rounded once to the minor unit.
    """
    description: str
    quantity: Quantity
    rate: Money
    taxable: bool = True
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if not isinstance(self.quantity, Quantity):
            object.__setattr__(self, "quantity", Quantity.of(self.quantity))
        if not isinstance(self.rate, Money):
            raise TypeError(f"rate must be Money, got {type(self.rate).__name__}")

    @property
    def amount(self) -> Money:
        return self.rate.multiply_by_scalar(self.quantity.value)

    @property
    def currency(self) -> Currency:
        return self.rate.currency


@dataclass(frozen=True)
class PaymentRecord:
    """A payment received against an invoice (full or partial)."""
    amount: Money
    received_on: date
    reference: str | None = None
    method: str | None = None
    metadata: Metadata = field(default_factory=PAYMENT_METADATA.empty)
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class RecurrenceSettings:
    """Recurrence settings carried on a template invoice.

    ``next_date`` optionally picks the first generated date; otherwise it
    is one interval after the template's issue date. ``end_date`` is
    exclusive.
    """
    enabled: bool
    frequency: RecurrenceFrequency
    next_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class RecurringInvoice:
    """
    A recurrence schedule generated from a template invoice.

    ``next_date`` is always strictly after ``last_generated_on``. Once
    ``active`` is False the schedule never generates again.
    """
    id: UUID
    template_invoice_id: UUID
    client_id: UUID
    frequency: RecurrenceFrequency
    next_date: date
    end_date: date | None = None
    active: bool = True
    last_generated_on: date | None = None
    anchor_day: int | None = None

    def __post_init__(self) -> None:
        if self.last_generated_on is not None and self.next_date <= self.last_generated_on:
            raise ValueError(
                f"next_date {self.next_date} must be after last generated "
                f"instance {self.last_generated_on}"
            )
        if self.anchor_day is not None and not 1 <= self.anchor_day <= 31:
            raise ValueError(f"anchor_day must be 1-31, got {self.anchor_day}")


# -----------------------------------------------------------------------------
# Invoice
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Invoice:
    """
    A client invoice.

    Built by ``billing_modules.invoicing.lifecycle``; the derived money
    fields (subtotal, tax_amount, total) always come from the line-item
    aggregator and are checked for consistency on construction.
    """
    id: UUID
    invoice_number: str
    client_id: UUID
    currency: Currency
    subtotal: Money
    tax_amount: Money
    total: Money
    line_items: tuple[LineItem, ...] = ()
    tax_rate: Decimal = Decimal("0")
    discount: Money | None = None
    amount_paid: Money | None = None
    payments: tuple[PaymentRecord, ...] = ()
    status: InvoiceStatus = InvoiceStatus.DRAFT
    email_status: EmailStatus = EmailStatus.NOT_SENT
    issue_date: date | None = None
    due_date: date | None = None
    paid_date: date | None = None
    notes: str | None = None
    terms: str | None = None
    recurring: RecurrenceSettings | None = None
    recurrence_id: UUID | None = None
    metadata: Metadata = field(default_factory=INVOICE_METADATA.empty)
    version: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        if self.discount is None:
            object.__setattr__(self, "discount", Money.zero(self.currency))
        if self.amount_paid is None:
            object.__setattr__(self, "amount_paid", Money.zero(self.currency))

        for name in ("subtotal", "tax_amount", "total", "discount", "amount_paid"):
            value = getattr(self, name)
            if value.currency != self.currency:
                raise ValueError(
                    f"Invoice {self.id}: {name} currency {value.currency} "
                    f"!= invoice currency {self.currency}"
                )

        expected_total = self.subtotal - self.discount + self.tax_amount
        if self.total != expected_total:
            raise ValueError(
                f"Invoice {self.id}: total {self.total} != subtotal - discount + tax "
                f"({expected_total})"
            )

        if (self.paid_date is not None) != (self.status == InvoiceStatus.PAID):
            raise ValueError(
                f"Invoice {self.id}: paid_date must be set iff status is paid "
                f"(status={self.status.value}, paid_date={self.paid_date})"
            )

    @property
    def is_open(self) -> bool:
        """Sent to the client and not yet settled or cancelled."""
        return self.status in OPEN_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def outstanding_amount(self) -> Money:
        """Balance still owed on an open invoice; zero otherwise."""
        if not self.is_open:
            return Money.zero(self.currency)
        remaining = self.total - self.amount_paid
        return remaining if remaining.is_positive else Money.zero(self.currency)

    def is_past_due(self, as_of: date) -> bool:
        return self.due_date is not None and as_of > self.due_date

    @property
    def days_to_pay(self) -> int | None:
        """Days between issue and payment for a paid invoice."""
        if self.paid_date is None or self.issue_date is None:
            return None
        return (self.paid_date - self.issue_date).days
