"""
Invoicing events.

Two families of discrete messages cross the lifecycle boundary:

* **Signals** come in from the outside world (the user sends an invoice,
  the mail provider reports a read receipt, the payment processor
  confirms a payment, a daily job checks for overdue invoices). Each
  signal names the workflow action it drives.
* **Lifecycle events** go out after a successful transition. The client
  financial aggregator and the recurring scheduler subscribe to them.

``GenerateInvoiceRequest`` is what the recurring scheduler hands to the
invoice-creation collaborator; it does not build the invoice itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID, uuid4

from billing_kernel.domain.values import Money
from billing_modules.invoicing.models import Invoice, InvoiceStatus


# -----------------------------------------------------------------------------
# Inbound signals
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SendInvoice:
    """The user sends a draft invoice to the client."""
    action: ClassVar[str] = "send"
    at: date


@dataclass(frozen=True)
class ReadReceipt:
    """The mail collaborator reports the client opened the invoice."""
    action: ClassVar[str] = "read_receipt"
    at: date


@dataclass(frozen=True)
class PaymentReceived:
    """The payment collaborator confirms a (full or partial) payment."""
    action: ClassVar[str] = "payment_received"
    amount: Money
    received_on: date
    reference: str | None = None
    method: str | None = None
    metadata: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class CheckOverdue:
    """Periodic check whether an open invoice is past its due date."""
    action: ClassVar[str] = "check_overdue"
    as_of: date


@dataclass(frozen=True)
class CancelInvoice:
    action: ClassVar[str] = "cancel"
    at: date
    reason: str | None = None


Signal = SendInvoice | ReadReceipt | PaymentReceived | CheckOverdue | CancelInvoice


def signal_date(signal: Signal) -> date:
    """The business date a signal carries."""
    if isinstance(signal, PaymentReceived):
        return signal.received_on
    if isinstance(signal, CheckOverdue):
        return signal.as_of
    return signal.at


# -----------------------------------------------------------------------------
# Outbound lifecycle events
# -----------------------------------------------------------------------------


class LifecycleEventType(str, Enum):
    INVOICE_CREATED = "invoice_created"
    INVOICE_SENT = "invoice_sent"
    INVOICE_VIEWED = "invoice_viewed"
    PAYMENT_RECEIVED = "payment_received"
    INVOICE_PAID = "invoice_paid"
    INVOICE_OVERDUE = "invoice_overdue"
    INVOICE_CANCELLED = "invoice_cancelled"


@dataclass(frozen=True)
class LifecycleEvent:
    """
    Emitted after a successful lifecycle transition.

    ``invoice`` is the invoice as it stands after the transition, so
    subscribers never need to reload it. ``amount`` is the payment amount
    for payment events and the invoice total otherwise.
    """
    event_type: LifecycleEventType
    invoice: Invoice
    occurred_on: date
    amount: Money
    event_id: UUID = field(default_factory=uuid4)

    @property
    def invoice_id(self) -> UUID:
        return self.invoice.id

    @property
    def client_id(self) -> UUID:
        return self.invoice.client_id

    @property
    def status(self) -> InvoiceStatus:
        return self.invoice.status


@dataclass(frozen=True)
class GenerateInvoiceRequest:
    """Ask the invoice-creation collaborator for the next recurring instance."""
    recurrence_id: UUID
    template_invoice_id: UUID
    client_id: UUID
    issue_date: date
    request_id: UUID = field(default_factory=uuid4)
