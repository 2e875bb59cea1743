"""
Invoicing Module.

Handles invoices, clients, payments and recurring invoices.

The lifecycle state machine lives in ``billing_modules.invoicing.lifecycle``
and the configuration schema in ``billing_modules.invoicing.config``; both
depend on ``billing_engines`` and are imported from their own modules.
"""

from billing_modules.invoicing.events import (
    CancelInvoice,
    CheckOverdue,
    GenerateInvoiceRequest,
    LifecycleEvent,
    LifecycleEventType,
    PaymentReceived,
    ReadReceipt,
    SendInvoice,
)
from billing_modules.invoicing.models import (
    Client,
    ClientFinancials,
    ClientHealth,
    ClientStatus,
    EmailStatus,
    Invoice,
    InvoiceStatus,
    LineItem,
    PaymentRecord,
    PaymentTerms,
    RecurrenceFrequency,
    RecurrenceSettings,
    RecurringInvoice,
)
from billing_modules.invoicing.workflows import INVOICE_WORKFLOW

__all__ = [
    "CancelInvoice",
    "CheckOverdue",
    "GenerateInvoiceRequest",
    "LifecycleEvent",
    "LifecycleEventType",
    "PaymentReceived",
    "ReadReceipt",
    "SendInvoice",
    "Client",
    "ClientFinancials",
    "ClientHealth",
    "ClientStatus",
    "EmailStatus",
    "Invoice",
    "InvoiceStatus",
    "LineItem",
    "PaymentRecord",
    "PaymentTerms",
    "RecurrenceFrequency",
    "RecurrenceSettings",
    "RecurringInvoice",
    "INVOICE_WORKFLOW",
]
