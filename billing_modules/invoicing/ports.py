"""
Collaborator interfaces for invoicing.

The lifecycle and the services layer reach clients, invoices and
recurrence schedules only through these protocols, so the core never
performs I/O itself. ``billing_services.stores`` provides in-memory
implementations and ``billing_services.sql_store`` a SQLAlchemy one.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from billing_modules.invoicing.events import GenerateInvoiceRequest
from billing_modules.invoicing.models import Client, Invoice, RecurringInvoice


class ClientDirectory(Protocol):
    """Id lookup for clients. Returns None for an unknown id."""

    def get(self, client_id: UUID) -> Client | None:
        ...


class InvoiceStore(Protocol):
    """Load/save invoices by id; list them by client."""

    def get(self, invoice_id: UUID) -> Invoice | None:
        ...

    def save(self, invoice: Invoice) -> None:
        ...

    def list_for_client(self, client_id: UUID) -> Sequence[Invoice]:
        ...

    def list_all(self) -> Sequence[Invoice]:
        ...


class RecurringStore(Protocol):
    def get(self, recurrence_id: UUID) -> RecurringInvoice | None:
        ...

    def find_by_template(self, template_invoice_id: UUID) -> RecurringInvoice | None:
        ...

    def save(self, recurring: RecurringInvoice) -> None:
        ...


class GenerationSink(Protocol):
    """The external invoice-creation collaborator."""

    def submit(self, request: GenerateInvoiceRequest) -> None:
        ...
