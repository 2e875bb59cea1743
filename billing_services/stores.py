"""
In-memory collaborators (``billing_services.stores``).

Thread-safe dictionary-backed implementations of the invoicing ports:
``ClientDirectory``, ``InvoiceStore``, ``RecurringStore`` and
``GenerationSink``. Used by tests and single-process deployments; the
SQL-backed invoice store lives in ``billing_services.sql_store``.
"""

from __future__ import annotations

import threading
from uuid import UUID

from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.events import GenerateInvoiceRequest
from billing_modules.invoicing.models import Client, Invoice, RecurringInvoice

logger = get_logger("services.stores")


class InMemoryClientDirectory:
    def __init__(self, clients: list[Client] | None = None) -> None:
        self._lock = threading.Lock()
        self._clients: dict[UUID, Client] = {c.id: c for c in clients or ()}

    def add(self, client: Client) -> None:
        with self._lock:
            self._clients[client.id] = client

    def remove(self, client_id: UUID) -> None:
        with self._lock:
            self._clients.pop(client_id, None)

    def get(self, client_id: UUID) -> Client | None:
        with self._lock:
            return self._clients.get(client_id)


class InMemoryInvoiceStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._invoices: dict[UUID, Invoice] = {}

    def get(self, invoice_id: UUID) -> Invoice | None:
        with self._lock:
            return self._invoices.get(invoice_id)

    def save(self, invoice: Invoice) -> None:
        with self._lock:
            self._invoices[invoice.id] = invoice
        logger.debug(
            "invoice_saved",
            extra={"invoice_id": str(invoice.id), "version": invoice.version},
        )

    def list_for_client(self, client_id: UUID) -> list[Invoice]:
        with self._lock:
            return [inv for inv in self._invoices.values() if inv.client_id == client_id]

    def list_all(self) -> list[Invoice]:
        with self._lock:
            return list(self._invoices.values())


class InMemoryRecurringStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._schedules: dict[UUID, RecurringInvoice] = {}

    def get(self, recurrence_id: UUID) -> RecurringInvoice | None:
        with self._lock:
            return self._schedules.get(recurrence_id)

    def find_by_template(self, template_invoice_id: UUID) -> RecurringInvoice | None:
        with self._lock:
            for schedule in self._schedules.values():
                if schedule.template_invoice_id == template_invoice_id:
                    return schedule
            return None

    def save(self, recurring: RecurringInvoice) -> None:
        with self._lock:
            self._schedules[recurring.id] = recurring

    def list_all(self) -> list[RecurringInvoice]:
        with self._lock:
            return list(self._schedules.values())


class RecordingGenerationSink:
    """Collects generation requests for the invoice-creation collaborator."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.requests: list[GenerateInvoiceRequest] = []

    def submit(self, request: GenerateInvoiceRequest) -> None:
        with self._lock:
            self.requests.append(request)
        logger.info(
            "generation_request_submitted",
            extra={
                "request_id": str(request.request_id),
                "recurrence_id": str(request.recurrence_id),
                "issue_date": request.issue_date.isoformat(),
            },
        )
