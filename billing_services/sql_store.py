"""
SQLAlchemy-backed invoice store (``billing_services.sql_store``).

Implements the ``InvoiceStore`` port on top of ``InvoiceModel``. Each
call runs in its own ``session_scope`` transaction; invoices cross the
boundary only as frozen dataclasses.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from billing_kernel.db.engine import get_session_factory, session_scope
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import Invoice
from billing_modules.invoicing.orm import InvoiceModel

logger = get_logger("services.sql_store")


class SqlInvoiceStore:
    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._factory = session_factory or get_session_factory()

    def get(self, invoice_id: UUID) -> Invoice | None:
        with session_scope(self._factory) as session:
            model = session.get(InvoiceModel, invoice_id)
            return model.to_dto() if model is not None else None

    def save(self, invoice: Invoice) -> None:
        """Insert or replace the invoice with its lines and payments."""
        with session_scope(self._factory) as session:
            existing = session.get(InvoiceModel, invoice.id)
            if existing is not None:
                session.delete(existing)
                session.flush()
            session.add(InvoiceModel.from_dto(invoice))
        logger.debug(
            "invoice_persisted",
            extra={
                "invoice_id": str(invoice.id),
                "version": invoice.version,
                "replaced": existing is not None,
            },
        )

    def list_for_client(self, client_id: UUID) -> list[Invoice]:
        with session_scope(self._factory) as session:
            models = session.scalars(
                select(InvoiceModel)
                .where(InvoiceModel.client_id == client_id)
                .order_by(InvoiceModel.invoice_number)
            ).all()
            return [m.to_dto() for m in models]

    def list_all(self) -> list[Invoice]:
        with session_scope(self._factory) as session:
            models = session.scalars(
                select(InvoiceModel).order_by(InvoiceModel.invoice_number)
            ).all()
            return [m.to_dto() for m in models]
