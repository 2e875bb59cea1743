"""
Invoicing ORM Models (``billing_modules.invoicing.orm``).

Responsibility
--------------
SQLAlchemy persistence models for invoices. Maps the frozen ``Invoice``
dataclass (with its line items and payment records) to three tables.

Architecture position
---------------------
**Modules layer** -- persistence. Imports from ``billing_kernel.db.base``
and sibling ``models.py``. Used by ``billing_services.sql_store``.

Invariants enforced
-------------------
* Money is stored as BigInteger minor units; the currency lives on the
  invoice row and every amount on the invoice shares it.
* Derived totals are stored for querying but are re-validated by the
  ``Invoice`` constructor on load.
* Line items keep their order through a ``position`` column.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import BillingRow, CurrencyCode, MinorUnits, Rate
from billing_kernel.domain.values import Currency, Money, Quantity


# ---------------------------------------------------------------------------
# 1. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(BillingRow):
    """
    ORM model for invoices.

    Guarantees:
        - invoice_number is unique (uq_invoices_invoice_number).
        - status and email_status stored as string enum values.
        - recurrence settings flattened into ``recurring_*`` columns.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        Index("idx_invoices_client_id", "client_id"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_due_date", "due_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    client_id: Mapped[UUID] = mapped_column(nullable=False)
    currency: Mapped[CurrencyCode] = mapped_column(nullable=False)
    tax_rate: Mapped[Rate] = mapped_column(nullable=False)
    discount_minor: Mapped[MinorUnits] = mapped_column(default=0)
    subtotal_minor: Mapped[MinorUnits] = mapped_column(nullable=False)
    tax_minor: Mapped[MinorUnits] = mapped_column(nullable=False)
    total_minor: Mapped[MinorUnits] = mapped_column(nullable=False)
    amount_paid_minor: Mapped[MinorUnits] = mapped_column(default=0)
    status: Mapped[str] = mapped_column(String(20), default="draft")
    email_status: Mapped[str] = mapped_column(String(20), default="not_sent")
    issue_date: Mapped[date | None] = mapped_column(nullable=True)
    due_date: Mapped[date | None] = mapped_column(nullable=True)
    paid_date: Mapped[date | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    recurring_enabled: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    recurring_frequency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    recurring_next_date: Mapped[date | None] = mapped_column(nullable=True)
    recurring_end_date: Mapped[date | None] = mapped_column(nullable=True)
    recurrence_id: Mapped[UUID | None] = mapped_column(nullable=True)
    metadata_json: Mapped[dict] = mapped_column(JSON, default=dict)
    version: Mapped[int] = mapped_column(default=0)

    lines: Mapped[list["LineItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LineItemModel.position",
    )
    payments: Mapped[list["PaymentModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PaymentModel.position",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_modules.invoicing.models import (
            INVOICE_METADATA,
            EmailStatus,
            Invoice,
            InvoiceStatus,
            RecurrenceFrequency,
            RecurrenceSettings,
        )

        currency = Currency(self.currency)
        recurring = None
        if self.recurring_frequency is not None:
            recurring = RecurrenceSettings(
                enabled=bool(self.recurring_enabled),
                frequency=RecurrenceFrequency(self.recurring_frequency),
                next_date=self.recurring_next_date,
                end_date=self.recurring_end_date,
            )

        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            client_id=self.client_id,
            currency=currency,
            line_items=tuple(line.to_dto(currency) for line in self.lines),
            tax_rate=self.tax_rate,
            discount=Money(self.discount_minor, currency),
            subtotal=Money(self.subtotal_minor, currency),
            tax_amount=Money(self.tax_minor, currency),
            total=Money(self.total_minor, currency),
            amount_paid=Money(self.amount_paid_minor, currency),
            payments=tuple(p.to_dto(currency) for p in self.payments),
            status=InvoiceStatus(self.status),
            email_status=EmailStatus(self.email_status),
            issue_date=self.issue_date,
            due_date=self.due_date,
            paid_date=self.paid_date,
            notes=self.notes,
            terms=self.terms,
            recurring=recurring,
            recurrence_id=self.recurrence_id,
            metadata=INVOICE_METADATA.parse(self.metadata_json or {}),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto) -> "InvoiceModel":
        """Create ORM model from frozen dataclass."""
        recurring = dto.recurring
        return cls(
            id=dto.id,
            invoice_number=dto.invoice_number,
            client_id=dto.client_id,
            currency=dto.currency.code,
            tax_rate=dto.tax_rate,
            discount_minor=dto.discount.minor_units,
            subtotal_minor=dto.subtotal.minor_units,
            tax_minor=dto.tax_amount.minor_units,
            total_minor=dto.total.minor_units,
            amount_paid_minor=dto.amount_paid.minor_units,
            status=dto.status.value,
            email_status=dto.email_status.value,
            issue_date=dto.issue_date,
            due_date=dto.due_date,
            paid_date=dto.paid_date,
            notes=dto.notes,
            terms=dto.terms,
            recurring_enabled=recurring.enabled if recurring else None,
            recurring_frequency=recurring.frequency.value if recurring else None,
            recurring_next_date=recurring.next_date if recurring else None,
            recurring_end_date=recurring.end_date if recurring else None,
            recurrence_id=dto.recurrence_id,
            metadata_json=_json_safe(dto.metadata.as_dict()),
            version=dto.version,
            lines=[
                LineItemModel.from_dto(line, position=i)
                for i, line in enumerate(dto.line_items)
            ],
            payments=[
                PaymentModel.from_dto(p, position=i)
                for i, p in enumerate(dto.payments)
            ],
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number}: {self.status}>"


def _json_safe(values: dict) -> dict:
    return {k: list(v) if isinstance(v, tuple) else v for k, v in values.items()}


# ---------------------------------------------------------------------------
# 2. LineItemModel
# ---------------------------------------------------------------------------


class LineItemModel(BillingRow):
    """ORM model for invoice line items. Rate stored in minor units."""

    __tablename__ = "invoice_line_items"

    __table_args__ = (
        Index("idx_invoice_line_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(30), default="unit")
    rate_minor: Mapped[MinorUnits] = mapped_column(nullable=False)
    taxable: Mapped[bool] = mapped_column(Boolean, default=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="lines")

    def to_dto(self, currency: Currency):
        from billing_modules.invoicing.models import LineItem

        return LineItem(
            id=self.id,
            description=self.description,
            quantity=Quantity(self.quantity, self.unit),
            rate=Money(self.rate_minor, currency),
            taxable=self.taxable,
        )

    @classmethod
    def from_dto(cls, dto, position: int) -> "LineItemModel":
        return cls(
            id=dto.id,
            position=position,
            description=dto.description,
            quantity=dto.quantity.value,
            unit=dto.quantity.unit,
            rate_minor=dto.rate.minor_units,
            taxable=dto.taxable,
        )


# ---------------------------------------------------------------------------
# 3. PaymentModel
# ---------------------------------------------------------------------------


class PaymentModel(BillingRow):
    """ORM model for payments received against an invoice."""

    __tablename__ = "invoice_payments"

    __table_args__ = (
        Index("idx_invoice_payments_invoice_id", "invoice_id"),
        Index("idx_invoice_payments_received_on", "received_on"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(nullable=False)
    amount_minor: Mapped[MinorUnits] = mapped_column(nullable=False)
    received_on: Mapped[date] = mapped_column(nullable=False)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    metadata_json: Mapped[dict] = mapped_column(JSON, default=dict)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="payments")

    def to_dto(self, currency: Currency):
        from billing_modules.invoicing.models import PAYMENT_METADATA, PaymentRecord

        return PaymentRecord(
            id=self.id,
            amount=Money(self.amount_minor, currency),
            received_on=self.received_on,
            reference=self.reference,
            method=self.method,
            metadata=PAYMENT_METADATA.parse(self.metadata_json or {}),
        )

    @classmethod
    def from_dto(cls, dto, position: int) -> "PaymentModel":
        return cls(
            id=dto.id,
            position=position,
            amount_minor=dto.amount.minor_units,
            received_on=dto.received_on,
            reference=dto.reference,
            method=dto.method,
            metadata_json=_json_safe(dto.metadata.as_dict()),
        )
