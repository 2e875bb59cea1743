"""
billing_kernel.db.base -- Declarative base for the billing tables.

Column types follow from annotations, so a model says what a column
holds and the mapping picks the storage type:

    total_minor: Mapped[MinorUnits]    # BigInteger
    currency: Mapped[CurrencyCode]     # String(3)
    tax_rate: Mapped[Rate]             # Numeric(18, 6)

Money never reaches the database as a float or a major-unit Numeric; an
amount is a MinorUnits column read together with the row's CurrencyCode.

Every ``BillingRow`` has a uuid4 id, stored as 32 hex characters where the
database has no native UUID type, and created/updated stamps filled in by
the database. Nothing here imports from the domain or outer layers.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MinorUnits = Annotated[int, "minor_units"]
CurrencyCode = Annotated[str, "currency_code"]
Rate = Annotated[Decimal, "rate"]


class Base(DeclarativeBase):
    """Declarative base; holds the metadata every billing table registers in."""

    type_annotation_map: ClassVar[dict[Any, Any]] = {
        MinorUnits: BigInteger(),
        CurrencyCode: String(3),
        Rate: Numeric(18, 6),
        Decimal: Numeric(18, 6),
        int: BigInteger(),
        UUID: Uuid(native_uuid=False),
        datetime: DateTime(timezone=True),
        date: Date(),
    }


class BillingRow(Base):
    """Abstract row: uuid4 primary key plus database-maintained timestamps."""

    __abstract__ = True

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
