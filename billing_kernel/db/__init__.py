"""Database layer: declarative base and engine/session management."""

from billing_kernel.db.base import Base, BillingRow, CurrencyCode, MinorUnits, Rate
from billing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "BillingRow",
    "CurrencyCode",
    "MinorUnits",
    "Rate",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
