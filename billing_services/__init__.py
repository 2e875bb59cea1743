"""
Billing Services.

Stateful coordinators over the lifecycle and the engines:

- InvoiceService: load -> change -> save -> publish for one invoice
- EventBus: in-process lifecycle event delivery
- ClientFinancialAggregator: per-client serialized summary recomputation
- RecurringInvoiceScheduler: next-instance generation requests
- Stores: in-memory ports and a SQLAlchemy invoice store
"""

from billing_services.client_aggregator import ClientFinancialAggregator
from billing_services.event_bus import EventBus
from billing_services.invoice_service import InvoiceService
from billing_services.locks import KeyedLocks
from billing_services.recurring_scheduler import RecurringInvoiceScheduler
from billing_services.sql_store import SqlInvoiceStore
from billing_services.stores import (
    InMemoryClientDirectory,
    InMemoryInvoiceStore,
    InMemoryRecurringStore,
    RecordingGenerationSink,
)

__all__ = [
    "ClientFinancialAggregator",
    "EventBus",
    "InvoiceService",
    "KeyedLocks",
    "RecurringInvoiceScheduler",
    "SqlInvoiceStore",
    "InMemoryClientDirectory",
    "InMemoryInvoiceStore",
    "InMemoryRecurringStore",
    "RecordingGenerationSink",
]
