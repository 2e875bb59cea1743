"""
Pure domain layer.

Value objects and result types with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (other than the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from billing_kernel.domain.metadata import Metadata, MetadataSchema
from billing_kernel.domain.outcome import Outcome
from billing_kernel.domain.values import Currency, Money, Quantity, allocate_pro_rata
from billing_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Metadata",
    "MetadataSchema",
    "Outcome",
    "Currency",
    "Money",
    "Quantity",
    "allocate_pro_rata",
    "Guard",
    "Transition",
    "Workflow",
]
