"""
Module: billing_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the canonical import surface for the
    lifecycle module and the services layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import billing_kernel domain values and billing_modules.invoicing
    models. MUST NOT import billing_services.

Invariants enforced:
    - Purity: engines never read a clock; dates are passed in by callers.
    - Integer minor-unit money and Decimal ratios; floats are rejected.
    - Determinism: identical inputs always produce identical outputs.

Every engine invocation is traced via ``@traced_engine`` (see
``billing_engines.tracer``), emitting a BILLING_ENGINE_TRACE record.
"""

from billing_kernel.logging_config import get_logger

logger = get_logger("engines")

from billing_engines.aging import (
    STANDARD_BUCKETS,
    AgeBucket,
    AgedInvoice,
    AgingReport,
    age_receivables,
    buckets_from_boundaries,
)
from billing_engines.client_financials import (
    DEFAULT_HEALTH_THRESHOLDS,
    HealthThresholds,
    average_payment_days,
    classify_health,
    recompute_client_aggregates,
)
from billing_engines.line_items import DerivedTotals, compute_totals, validate_tax_rate
from billing_engines.recurrence import add_interval, advance, next_recurrence
from billing_engines.revenue import RevenueSummary, quarterly_breakdown, summarize_revenue
from billing_engines.tracer import traced_engine

__all__ = [
    "STANDARD_BUCKETS",
    "AgeBucket",
    "AgedInvoice",
    "AgingReport",
    "age_receivables",
    "buckets_from_boundaries",
    "DEFAULT_HEALTH_THRESHOLDS",
    "HealthThresholds",
    "average_payment_days",
    "classify_health",
    "recompute_client_aggregates",
    "DerivedTotals",
    "compute_totals",
    "validate_tax_rate",
    "add_interval",
    "advance",
    "next_recurrence",
    "RevenueSummary",
    "quarterly_breakdown",
    "summarize_revenue",
    "traced_engine",
]
