"""
Invoicing Configuration Schema.

Defines the structure and sensible defaults for invoicing settings.
Actual values are loaded from YAML at runtime (see ``billing_config``).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from billing_engines.aging import buckets_from_boundaries
from billing_engines.client_financials import HealthThresholds
from billing_kernel.domain.values import Currency
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import PaymentTerms

logger = get_logger("modules.invoicing.config")

RECURRENCE_TRIGGERS = frozenset({"paid", "sent"})


@dataclass
class InvoicingConfig:
    """
    Configuration schema for the invoicing module.

    Override at instantiation:

        config = InvoicingConfig(
            allow_overpayment=True,
            recurrence_trigger="sent",
        )
    """

    default_currency: str = "USD"
    default_payment_terms: PaymentTerms = PaymentTerms.NET_30

    # Payments
    allow_partial_payment: bool = True
    allow_overpayment: bool = False

    # Recurring invoices: which lifecycle event schedules the next instance
    recurrence_trigger: str = "paid"

    # Client health tiers
    health: HealthThresholds = field(default_factory=HealthThresholds)

    # Aging buckets (in days)
    aging_buckets: tuple[int, ...] = (30, 60, 90)

    def __post_init__(self):
        Currency(self.default_currency)
        self.default_payment_terms = PaymentTerms(self.default_payment_terms)

        if self.recurrence_trigger not in RECURRENCE_TRIGGERS:
            raise ValueError(
                f"recurrence_trigger must be one of {sorted(RECURRENCE_TRIGGERS)}, "
                f"got '{self.recurrence_trigger}'"
            )

        self.aging_buckets = tuple(self.aging_buckets)
        # Raises ValueError on unsorted, duplicate or non-positive boundaries
        buckets_from_boundaries(self.aging_buckets)

        logger.info(
            "invoicing_config_initialized",
            extra={
                "default_currency": self.default_currency,
                "default_payment_terms": self.default_payment_terms.value,
                "allow_partial_payment": self.allow_partial_payment,
                "allow_overpayment": self.allow_overpayment,
                "recurrence_trigger": self.recurrence_trigger,
                "aging_buckets": list(self.aging_buckets),
            },
        )

    @property
    def currency(self) -> Currency:
        return Currency(self.default_currency)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard defaults."""
        logger.info("invoicing_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary (e.g., a parsed YAML section)."""
        logger.info(
            "invoicing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if isinstance(data.get("health"), dict):
            data["health"] = HealthThresholds(
                **{k: Decimal(str(v)) for k, v in data["health"].items()}
            )
        if "aging_buckets" in data:
            data["aging_buckets"] = tuple(data["aging_buckets"])
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown invoicing config keys: {sorted(unknown)}")
        return cls(**data)
