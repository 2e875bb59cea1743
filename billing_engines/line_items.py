"""
Module: billing_engines.line_items
Responsibility:
    Derive an invoice's monetary fields from its line items: subtotal,
    taxable base, tax, discount and total. Also splits the discount pro
    rata across the line amounts for reporting.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Imports billing_kernel domain values and the invoicing models only.

Invariants enforced:
    - total == subtotal - discount + tax_amount, exactly, in minor units.
    - tax_amount == round_half_even(taxable_base * tax_rate); rounding is
      applied once, at the tax step. Line amounts are already whole minor
      units.
    - 0 <= discount <= subtotal and 0 <= tax_rate < 1.
    - Every line is in the invoice currency.
    - Discount allocation parts sum exactly to the discount.

Failure modes (returned as a failed Outcome, never raised):
    - CurrencyMismatchError: a line rate in another currency.
    - InvalidDiscountError: discount negative or larger than subtotal.
    - InvalidTaxRateError: tax rate outside [0, 1).
    - InvalidLineItemError: blank description or negative rate.

Usage:
    from billing_engines.line_items import compute_totals

    outcome = compute_totals(items, Decimal("0.08"), Money.of("10", "USD"))
    if outcome.success:
        totals = outcome.value   # DerivedTotals(subtotal=150.00 USD, ...)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from billing_engines.tracer import traced_engine
from billing_kernel.domain.outcome import Outcome
from billing_kernel.domain.values import Currency, Money, Scalar, _to_decimal
from billing_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidDiscountError,
    InvalidLineItemError,
    InvalidTaxRateError,
)
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import LineItem

logger = get_logger("engines.line_items")


@dataclass(frozen=True)
class DerivedTotals:
    """
    The derived monetary fields of an invoice.

    ``line_amounts`` and ``discount_allocation`` are index-aligned with the
    line items the totals were computed from.
    """
    currency: Currency
    subtotal: Money
    taxable_base: Money
    tax_rate: Decimal
    tax_amount: Money
    discount: Money
    total: Money
    line_amounts: tuple[Money, ...] = ()
    discount_allocation: tuple[Money, ...] = ()

    @property
    def net_line_amounts(self) -> tuple[Money, ...]:
        """Each line amount after its share of the discount."""
        if not self.discount_allocation:
            return self.line_amounts
        return tuple(a - d for a, d in zip(self.line_amounts, self.discount_allocation))


def validate_tax_rate(tax_rate: Scalar) -> Decimal:
    """Coerce a tax rate to Decimal and check 0 <= rate < 1.

    Raises:
        InvalidTaxRateError: rate out of range or not finite.
        TypeError: rate supplied as a float.
    """
    try:
        rate = _to_decimal(tax_rate, "tax_rate")
    except ValueError as e:
        raise InvalidTaxRateError(str(tax_rate)) from e
    if not rate.is_finite() or rate < 0 or rate >= 1:
        raise InvalidTaxRateError(str(rate))
    return rate


@traced_engine("line_items", "1.0", fingerprint_fields=("items", "tax_rate", "discount"))
def compute_totals(
    items: Sequence[LineItem],
    tax_rate: Scalar,
    discount: Money,
) -> Outcome[DerivedTotals]:
    """
    Compute subtotal, taxable base, tax and total for ``items``.

    The currency of the result is the discount's currency; pass
    ``Money.zero(currency)`` when there is no discount. An empty item list
    yields zero totals; whether that is acceptable depends on the invoice
    status and is decided by the lifecycle.
    """
    currency = discount.currency

    try:
        rate = validate_tax_rate(tax_rate)
    except InvalidTaxRateError as e:
        logger.warning("tax_rate_rejected", extra={"tax_rate": str(tax_rate)})
        return Outcome.fail(e)

    line_amounts: list[Money] = []
    taxable_base = Money.zero(currency)
    for item in items:
        if not item.description or not item.description.strip():
            return Outcome.fail(InvalidLineItemError(str(item.id), "description is required"))
        if item.currency != currency:
            return Outcome.fail(CurrencyMismatchError(currency.code, item.currency.code))
        if item.rate.is_negative:
            return Outcome.fail(InvalidLineItemError(str(item.id), "rate cannot be negative"))
        amount = item.amount
        line_amounts.append(amount)
        if item.taxable:
            taxable_base = taxable_base + amount

    subtotal = Money.sum(line_amounts, currency)

    if discount.is_negative or discount > subtotal:
        logger.warning(
            "discount_rejected",
            extra={"discount": str(discount), "subtotal": str(subtotal)},
        )
        return Outcome.fail(InvalidDiscountError(str(discount), str(subtotal)))

    tax_amount = taxable_base.multiply_by_scalar(rate)
    total = subtotal - discount + tax_amount

    allocation: tuple[Money, ...] = ()
    if not discount.is_zero:
        # discount <= subtotal and discount > 0, so the weights sum to a positive value
        allocation = discount.allocate([a.minor_units for a in line_amounts])

    logger.debug(
        "totals_computed",
        extra={
            "line_count": len(line_amounts),
            "subtotal_minor": subtotal.minor_units,
            "tax_minor": tax_amount.minor_units,
            "total_minor": total.minor_units,
        },
    )

    return Outcome.ok(
        DerivedTotals(
            currency=currency,
            subtotal=subtotal,
            taxable_base=taxable_base,
            tax_rate=rate,
            tax_amount=tax_amount,
            discount=discount,
            total=total,
            line_amounts=tuple(line_amounts),
            discount_allocation=allocation,
        )
    )
