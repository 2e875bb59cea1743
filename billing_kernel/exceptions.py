"""
Typed Exception Hierarchy for the Billing Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to react to a failure by its kind, not by parsing a
message. Every error therefore has:
  1. a TYPED exception class (catch or match by type)
  2. a CODE class attribute (machine-readable, API-safe)
  3. structured DATA attributes (not just a message string)

Component boundaries (aggregator, lifecycle, client aggregates) do not raise
these across the boundary. They wrap them in an ``Outcome`` (see
``billing_kernel.domain.outcome``) so callers decide whether to retry or
surface the error:

    outcome = transition(invoice, SendInvoice(at=today), directory)
    if not outcome.success:
        if isinstance(outcome.error, MissingClientReferenceError):
            refresh_directory()
        log.warning("send_failed", extra={"code": outcome.error.code})

Value objects (Money, LineItem, ...) still raise on invalid construction;
that is a programming error at the call site, not a business outcome.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BillingKernelError (base)
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- PricingError
    |   +-- InvalidDiscountError
    |   +-- InvalidTaxRateError
    |   +-- InvalidLineItemError
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |   +-- MissingClientReferenceError
    |   +-- EmptyLineItemsOnSendError
    |   +-- InvalidPaymentError
    |   +-- InvoiceImmutableError
    |
    +-- LookupFailedError
    |   +-- InvoiceNotFoundError
    |
    +-- InvalidMetadataError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                      | When
-----------|---------------------------|---------------------------------------
Currency   | INVALID_CURRENCY          | Not a known ISO 4217 code
           | CURRENCY_MISMATCH         | Mixed currencies in one operation
Pricing    | INVALID_DISCOUNT          | Discount negative or above subtotal
           | INVALID_TAX_RATE          | Tax rate outside [0, 1)
           | INVALID_LINE_ITEM         | Line item cannot be priced
Lifecycle  | INVALID_TRANSITION        | No transition for (state, signal)
           | MISSING_CLIENT_REFERENCE  | Client id does not resolve
           | EMPTY_LINE_ITEMS_ON_SEND  | Sending an invoice with no lines
           | INVALID_PAYMENT           | Payment rejected by policy
           | INVOICE_IMMUTABLE         | Financial edit on a locked invoice
Lookup     | INVOICE_NOT_FOUND         | Store has no invoice with that id
Metadata   | INVALID_METADATA          | Recognized key with the wrong type
"""

from __future__ import annotations


class BillingKernelError(Exception):
    """
    Base exception for all billing kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "BILLING_KERNEL_ERROR"


# Currency


class CurrencyError(BillingKernelError):
    """Base exception for currency errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not a known ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: {currency!r}")


class CurrencyMismatchError(CurrencyError):
    """Attempted operation on mismatched currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(f"Currency mismatch: {currency1} vs {currency2}")


# Pricing


class PricingError(BillingKernelError):
    """Base exception for line-item pricing errors."""

    code: str = "PRICING_ERROR"


class InvalidDiscountError(PricingError):
    """Discount is negative or larger than the subtotal."""

    code: str = "INVALID_DISCOUNT"

    def __init__(self, discount: str, subtotal: str):
        self.discount = discount
        self.subtotal = subtotal
        super().__init__(
            f"Discount {discount} must be between zero and subtotal {subtotal}"
        )


class InvalidTaxRateError(PricingError):
    """Tax rate is outside the half-open interval [0, 1)."""

    code: str = "INVALID_TAX_RATE"

    def __init__(self, tax_rate: str):
        self.tax_rate = tax_rate
        super().__init__(f"Tax rate must satisfy 0 <= rate < 1, got {tax_rate}")


class InvalidLineItemError(PricingError):
    """A line item cannot be priced."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, line_item_id: str, reason: str):
        self.line_item_id = line_item_id
        self.reason = reason
        super().__init__(f"Invalid line item {line_item_id}: {reason}")


# Lifecycle


class LifecycleError(BillingKernelError):
    """Base exception for invoice lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """No transition exists for the invoice's status and the given signal."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, invoice_id: str, from_status: str, action: str, reason: str = ""):
        self.invoice_id = invoice_id
        self.from_status = from_status
        self.action = action
        self.reason = reason
        message = f"Invoice {invoice_id}: cannot '{action}' from status '{from_status}'"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class MissingClientReferenceError(LifecycleError):
    """The invoice's client id does not resolve in the client directory."""

    code: str = "MISSING_CLIENT_REFERENCE"

    def __init__(self, invoice_id: str, client_id: str):
        self.invoice_id = invoice_id
        self.client_id = client_id
        super().__init__(f"Invoice {invoice_id} references unknown client {client_id}")


class EmptyLineItemsOnSendError(LifecycleError):
    """An invoice without line items cannot leave draft."""

    code: str = "EMPTY_LINE_ITEMS_ON_SEND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} has no line items")


class InvalidPaymentError(LifecycleError):
    """A payment signal was rejected by the payment policy."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, invoice_id: str, amount: str, reason: str):
        self.invoice_id = invoice_id
        self.amount = amount
        self.reason = reason
        super().__init__(f"Payment of {amount} rejected for invoice {invoice_id}: {reason}")


class InvoiceImmutableError(LifecycleError):
    """Financial fields of the invoice can no longer change."""

    code: str = "INVOICE_IMMUTABLE"

    def __init__(self, invoice_id: str, status: str, reason: str):
        self.invoice_id = invoice_id
        self.status = status
        self.reason = reason
        super().__init__(f"Invoice {invoice_id} ({status}) is immutable: {reason}")


# Lookup


class LookupFailedError(BillingKernelError):
    """Base exception for collaborator lookups."""

    code: str = "LOOKUP_FAILED"


class InvoiceNotFoundError(LookupFailedError):
    """Invoice with the given id does not exist in the store."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


# Metadata


class InvalidMetadataError(BillingKernelError):
    """A recognized metadata key carries a value of the wrong type."""

    code: str = "INVALID_METADATA"

    def __init__(self, call_site: str, key: str, expected: str, actual: str):
        self.call_site = call_site
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Metadata key {key!r} for {call_site} expects {expected}, got {actual}"
        )
