"""
Values -- Immutable, self-validating money and quantity value objects.

Responsibility:
    Provides the foundational value types for every invoice computation:
    Currency, Money and Quantity. Money stores an integer count of minor
    units (cents for USD, yen for JPY) so sums never drift.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module. No outward dependencies except
    billing_kernel.domain.currency and billing_kernel.exceptions.

Invariants enforced:
    - Money is an integer minor-unit amount paired with a Currency; floats
      are rejected at every entry point.
    - add / subtract / compare require matching currencies, otherwise
      CurrencyMismatchError.
    - multiply_by_scalar rounds exactly once, to the nearest minor unit,
      with banker's rounding (ROUND_HALF_EVEN).
    - allocate_pro_rata parts always sum to the allocated total.

Failure modes:
    - InvalidCurrencyError on an unknown ISO 4217 code.
    - ValueError when a major-unit amount has more precision than the
      currency's minor unit (e.g. Money.of("1.005", "USD")).
    - TypeError when a float is supplied.
    - CurrencyMismatchError when arithmetic mixes currencies.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from fractions import Fraction

from billing_kernel.domain.currency import CurrencyRegistry
from billing_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError

Scalar = Decimal | int | str


def _to_decimal(value: Scalar, what: str) -> Decimal:
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{what} must be Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        try:
            return Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Invalid {what}: {value!r}") from e
    raise TypeError(f"{what} must be Decimal, int or str, got {type(value).__name__}")


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Guarantees:
        - code is always uppercase and stripped of whitespace
        - code is always registered in CurrencyRegistry
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if self.code else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise InvalidCurrencyError(self.code)
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount stored as integer minor units.

    Contract:
        ``minor_units`` and ``currency`` are never separated. ``amount``
        is the major-unit Decimal view, exact by construction.

    Guarantees:
        - Immutable and hashable
        - minor_units is always an int (never float, never bool)
        - No silent currency mixing, no silent precision loss

    Non-goals:
        - No currency conversion
    """

    minor_units: int
    currency: Currency

    def __post_init__(self) -> None:
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise TypeError(
                f"minor_units must be int, got {type(self.minor_units).__name__}"
            )
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Scalar, currency: str | Currency) -> Money:
        """
        Build Money from a major-unit amount ("148.00", 148, Decimal("148")).

        Raises:
            ValueError: If the amount has more decimal places than the
                currency's minor unit allows.
            TypeError: If amount is a float.
        """
        if isinstance(currency, str):
            currency = Currency(currency)
        value = _to_decimal(amount, "amount")
        if not value.is_finite():
            raise ValueError(f"Amount must be finite: {value}")
        scaled = value.scaleb(currency.decimal_places)
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"Amount {value} exceeds {currency.code} precision "
                f"({currency.decimal_places} decimal places)"
            )
        return cls(minor_units=int(scaled), currency=currency)

    @classmethod
    def from_minor(cls, minor_units: int, currency: str | Currency) -> Money:
        """Build Money directly from minor units."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(minor_units=minor_units, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(minor_units=0, currency=currency)

    @classmethod
    def sum(cls, values: Sequence[Money], currency: str | Currency) -> Money:
        """Sum a sequence of Money values; empty sums to zero in ``currency``."""
        total = cls.zero(currency)
        for value in values:
            total = total.add(value)
        return total

    @property
    def amount(self) -> Decimal:
        """Major-unit Decimal view (Decimal('148.00') for 14800 USD cents)."""
        places = self.currency.decimal_places
        return Decimal(self.minor_units).scaleb(-places).quantize(
            Decimal(1).scaleb(-places)
        )

    @property
    def is_zero(self) -> bool:
        return self.minor_units == 0

    @property
    def is_positive(self) -> bool:
        return self.minor_units > 0

    @property
    def is_negative(self) -> bool:
        return self.minor_units < 0

    def _require_same_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)

    def add(self, other: Money) -> Money:
        """Add two Money values of the same currency."""
        self._require_same_currency(other)
        return Money(self.minor_units + other.minor_units, self.currency)

    def subtract(self, other: Money) -> Money:
        """Subtract ``other`` from this value; currencies must match."""
        self._require_same_currency(other)
        return Money(self.minor_units - other.minor_units, self.currency)

    def multiply_by_scalar(self, factor: Scalar) -> Money:
        """
        Multiply by a scalar and round once to the nearest minor unit.

        Uses ROUND_HALF_EVEN so repeated tax computations carry no
        systematic upward bias.
        """
        factor = _to_decimal(factor, "factor")
        product = Decimal(self.minor_units) * factor
        return Money(int(product.to_integral_value(rounding=ROUND_HALF_EVEN)), self.currency)

    def ratio_to(self, other: Money) -> Decimal:
        """Exact Decimal ratio self / other; other must be non-zero."""
        self._require_same_currency(other)
        if other.minor_units == 0:
            raise ZeroDivisionError("ratio to a zero amount")
        return Decimal(self.minor_units) / Decimal(other.minor_units)

    def allocate(self, weights: Sequence[Scalar]) -> tuple[Money, ...]:
        """Split this amount across ``weights``; see ``allocate_pro_rata``."""
        return allocate_pro_rata(self, weights)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self.subtract(other)

    def __mul__(self, factor: Scalar) -> Money:
        if isinstance(factor, Money):
            return NotImplemented
        return self.multiply_by_scalar(factor)

    def __rmul__(self, factor: Scalar) -> Money:
        return self.__mul__(factor)

    def __neg__(self) -> Money:
        return Money(-self.minor_units, self.currency)

    def __abs__(self) -> Money:
        return Money(abs(self.minor_units), self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units >= other.minor_units

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!s}, {self.currency.code!r})"


def allocate_pro_rata(total: Money, weights: Sequence[Scalar]) -> tuple[Money, ...]:
    """
    Split ``total`` across ``weights`` without losing a single minor unit.

    Largest-remainder method: every part gets the floor of its exact share,
    then the leftover minor units go one each to the parts with the largest
    fractional remainders (earliest index wins ties).

    Raises:
        ValueError: If weights is empty, contains a negative weight, or
            sums to zero.
        TypeError: If a weight is a float.
    """
    if not weights:
        raise ValueError("allocate_pro_rata requires at least one weight")
    exact = [Fraction(_to_decimal(w, "weight")) for w in weights]
    if any(w < 0 for w in exact):
        raise ValueError("allocation weights cannot be negative")
    weight_total = sum(exact, Fraction(0))
    if weight_total == 0:
        raise ValueError("allocation weights sum to zero")

    sign = -1 if total.minor_units < 0 else 1
    magnitude = abs(total.minor_units)

    shares = [magnitude * w / weight_total for w in exact]
    floors = [int(share) for share in shares]
    leftover = magnitude - sum(floors)

    by_remainder = sorted(
        range(len(shares)),
        key=lambda i: (-(shares[i] - floors[i]), i),
    )
    for i in by_remainder[:leftover]:
        floors[i] += 1

    return tuple(Money(sign * part, total.currency) for part in floors)


@dataclass(frozen=True, slots=True)
class Quantity:
    """
    Non-negative numeric quantity with a unit label (hours, units, days).

    Guarantees:
        - value is a Decimal, never a float, never negative
        - unit is a non-empty, stripped string
    """

    value: Decimal
    unit: str = "unit"

    def __post_init__(self) -> None:
        value = _to_decimal(self.value, "quantity")
        if not value.is_finite():
            raise ValueError(f"Quantity must be finite: {value}")
        if value < 0:
            raise ValueError(f"Quantity cannot be negative: {value}")
        object.__setattr__(self, "value", value)
        if not self.unit or not self.unit.strip():
            raise ValueError("Quantity unit is required")
        object.__setattr__(self, "unit", self.unit.strip())

    @classmethod
    def of(cls, value: Scalar, unit: str = "unit") -> Quantity:
        return cls(value=_to_decimal(value, "quantity"), unit=unit)

    @property
    def is_zero(self) -> bool:
        return self.value == 0

    def __add__(self, other: Quantity) -> Quantity:
        if not isinstance(other, Quantity):
            return NotImplemented
        if self.unit != other.unit:
            raise ValueError(
                f"Cannot add Quantity with different units: {self.unit} and {other.unit}"
            )
        return Quantity(self.value + other.value, self.unit)

    def __str__(self) -> str:
        return f"{self.value} {self.unit}"
