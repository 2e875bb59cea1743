"""
Unit tests for Money, Currency and Quantity.

Verifies:
- Integer minor-unit storage and currency precision
- Banker's rounding on scalar multiplication
- Currency mismatch detection
- Float prohibition
- Pro-rata allocation without lost minor units
"""

from decimal import Decimal

import pytest

from billing_kernel.domain.values import Currency, Money, Quantity, allocate_pro_rata
from billing_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError


class TestCurrency:
    """Tests for ISO 4217 currency codes."""

    def test_normalizes_code(self):
        assert Currency(" usd ").code == "USD"

    def test_unknown_code_rejected(self):
        with pytest.raises(InvalidCurrencyError):
            Currency("XYZ")

    def test_decimal_places(self):
        assert Currency("USD").decimal_places == 2
        assert Currency("JPY").decimal_places == 0
        assert Currency("BHD").decimal_places == 3


class TestMoneyConstruction:
    """Tests for building Money values."""

    def test_of_major_units(self):
        money = Money.of("148.00", "USD")
        assert money.minor_units == 14800
        assert money.amount == Decimal("148.00")

    def test_of_int_amount(self):
        assert Money.of(148, "USD").minor_units == 14800

    def test_of_zero_decimal_currency(self):
        assert Money.of("1500", "JPY").minor_units == 1500

    def test_excess_precision_rejected(self):
        with pytest.raises(ValueError):
            Money.of("1.005", "USD")

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            Money.of(1.5, "USD")

    def test_float_minor_units_rejected(self):
        with pytest.raises(TypeError):
            Money(150.0, Currency("USD"))

    def test_bool_minor_units_rejected(self):
        with pytest.raises(TypeError):
            Money(True, Currency("USD"))

    def test_string_currency_coerced(self):
        assert Money(100, "usd").currency == Currency("USD")

    def test_str(self):
        assert str(Money.of("148", "USD")) == "148.00 USD"


class TestMoneyArithmetic:
    """Tests for same-currency arithmetic."""

    def test_add_and_subtract(self):
        a = Money.of("100.00", "USD")
        b = Money.of("50.00", "USD")
        assert a + b == Money.of("150.00", "USD")
        assert a - b == Money.of("50.00", "USD")

    def test_mixed_currency_add_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "USD") + Money.of("1", "EUR")

    def test_mixed_currency_compare_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "USD") < Money.of("1", "EUR")

    def test_sum_empty_is_zero(self):
        assert Money.sum([], "USD") == Money.zero("USD")

    def test_sum(self):
        values = [Money.of("1.10", "USD"), Money.of("2.20", "USD")]
        assert Money.sum(values, "USD") == Money.of("3.30", "USD")

    def test_comparisons(self):
        assert Money.of("2", "USD") > Money.of("1", "USD")
        assert Money.of("1", "USD") <= Money.of("1", "USD")

    def test_sign_properties(self):
        assert Money.zero("USD").is_zero
        assert Money.of("1", "USD").is_positive
        assert (-Money.of("1", "USD")).is_negative

    def test_ratio_to(self):
        assert Money.of("30", "USD").ratio_to(Money.of("120", "USD")) == Decimal("0.25")

    def test_ratio_to_zero_raises(self):
        with pytest.raises(ZeroDivisionError):
            Money.of("30", "USD").ratio_to(Money.zero("USD"))


class TestScalarRounding:
    """multiply_by_scalar rounds once, half to even."""

    def test_tax_on_hundred_dollars(self):
        assert Money.of("100.00", "USD").multiply_by_scalar(Decimal("0.08")) == Money.of(
            "8.00", "USD"
        )

    def test_half_rounds_to_even_down(self):
        # 25 cents * 0.1 = 2.5 cents -> 2
        assert Money.from_minor(25, "USD").multiply_by_scalar(Decimal("0.1")).minor_units == 2

    def test_half_rounds_to_even_up(self):
        # 35 cents * 0.1 = 3.5 cents -> 4
        assert Money.from_minor(35, "USD").multiply_by_scalar(Decimal("0.1")).minor_units == 4

    def test_fractional_quantity(self):
        # 1.5 hours at 33.33 = 49.995 -> 50.00
        assert Money.of("33.33", "USD").multiply_by_scalar("1.5") == Money.of("50.00", "USD")

    def test_float_factor_rejected(self):
        with pytest.raises(TypeError):
            Money.of("1", "USD").multiply_by_scalar(0.5)


class TestAllocateProRata:
    """Largest-remainder allocation."""

    def test_parts_sum_to_total(self):
        parts = allocate_pro_rata(Money.of("10.00", "USD"), [1, 1, 1])
        assert sum(p.minor_units for p in parts) == 1000
        assert [p.minor_units for p in parts] == [334, 333, 333]

    def test_proportional_split(self):
        parts = allocate_pro_rata(Money.of("10.00", "USD"), [10000, 5000])
        assert parts == (Money.of("6.67", "USD"), Money.of("3.33", "USD"))

    def test_zero_weight_gets_nothing(self):
        parts = allocate_pro_rata(Money.of("1.00", "USD"), [0, 1])
        assert parts[0].is_zero
        assert parts[1] == Money.of("1.00", "USD")

    def test_negative_total_keeps_sign(self):
        parts = allocate_pro_rata(Money.of("-1.00", "USD"), [1, 2])
        assert sum(p.minor_units for p in parts) == -100

    def test_empty_weights_rejected(self):
        with pytest.raises(ValueError):
            allocate_pro_rata(Money.of("1", "USD"), [])

    def test_zero_weights_rejected(self):
        with pytest.raises(ValueError):
            allocate_pro_rata(Money.of("1", "USD"), [0, 0])

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            allocate_pro_rata(Money.of("1", "USD"), [1, -1])


class TestQuantity:
    """Tests for Quantity."""

    def test_of(self):
        q = Quantity.of("2.5", "hour")
        assert q.value == Decimal("2.5")
        assert q.unit == "hour"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            Quantity.of("-1")

    def test_blank_unit_rejected(self):
        with pytest.raises(ValueError):
            Quantity.of("1", "  ")

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            Quantity.of(1.5)

    def test_add_same_unit(self):
        assert Quantity.of("1", "hour") + Quantity.of("2", "hour") == Quantity.of("3", "hour")

    def test_add_different_units_raises(self):
        with pytest.raises(ValueError):
            Quantity.of("1", "hour") + Quantity.of("1", "day")
