"""Tests for the Money value object."""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.core.entities.money import Money, to_decimal
from src.core.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidCurrencyError,
    NegativeResultError,
)


class TestMoneyConstruction:
    """Tests for Money creation and normalization."""

    def test_amount_and_currency(self):
        money = Money(Decimal("100.50"), "USD")
        assert money.amount == Decimal("100.50")
        assert money.currency == "USD"

    def test_currency_is_trimmed_and_upper_cased(self):
        assert Money("1", " eur ").currency == "EUR"

    def test_default_currency_is_usd(self):
        assert Money(5).currency == "USD"

    def test_float_is_converted_exactly(self):
        assert Money(0.1).amount == Decimal("0.1")

    def test_numeric_string_with_thousands_separator(self):
        assert Money("1,200.50").amount == Decimal("1200.50")

    def test_zero_is_allowed(self):
        assert Money.zero("GBP") == Money(Decimal("0"), "GBP")

    def test_keyword_construction(self):
        assert Money(amount="3.00", currency="usd") == Money("3.00", "USD")

    @pytest.mark.parametrize("amount", [Decimal("-0.01"), -5, "abc", Decimal("NaN"), "Infinity", True, None])
    def test_invalid_amount_raises(self, amount):
        with pytest.raises(InvalidAmountError):
            Money(amount, "USD")

    @pytest.mark.parametrize("currency", ["", "   ", None])
    def test_blank_currency_raises(self, currency):
        with pytest.raises(InvalidCurrencyError):
            Money("1.00", currency)

    def test_is_immutable(self):
        money = Money("1.00", "USD")
        with pytest.raises(PydanticValidationError):
            money.amount = Decimal("2.00")


class TestMoneyArithmetic:
    """Tests for Money operators."""

    def test_add_same_currency(self):
        assert Money("100.50", "USD") + Money("25.25", "USD") == Money("125.75", "USD")

    def test_add_currency_mismatch_raises(self):
        with pytest.raises(CurrencyMismatchError) as exc_info:
            Money("1", "USD") + Money("1", "EUR")
        assert exc_info.value.details["operation"] == "add"

    def test_subtract(self):
        assert Money("100.50", "USD") - Money("25.25", "USD") == Money("75.25", "USD")

    def test_subtract_to_zero(self):
        assert Money("10", "USD") - Money("10", "USD") == Money.zero("USD")

    def test_subtract_negative_result_raises(self):
        with pytest.raises(NegativeResultError):
            Money("25.25", "USD") - Money("100.50", "USD")

    def test_subtract_currency_mismatch_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money("10", "USD") - Money("1", "EUR")

    def test_multiply_by_scalar(self):
        assert Money("15.75", "USD") * 3 == Money("47.25", "USD")

    def test_multiply_scalar_on_left(self):
        assert 3 * Money("15.75", "USD") == Money("47.25", "USD")

    def test_multiply_by_decimal(self):
        assert (Money("2.50", "USD") * Decimal("1.5")).amount == Decimal("3.750")

    def test_multiply_by_negative_raises(self):
        with pytest.raises(InvalidAmountError):
            Money("2.50", "USD") * -1

    def test_multiply_by_money_is_unsupported(self):
        with pytest.raises(TypeError):
            Money("2", "USD") * Money("3", "USD")


class TestMoneyComparison:
    """Tests for Money ordering."""

    def test_ordering(self):
        small = Money("1.00", "USD")
        large = Money("2.00", "USD")
        assert small < large
        assert small <= large
        assert large > small
        assert large >= small
        assert small <= Money("1.00", "USD")

    def test_compare_currency_mismatch_raises(self):
        with pytest.raises(CurrencyMismatchError):
            _ = Money("1", "USD") < Money("2", "EUR")

    def test_equality_needs_same_currency(self):
        assert Money("1.00", "USD") != Money("1.00", "EUR")


class TestMoneyFormatting:
    """Tests for str/repr/parse/rounded."""

    def test_str(self):
        assert str(Money("100.50", "USD")) == "100.50 USD"

    def test_repr(self):
        assert repr(Money("100.50", "USD")) == "Money('100.50', 'USD')"

    def test_parse_str_form(self):
        money = Money("1234.56", "EUR")
        assert Money.parse(str(money)) == money

    def test_parse_garbage_raises(self):
        with pytest.raises(InvalidAmountError):
            Money.parse("100.50")

    def test_rounded_half_up(self):
        assert Money("10.005", "USD").rounded().amount == Decimal("10.01")
        assert Money("10.004", "USD").rounded().amount == Decimal("10.00")


class TestToDecimal:
    """Tests for to_decimal()."""

    def test_int(self):
        assert to_decimal(3) == Decimal("3")

    def test_decimal_passthrough(self):
        value = Decimal("1.23")
        assert to_decimal(value) is value

    def test_string_with_spaces(self):
        assert to_decimal(" 42.10 ") == Decimal("42.10")
