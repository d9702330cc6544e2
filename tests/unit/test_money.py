"""
Unit tests for Money, Currency and ExchangeRate.

Verifies:
- Decimal-only construction (floats rejected)
- Half-up rounding to the currency's minor unit
- No silent currency mixing
- Exchange rate conversion and inversion
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.values import Currency, ExchangeRate, Money
from ledger_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError


class TestMoneyConstruction:
    def test_of_string(self):
        money = Money.of("12.50", "RON")
        assert money.amount == Decimal("12.50")
        assert money.currency == Currency("RON")

    def test_currency_code_normalized(self):
        assert Money.of("1", "ron").currency.code == "RON"

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            Money.of(12.5, "RON")

    def test_invalid_amount_rejected(self):
        with pytest.raises(ValueError):
            Money.of("twelve", "RON")

    def test_unknown_currency_rejected(self):
        with pytest.raises(InvalidCurrencyError):
            Money.of("1", "XYZ")

    def test_zero(self):
        assert Money.zero("RON").is_zero
        assert not Money.zero("RON").is_positive


class TestMoneyRounding:
    def test_half_up(self):
        assert Money.of("10.005", "RON").round().amount == Decimal("10.01")
        assert Money.of("10.004", "RON").round().amount == Decimal("10.00")

    def test_negative_half_up_rounds_away_from_zero(self):
        assert Money.of("-10.005", "RON").round().amount == Decimal("-10.01")


class TestMoneyArithmetic:
    def test_add_and_subtract(self):
        total = Money.of("100", "RON") + Money.of("25.50", "RON") - Money.of("0.50", "RON")
        assert total == Money.of("125.00", "RON")

    def test_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "RON") + Money.of("1", "EUR")

    def test_comparison_mismatch(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "RON") < Money.of("1", "EUR")

    def test_multiply_and_abs(self):
        assert Money.of("200", "RON") * Decimal("0.02") == Money.of("4", "RON")
        assert abs(Money.of("-30", "RON")) == Money.of("30", "RON")


class TestExchangeRate:
    def test_convert(self):
        rate = ExchangeRate.of("EUR", "RON", "5.08")
        assert rate.convert(Money.of("100", "EUR")) == Money.of("508", "RON")

    def test_convert_wrong_currency(self):
        rate = ExchangeRate.of("EUR", "RON", "5.08")
        with pytest.raises(CurrencyMismatchError):
            rate.convert(Money.of("100", "RON"))

    def test_non_positive_rate_rejected(self):
        with pytest.raises(ValueError):
            ExchangeRate.of("EUR", "RON", "0")
