"""Tests for the Money value object."""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from duesledger.exceptions import InvalidAmount
from duesledger.ledger.domain.money import ZERO, Money

pytestmark = pytest.mark.unit


class TestMoneyParse:
    """Construction from external representations."""

    @pytest.mark.parametrize(
        "value,minor",
        [
            ("10.00", 1000),
            ("10", 1000),
            (" -0.5 ", -50),
            (Decimal("1.50"), 150),
            (3, 300),
            (0.1, 10),
            (19.99, 1999),
        ],
    )
    def test_parse_exact_values(self, value, minor):
        assert Money.parse(value).minor == minor

    def test_parse_returns_money_unchanged(self):
        amount = Money(1234)
        assert Money.parse(amount) is amount

    @pytest.mark.parametrize("value", ["10.005", Decimal("0.001"), 0.125])
    def test_parse_rejects_sub_minor_precision(self, value):
        with pytest.raises(InvalidAmount) as exc_info:
            Money.parse(value)
        assert exc_info.value.context["constraint"] == "max 2 decimal places"

    @pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity", float("nan"), None, True])
    def test_parse_rejects_non_numeric(self, value):
        with pytest.raises(InvalidAmount):
            Money.parse(value)

    def test_minor_units_must_be_int(self):
        with pytest.raises(InvalidAmount):
            Money(1.5)  # type: ignore[arg-type]
        with pytest.raises(InvalidAmount):
            Money(True)


class TestMoneyArithmetic:
    """Exact arithmetic and comparison."""

    def test_add_sub_neg(self):
        a = Money.parse("10.10")
        b = Money.parse("0.20")
        assert a + b == Money.parse("10.30")
        assert a - b == Money.parse("9.90")
        assert -a == Money.parse("-10.10")
        assert abs(-a) == a

    def test_multiply_by_integer(self):
        assert Money.parse("10.00") * 3 == Money.parse("30.00")
        assert 3 * Money.parse("0.01") == Money(3)

    def test_multiply_by_float_is_not_supported(self):
        with pytest.raises(TypeError):
            Money.parse("1.00") * 1.5  # type: ignore[operator]

    def test_comparison(self):
        assert Money.parse("1.00") < Money.parse("1.01")
        assert Money.parse("2.00") >= Money.parse("2.00")
        assert max(Money(5), Money(-7)) == Money(5)

    def test_truthiness(self):
        assert not ZERO
        assert Money(-1)

    def test_sum(self):
        assert Money.sum([Money(1), Money(2), Money(-4)]) == Money(-1)
        assert Money.sum([]) == ZERO

    def test_with_sign_of(self):
        assert Money(20).with_sign_of(Money(-5)) == Money(-20)
        assert Money(-20).with_sign_of(Money(5)) == Money(20)
        assert Money(20).with_sign_of(ZERO) == Money(20)

    def test_str_and_repr(self):
        assert str(Money.parse("-3.5")) == "-3.50"
        assert repr(Money(1)) == "Money('0.01')"
        assert Money(1050).to_decimal() == Decimal("10.50")


class TestMoneySplit:
    """Splitting into shares that sum exactly."""

    def test_split_remainder_goes_to_first_share(self):
        shares = Money.parse("10.00").split(3)
        assert [str(s) for s in shares] == ["3.34", "3.33", "3.33"]

    def test_split_rounds_half_to_even(self):
        # 5 cents / 2 = 2.5 cents, rounded to 2; the first share takes 3
        assert Money(5).split(2) == [Money(3), Money(2)]

    def test_split_negative_amount(self):
        shares = Money.parse("-10.00").split(3)
        assert [str(s) for s in shares] == ["-3.34", "-3.33", "-3.33"]

    def test_split_into_one(self):
        assert Money(7).split(1) == [Money(7)]

    def test_split_requires_positive_parts(self):
        with pytest.raises(ValueError):
            Money(100).split(0)

    @given(
        minor=st.integers(min_value=-10**9, max_value=10**9),
        parts=st.integers(min_value=1, max_value=50),
    )
    def test_split_shares_sum_to_amount(self, minor, parts):
        amount = Money(minor)
        shares = amount.split(parts)

        assert len(shares) == parts
        assert Money.sum(shares) == amount
        assert len(set(shares[1:])) <= 1


class TestMoneyProrate:
    def test_prorate(self):
        assert Money.parse("10.00").prorate(15, 31) == Money.parse("4.84")

    def test_prorate_rounds_half_to_even(self):
        assert Money(5).prorate(1, 2) == Money(2)
        assert Money(15).prorate(1, 2) == Money(8)

    def test_prorate_rejects_zero_denominator(self):
        with pytest.raises(ValueError):
            Money(100).prorate(1, 0)
