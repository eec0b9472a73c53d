from decimal import Decimal

import pytest

from fee_engine.core.exceptions import ValidationError
from fee_engine.core.fees import Money


def test_of_converts_rupees_to_minor_units() -> None:
    assert Money.of("12.34").minor == 1234
    assert Money.of(Decimal("100")).minor == 10000
    assert Money.of(7).minor == 700
    assert Money.of("100").to_decimal() == Decimal("100.00")


def test_of_rejects_sub_minor_precision() -> None:
    with pytest.raises(ValidationError):
        Money.of("1.005")


def test_of_rejects_floats() -> None:
    with pytest.raises(TypeError):
        Money.of(1.5)


def test_of_rejects_garbage() -> None:
    with pytest.raises(ValidationError):
        Money.of("12,50")


def test_arithmetic_and_ordering() -> None:
    a = Money.of("10.50")
    b = Money.of("0.75")
    assert a + b == Money.of("11.25")
    assert a - b == Money.of("9.75")
    assert b < a
    assert max(a, b) == a
    assert Money.total([a, b, b]) == Money.of("12.00")
    assert -b == Money(-75)


def test_mixing_with_plain_numbers_is_an_error() -> None:
    with pytest.raises(TypeError):
        Money.of("1") + 1


def test_percent_rounds_half_up() -> None:
    # 10001 paise * 50% = 5000.5 -> 5001
    assert Money.of("100.01").percent(50) == Money(5001)
    # 100 paise * 1.5% = 1.5 -> 2
    assert Money.of("1.00").percent(Decimal("1.5")) == Money(2)
    assert Money.of("0.99").percent(Decimal("12.5")) == Money(12)


def test_share_floors() -> None:
    assert Money(1000).share(1, 3) == Money(333)
    assert Money(1000).share(2, 3) == Money(666)


def test_clamp_and_floor_zero() -> None:
    assert Money.of("50").clamp(Money.zero(), Money.of("40")) == Money.of("40")
    assert Money(-5).clamp(Money.zero(), Money.of("40")) == Money.zero()
    assert Money(-5).floor_zero().is_zero()
    assert Money(5).is_positive()


def test_money_is_immutable() -> None:
    m = Money.of("1")
    with pytest.raises(AttributeError):
        m.minor = 5


def test_str_is_two_decimal_rupees() -> None:
    assert str(Money.of("5")) == "5.00"
    assert repr(Money.of("3.1")) == "Money(3.10)"
