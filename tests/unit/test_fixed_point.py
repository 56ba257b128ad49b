from decimal import Decimal

import pytest

from mcp_bonding_curve.errors import ArithmeticOverflow, InvalidCurveParameters
from mcp_bonding_curve.fixed_point import (
    MAX_AMOUNT,
    MAX_INTERMEDIATE,
    FixedPoint,
    check_amount,
    checked,
    decimal_to_fixed,
    format_fixed,
    icbrt,
    isqrt,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2", FixedPoint(2, 0)),
        ("0.50", FixedPoint(5, 1)),
        (Decimal("1E+2"), FixedPoint(100, 0)),
        ("0.000000000000000001", FixedPoint(1, 18)),
        (7, FixedPoint(7, 0)),
        ("12.3400", FixedPoint(1234, 2)),
    ],
)
def test_decimal_to_fixed_is_exact(raw, expected):
    assert decimal_to_fixed(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["0", "-1", "NaN", "Infinity", "0.0000000000000000001", "abc", str(MAX_AMOUNT + 1), "1E+40"],
)
def test_decimal_to_fixed_rejects(raw):
    with pytest.raises(InvalidCurveParameters):
        decimal_to_fixed(raw, "slope")


def test_decimal_to_fixed_rejects_float():
    with pytest.raises(InvalidCurveParameters, match="float"):
        decimal_to_fixed(0.5, "value")


def test_fixed_point_str():
    assert str(FixedPoint(25, 1)) == "2.5"
    assert str(FixedPoint(3 * 10**18, 18)) == "3"


@pytest.mark.parametrize(
    "value, scale, expected",
    [
        (12345, 2, "123.45"),
        (100, 2, "1"),
        (5, 3, "0.005"),
        (0, 0, "0"),
        (0, 6, "0"),
        (-150, 2, "-1.5"),
        (10**30, 0, "1" + "0" * 30),
    ],
)
def test_format_fixed(value, scale, expected):
    assert format_fixed(value, scale) == expected


def test_check_amount_bounds():
    assert check_amount(0) == 0
    assert check_amount(MAX_AMOUNT) == MAX_AMOUNT
    with pytest.raises(ArithmeticOverflow):
        check_amount(MAX_AMOUNT + 1)
    with pytest.raises(ArithmeticOverflow):
        check_amount(-1)


def test_checked_bounds():
    assert checked(MAX_INTERMEDIATE) == MAX_INTERMEDIATE
    with pytest.raises(ArithmeticOverflow):
        checked(MAX_INTERMEDIATE + 1)
    with pytest.raises(ArithmeticOverflow):
        checked(-MAX_INTERMEDIATE - 1)


def test_isqrt_floors():
    assert isqrt(0) == 0
    assert isqrt(120) == 10
    assert isqrt(121) == 11
    assert isqrt(10**40 - 1) == 10**20 - 1
    with pytest.raises(ValueError):
        isqrt(-1)


@pytest.mark.parametrize("n, expected", [(0, 0), (1, 1), (7, 1), (8, 2), (26, 2), (27, 3), (729, 9)])
def test_icbrt_small_values(n, expected):
    assert icbrt(n) == expected


def test_icbrt_is_floor_for_large_values():
    assert icbrt(10**30) == 10**10
    assert icbrt(10**30 - 1) == 10**10 - 1
    for n in [2**127, 3**200 + 5, MAX_AMOUNT**2, 123456789**3 - 1, 123456789**3]:
        root = icbrt(n)
        assert root**3 <= n < (root + 1) ** 3


def test_icbrt_rejects_negative():
    with pytest.raises(ValueError):
        icbrt(-8)
