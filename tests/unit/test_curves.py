from decimal import Decimal
from fractions import Fraction

import pytest

from mcp_bonding_curve.curves import Constant, Linear, SquareRoot, build_curve
from mcp_bonding_curve.errors import ArithmeticOverflow, InvalidCurveParameters, InvalidIssuanceConfig
from mcp_bonding_curve.fixed_point import MAX_AMOUNT, FixedPoint
from mcp_bonding_curve.schemas import ConstantCurve, DecimalPlaces, LinearCurve, SquareRootCurve

WHOLE = DecimalPlaces(supply=0, reserve=0)


def constant(value, decimals=WHOLE):
    return build_curve(ConstantCurve(value=Decimal(value)), decimals)


def linear(slope, decimals=WHOLE):
    return build_curve(LinearCurve(slope=Decimal(slope)), decimals)


def square_root(slope, decimals=WHOLE):
    return build_curve(SquareRootCurve(slope=Decimal(slope)), decimals)


def real_reserve_squared(curve, supply):
    """Exact (reserve)^2 for decimals 0/0, as a Fraction, for each curve shape."""
    p = Fraction(curve.param.value, curve.param.denominator)
    if isinstance(curve, Constant):
        return (p * supply) ** 2
    if isinstance(curve, Linear):
        return (p * supply * supply / 2) ** 2
    return Fraction(4, 9) * p * p * supply**3


class TestBuildCurve:
    def test_dispatches_on_type(self):
        assert isinstance(constant("2"), Constant)
        assert isinstance(linear("1"), Linear)
        assert isinstance(square_root("1"), SquareRoot)

    def test_keeps_exact_parameter(self):
        curve = linear("0.015", DecimalPlaces(supply=6, reserve=2))
        assert curve.param == FixedPoint(15, 3)
        assert curve.supply_unit == 10**6
        assert curve.reserve_unit == 100

    @pytest.mark.parametrize("value", ["0", "-3", "0.0000000000000000001"])
    def test_rejects_bad_parameters(self, value):
        with pytest.raises(InvalidCurveParameters):
            constant(value)
        with pytest.raises(InvalidCurveParameters):
            square_root(value)

    def test_rejects_out_of_range_decimals(self):
        with pytest.raises(InvalidIssuanceConfig):
            Constant(FixedPoint(1, 0), 19, 0)


class TestConstant:
    def test_price_two(self):
        curve = constant("2")
        assert str(curve.spot_price(0)) == "2"
        assert str(curve.spot_price(1000)) == "2"
        assert curve.reserve(50) == 100
        assert curve.supply(100) == 50
        assert curve.supply(101) == 50
        assert curve.supply(1) == 0

    def test_rescales_between_denominations(self):
        # 0.5 reserve per whole token; 6 supply decimals, 2 reserve decimals
        curve = constant("0.5", DecimalPlaces(supply=6, reserve=2))
        assert curve.reserve(10**6) == 50
        assert curve.supply(50) == 10**6
        assert curve.reserve(1) == 0
        assert curve.supply(1) == 20_000

    def test_overflow(self):
        assert constant("1").reserve(MAX_AMOUNT) == MAX_AMOUNT
        with pytest.raises(ArithmeticOverflow):
            constant("2").reserve(MAX_AMOUNT)
        with pytest.raises(ArithmeticOverflow):
            constant("1").reserve(MAX_AMOUNT + 1)


class TestLinear:
    def test_slope_one(self):
        curve = linear("1")
        assert curve.reserve(10) == 50
        assert curve.reserve(11) == 60
        assert curve.supply(50) == 10
        assert curve.supply(60) == 10
        assert curve.supply(61) == 11

    def test_spot_price(self):
        assert str(linear("1").spot_price(10)) == "10"
        assert str(linear("0.5").spot_price(3)) == "1.5"
        curve = linear("1", DecimalPlaces(supply=2, reserve=0))
        assert str(curve.spot_price(1000)) == "10"
        assert str(curve.spot_price(1)) == "0.01"

    def test_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            linear("1").reserve(MAX_AMOUNT)


class TestSquareRoot:
    def test_slope_one(self):
        curve = square_root("1")
        assert curve.reserve(9) == 18
        assert curve.reserve(8) == 15
        assert curve.supply(18) == 9
        assert curve.supply(17) == 8

    def test_spot_price_truncates(self):
        curve = square_root("1")
        assert str(curve.spot_price(9)) == "3"
        assert str(curve.spot_price(2)) == "1.414213562373095048"
        assert str(curve.spot_price(0)) == "0"

    def test_spot_price_with_decimals(self):
        curve = square_root("2", DecimalPlaces(supply=2, reserve=0))
        # 2 * sqrt(4.00)
        assert str(curve.spot_price(400)) == "4"

    def test_large_amounts_stay_exact(self):
        curve = square_root("0.000001", DecimalPlaces(supply=18, reserve=18))
        reserve = 10**30
        supply = curve.supply(reserve)
        assert curve.reserve(supply) <= reserve
        assert curve.reserve(supply + 1) >= reserve


@pytest.mark.parametrize(
    "curve",
    [constant("2"), constant("0.3"), linear("1"), linear("0.07"), square_root("1"), square_root("2.5")],
    ids=["const-2", "const-0.3", "lin-1", "lin-0.07", "sqrt-1", "sqrt-2.5"],
)
class TestCurveProperties:
    def test_reserve_is_monotonic(self, curve):
        previous = 0
        for supply in range(0, 500):
            current = curve.reserve(supply)
            assert current >= previous
            previous = current

    def test_spot_price_is_non_negative(self, curve):
        for supply in (0, 1, 7, 10**6, 10**20):
            assert curve.spot_price(supply).value >= 0

    def test_reserve_is_floor_of_exact_value(self, curve):
        for supply in range(0, 200):
            r = curve.reserve(supply)
            assert r * r <= real_reserve_squared(curve, supply) < (r + 1) ** 2

    def test_supply_is_largest_fully_funded(self, curve):
        for reserve in range(0, 300):
            s = curve.supply(reserve)
            assert real_reserve_squared(curve, s) <= reserve * reserve
            assert real_reserve_squared(curve, s + 1) > reserve * reserve
