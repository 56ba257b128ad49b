"""
Bonding Curve Function Library

Pure evaluation of the supported curve shapes over raw integer amounts. A curve
maps the supply-token supply to:

- ``spot_price(supply)``: marginal reserve paid per whole supply token,
- ``reserve(supply)``: reserve needed to have minted ``supply`` from zero
  (the integral of the spot price),
- ``supply(reserve)``: the inverse of ``reserve``, i.e. the largest supply the
  given reserve fully funds.

Curve Types Supported:
- Constant:    price = p                 reserve = p * s
- Linear:      price = m * s             reserve = m * s^2 / 2
- SquareRoot:  price = c * sqrt(s)       reserve = c * (2/3) * s^(3/2)

Amounts arrive as raw integers in their own denomination (``10**decimals`` raw
units per whole token). Each formula is rearranged so that the normalization
factors, the parameter denominator and the curve constant all end up in one
integer ratio; a single floor division follows, then ``isqrt``/``icbrt`` for
the fractional powers. Because floor(sqrt(floor(x))) == floor(sqrt(x)) (and
likewise for cube roots), every result is the exact floor of the real-valued
formula. ``reserve`` therefore never overstates what a supply costs and
``supply`` never mints more than a reserve funds.

No I/O and no mutable state: curve objects are frozen dataclasses.
"""
from dataclasses import dataclass
from typing import Union

from mcp_bonding_curve.errors import InvalidCurveParameters, InvalidIssuanceConfig
from mcp_bonding_curve.fixed_point import (
    MAX_DECIMALS,
    SQRT_PRECISION,
    FixedPoint,
    check_amount,
    checked,
    decimal_to_fixed,
    icbrt,
    isqrt,
)
from mcp_bonding_curve.schemas import CurveParameters, CurveType, DecimalPlaces


@dataclass(frozen=True)
class _CurveBase:
    param: FixedPoint
    supply_decimals: int
    reserve_decimals: int

    def __post_init__(self) -> None:
        if self.param.value <= 0:
            raise InvalidCurveParameters(f"curve parameter must be positive, got {self.param}")
        for name in ("supply_decimals", "reserve_decimals"):
            places = getattr(self, name)
            if not 0 <= places <= MAX_DECIMALS:
                raise InvalidIssuanceConfig(f"{name} must be within [0, {MAX_DECIMALS}], got {places}")

    @property
    def supply_unit(self) -> int:
        return 10**self.supply_decimals

    @property
    def reserve_unit(self) -> int:
        return 10**self.reserve_decimals


@dataclass(frozen=True)
class Constant(_CurveBase):
    """Fixed price per whole supply token."""

    def spot_price(self, supply: int) -> FixedPoint:
        check_amount(supply, "supply")
        return self.param

    def reserve(self, supply: int) -> int:
        # p * s, with p = P / 10^k and s = supply / 10^ds, expressed in reserve units
        check_amount(supply, "supply")
        num = checked(self.param.value * supply * self.reserve_unit)
        den = self.param.denominator * self.supply_unit
        return check_amount(num // den, "reserve")

    def supply(self, reserve: int) -> int:
        check_amount(reserve, "reserve")
        num = checked(reserve * self.param.denominator * self.supply_unit)
        den = self.param.value * self.reserve_unit
        return check_amount(num // den, "supply")


@dataclass(frozen=True)
class Linear(_CurveBase):
    """Price grows proportionally with supply, starting at zero."""

    def spot_price(self, supply: int) -> FixedPoint:
        check_amount(supply, "supply")
        return FixedPoint(self.param.value * supply, self.param.scale + self.supply_decimals)

    def reserve(self, supply: int) -> int:
        # m * s^2 / 2
        check_amount(supply, "supply")
        num = checked(self.param.value * supply * supply * self.reserve_unit)
        den = 2 * self.param.denominator * self.supply_unit**2
        return check_amount(num // den, "reserve")

    def supply(self, reserve: int) -> int:
        # s = sqrt(2 * r / m)
        check_amount(reserve, "reserve")
        num = checked(2 * reserve * self.param.denominator * self.supply_unit**2)
        den = self.param.value * self.reserve_unit
        return check_amount(isqrt(num // den), "supply")


@dataclass(frozen=True)
class SquareRoot(_CurveBase):
    """Price grows with the square root of supply."""

    def spot_price(self, supply: int) -> FixedPoint:
        # c * sqrt(s), truncated to SQRT_PRECISION fractional digits:
        # floor(10^18 * C / 10^k * sqrt(supply / 10^ds)) = isqrt(C^2 * supply * 10^(36 - ds) / 10^2k)
        check_amount(supply, "supply")
        num = checked(
            self.param.value**2 * supply * 10 ** (2 * SQRT_PRECISION - self.supply_decimals)
        )
        den = self.param.denominator**2
        return FixedPoint(isqrt(num // den), SQRT_PRECISION)

    def reserve(self, supply: int) -> int:
        # r = 2 * c * s^1.5 / 3, squared to stay integral:
        # r^2 = 4 * C^2 * supply^3 * 10^2dr / (9 * 10^2k * 10^3ds)
        check_amount(supply, "supply")
        num = checked(4 * self.param.value**2 * supply**3 * self.reserve_unit**2)
        den = 9 * self.param.denominator**2 * self.supply_unit**3
        return check_amount(isqrt(num // den), "reserve")

    def supply(self, reserve: int) -> int:
        # s = (3 * r / (2 * c))^(2/3), cubed:
        # supply^3 = 9 * reserve^2 * 10^2k * 10^3ds / (4 * C^2 * 10^2dr)
        check_amount(reserve, "reserve")
        num = checked(9 * reserve**2 * self.param.denominator**2 * self.supply_unit**3)
        den = 4 * self.param.value**2 * self.reserve_unit**2
        return check_amount(icbrt(num // den), "supply")


Curve = Union[Constant, Linear, SquareRoot]


def build_curve(params: CurveParameters, decimals: DecimalPlaces) -> Curve:
    """
    Binds validated curve parameters to the denomination precision.

    Args:
        params: One of the CurveParameters variants.
        decimals: Decimal places of the supply token and the reserve asset.

    Returns:
        The matching Constant, Linear or SquareRoot curve.

    Raises:
        InvalidCurveParameters: If a parameter is not a positive, finite decimal
            with at most 18 fractional digits.
    """
    if params.type == CurveType.constant:
        return Constant(decimal_to_fixed(params.value, "value"), decimals.supply, decimals.reserve)
    if params.type == CurveType.linear:
        return Linear(decimal_to_fixed(params.slope, "slope"), decimals.supply, decimals.reserve)
    if params.type == CurveType.square_root:
        return SquareRoot(decimal_to_fixed(params.slope, "slope"), decimals.supply, decimals.reserve)
    raise InvalidCurveParameters(f"unsupported curve type: {params.type!r}")
