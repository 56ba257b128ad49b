"""
Fixed-Point Integer Primitives

All curve math runs on plain Python ints. Decimal inputs are converted exactly
into a scaled integer (``FixedPoint``) and every result is produced by a single
truncating integer division, so evaluation is identical on every platform and
never touches floating point.

Domain bounds:
- ``MAX_AMOUNT``: largest raw token or reserve amount (128-bit unsigned).
- ``MAX_INTERMEDIATE``: largest intermediate product (1024-bit extended domain).
- ``MAX_PARAM_SCALE``: most fractional digits a curve parameter may carry.
"""
from dataclasses import dataclass
from decimal import Decimal
import math

from mcp_bonding_curve.errors import ArithmeticOverflow, InvalidCurveParameters

MAX_AMOUNT = 2**128 - 1
MAX_INTERMEDIATE = 2**1024
MAX_PARAM_SCALE = 18
MAX_DECIMALS = 18

# sqrt results are carried with this many fractional digits
SQRT_PRECISION = 18


@dataclass(frozen=True)
class FixedPoint:
    """A non-negative decimal held as ``value / 10**scale``."""

    value: int
    scale: int

    @property
    def denominator(self) -> int:
        return 10**self.scale

    def __str__(self) -> str:
        return format_fixed(self.value, self.scale)


def format_fixed(value: int, scale: int) -> str:
    """Render ``value / 10**scale`` as a plain decimal string without trailing zeros."""
    if scale == 0:
        return str(value)
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10**scale)
    frac_str = str(frac).rjust(scale, "0").rstrip("0")
    if not frac_str:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{frac_str}"


def decimal_to_fixed(value, name: str = "parameter") -> FixedPoint:
    """
    Converts a strictly positive decimal into an exact ``FixedPoint``.

    Args:
        value: A Decimal, int or numeric string. Floats are rejected since their
            binary expansion is not the number the caller wrote.
        name: Parameter name used in error messages.

    Raises:
        InvalidCurveParameters: If the value is not finite, not positive, has more
            than MAX_PARAM_SCALE fractional digits, or its digits exceed MAX_AMOUNT.
    """
    if isinstance(value, float):
        raise InvalidCurveParameters(f"{name} must be given as a decimal string, not a float")
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except ArithmeticError:
        raise InvalidCurveParameters(f"{name} is not a valid decimal: {value!r}")

    if not dec.is_finite():
        raise InvalidCurveParameters(f"{name} must be finite, got {dec}")
    if dec <= 0:
        raise InvalidCurveParameters(f"{name} must be positive, got {dec}")

    _, digits, exponent = dec.as_tuple()
    numerator = int("".join(str(d) for d in digits))
    if exponent >= 0:
        # 10**39 already exceeds MAX_AMOUNT, stop before building a huge int
        if exponent > 39:
            raise InvalidCurveParameters(f"{name} is too large: {dec}")
        numerator *= 10**exponent
        scale = 0
    else:
        scale = -exponent

    while scale > 0 and numerator % 10 == 0:
        numerator //= 10
        scale -= 1

    if scale > MAX_PARAM_SCALE:
        raise InvalidCurveParameters(
            f"{name} carries {scale} fractional digits, at most {MAX_PARAM_SCALE} are supported"
        )
    if numerator > MAX_AMOUNT:
        raise InvalidCurveParameters(f"{name} is too large: {dec}")
    return FixedPoint(numerator, scale)


def check_amount(value: int, name: str = "amount") -> int:
    """Range-check a raw amount against [0, MAX_AMOUNT]."""
    if value < 0:
        raise ArithmeticOverflow(f"{name} must be non-negative: {value}")
    if value > MAX_AMOUNT:
        raise ArithmeticOverflow(f"{name} exceeds the 128-bit amount domain: {value}")
    return value


def checked(value: int, name: str = "intermediate") -> int:
    """Range-check an intermediate product against the extended domain."""
    if value > MAX_INTERMEDIATE or value < -MAX_INTERMEDIATE:
        raise ArithmeticOverflow(f"{name} exceeds the extended fixed-point domain")
    return value


def isqrt(n: int) -> int:
    """Floor square root."""
    if n < 0:
        raise ValueError(f"isqrt of negative value: {n}")
    return math.isqrt(n)


def icbrt(n: int) -> int:
    """
    Floor cube root via integer Newton iteration.

    Starts from a power of two at or above the root; every step then decreases
    strictly until it lands on floor(cbrt(n)).
    """
    if n < 0:
        raise ValueError(f"icbrt of negative value: {n}")
    if n < 2:
        return n
    x = 1 << ((n.bit_length() + 2) // 3)
    while True:
        y = (2 * x + n // (x * x)) // 3
        if y >= x:
            return x
        x = y

