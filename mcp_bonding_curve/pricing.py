"""
Exchange Pricing on the Bonding Curve

This module converts between reserve and supply amounts for buy and sell
operations. It is stateless: every function takes the curve and a SupplyState
snapshot and returns a Quote describing the post-trade totals. The ledger
commits a quote; the query surfaces only display it.

Price Calculation Process:
Buy (deposit d):
1. new_supply  = curve.supply(total_reserve + d) (floor: never mints more than d funds)
2. minted      = new_supply - total_supply      (must be > 0)
3. new_reserve = curve.reserve(new_supply)
4. cost        = new_reserve - total_reserve    (must be > 0 and <= d)
5. refund      = d - cost                       (returned to the buyer)

Sell (burn b):
1. new_supply  = total_supply - b               (b must not exceed total_supply)
2. new_reserve = curve.reserve(new_supply)      (recomputed from the curve, never by
                                                 subtraction, so rounding cannot drift)
3. payout      = total_reserve - new_reserve    (>= 0 whenever the state invariant holds)

Rounding Policy:
- Both directions truncate toward zero, which always favors the reserve.
- The reserve always equals curve.reserve(total_supply). The part of a deposit
  the curve does not need is refunded instead of kept, so no seller can claim
  another buyer's remainder.
- A buy immediately followed by selling the minted amount pays back exactly
  the cost of the buy.
"""
from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve.curves import Curve
from mcp_bonding_curve.errors import (
    DepositTooSmall,
    InsufficientSupply,
    InternalInvariantViolation,
    InvalidAmount,
)
from mcp_bonding_curve.fixed_point import check_amount
from mcp_bonding_curve.schemas import Quote, SupplyState

logger = get_logger(__name__)


def compute_buy(curve: Curve, state: SupplyState, deposit: int) -> Quote:
    """
    Calculates the supply minted for a reserve deposit.

    Args:
        curve: The instance's curve.
        state: Current totals.
        deposit: Raw reserve amount attached to the buy.

    Returns:
        Quote with amount_in=deposit, amount_out=minted and the refund owed
        to the buyer for the part of the deposit the curve does not keep.

    Raises:
        DepositTooSmall: If the deposit is zero or funds less than one raw supply unit.
        ArithmeticOverflow: If the new totals leave the amount domain.
        InternalInvariantViolation: If the curve inverse moves supply backwards
            or prices the mint outside the deposit.
    """
    if deposit <= 0:
        raise DepositTooSmall(f"Deposit must be positive, got {deposit}")

    available = check_amount(state.total_reserve + deposit, "total_reserve")
    new_supply = curve.supply(available)
    minted = new_supply - state.total_supply

    if minted < 0:
        raise InternalInvariantViolation(
            f"Curve inverse returned supply {new_supply} below current supply {state.total_supply}"
        )

    new_reserve = curve.reserve(new_supply)
    cost = new_reserve - state.total_reserve
    if cost < 0 or cost > deposit:
        raise InternalInvariantViolation(
            f"Minting {minted} costs {cost}, outside the deposit of {deposit}"
        )
    # A zero cost mint would hand out tokens the reserve does not back.
    if minted == 0 or cost == 0:
        raise DepositTooSmall(f"Deposit of {deposit} does not fund a single supply unit")

    quote = Quote(
        action="buy",
        amount_in=deposit,
        amount_out=minted,
        new_supply=new_supply,
        new_reserve=new_reserve,
        spot_price=str(curve.spot_price(new_supply)),
        refund=deposit - cost,
    )
    logger.debug(f"Buy quote: deposit={deposit} minted={minted} cost={cost} new_supply={new_supply}")
    return quote


def compute_sell(curve: Curve, state: SupplyState, amount: int) -> Quote:
    """
    Calculates the reserve paid out for burning supply tokens.

    Raises:
        InvalidAmount: If amount is not positive.
        InsufficientSupply: If amount exceeds the total supply.
        InternalInvariantViolation: If the payout would be negative.
    """
    if amount <= 0:
        raise InvalidAmount(f"Sell amount must be positive, got {amount}")
    if amount > state.total_supply:
        raise InsufficientSupply(
            f"Cannot burn {amount}, total supply is only {state.total_supply}"
        )

    new_supply = state.total_supply - amount
    new_reserve = curve.reserve(new_supply)
    payout = state.total_reserve - new_reserve

    if payout < 0:
        raise InternalInvariantViolation(
            f"Negative payout {payout}: reserve {state.total_reserve} is below the curve "
            f"requirement {new_reserve} for supply {new_supply}"
        )

    quote = Quote(
        action="sell",
        amount_in=amount,
        amount_out=payout,
        new_supply=new_supply,
        new_reserve=new_reserve,
        spot_price=str(curve.spot_price(new_supply)),
    )
    logger.debug(f"Sell quote: burn={amount} payout={payout} new_supply={new_supply}")
    return quote


def check_solvency(curve: Curve, state: SupplyState) -> None:
    """Raises InternalInvariantViolation unless the reserve equals the curve requirement at the current supply."""
    required = curve.reserve(state.total_supply)
    if required != state.total_reserve:
        raise InternalInvariantViolation(
            f"Reserve {state.total_reserve} does not match the {required} required for supply {state.total_supply}"
        )
