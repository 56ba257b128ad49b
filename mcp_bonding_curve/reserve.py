"""
Reserve Asset Settlement

Deposits of the reserve asset arrive as funds attached to a buy request;
payouts leave through the ``ReserveBank`` capability. This module validates
attached funds and provides an in-memory bank for the server and tests.
"""
import threading
from typing import Dict, Optional, Protocol, Sequence

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve.errors import DepositTooSmall, InvalidAmount, PaymentError, SettlementError
from mcp_bonding_curve.schemas import Coin

logger = get_logger(__name__)


class ReserveBank(Protocol):
    def receive(self, denom: str, amount: int) -> None:
        ...

    def send(self, to: str, denom: str, amount: int) -> None:
        ...

    def reclaim(self, to: str, denom: str, amount: int) -> None:
        """Reverses an earlier ``send`` of ``amount`` to ``to``."""
        ...


def must_pay(funds: Optional[Sequence[Coin]], denom: str) -> int:
    """
    Returns the amount of ``denom`` attached to a request.

    Exactly one coin, of the reserve denomination, is accepted.

    Raises:
        DepositTooSmall: If nothing (or a zero amount) was attached.
        PaymentError: If another denomination, or several coins, were attached.
    """
    coins = [c for c in (funds or []) if c.amount > 0]
    if not coins:
        raise DepositTooSmall(f"No {denom} deposit attached")
    if len(coins) > 1:
        raise PaymentError("Sent more than one denomination")
    coin = coins[0]
    if coin.denom != denom:
        raise PaymentError(f"Must send reserve token '{denom}', got '{coin.denom}'")
    return coin.amount


def nonpayable(funds: Optional[Sequence[Coin]]) -> None:
    """Rejects any non-zero attached funds."""
    if any(c.amount > 0 for c in (funds or [])):
        raise PaymentError("This message does not accept funds")


class InMemoryReserveBank:
    """
    Tracks the contract's reserve holdings and every payout it made.

    ``receive`` is called when a deposit is accepted; ``send`` pays out of the
    holdings and fails if they cannot cover the amount; ``reclaim`` takes back
    a payout whose trade was rolled back.
    """

    def __init__(self, denom: str):
        self.denom = denom
        self.holdings = 0
        self.paid: Dict[str, int] = {}
        self._lock = threading.RLock()

    def receive(self, denom: str, amount: int) -> None:
        if denom != self.denom:
            raise SettlementError(f"Bank holds '{self.denom}', cannot accept '{denom}'")
        with self._lock:
            self.holdings += amount

    def send(self, to: str, denom: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(f"payout must be non-negative: {amount}")
        if denom != self.denom:
            raise SettlementError(f"Bank holds '{self.denom}', cannot send '{denom}'")
        with self._lock:
            if amount > self.holdings:
                raise SettlementError(
                    f"Reserve holdings {self.holdings} cannot cover payout of {amount}"
                )
            self.holdings -= amount
            self.paid[to] = self.paid.get(to, 0) + amount
        logger.debug(f"Sent {amount} {denom} to {to}")

    def reclaim(self, to: str, denom: str, amount: int) -> None:
        if denom != self.denom:
            raise SettlementError(f"Bank holds '{self.denom}', cannot reclaim '{denom}'")
        with self._lock:
            sent = self.paid.get(to, 0)
            if amount > sent:
                raise SettlementError(f"Cannot reclaim {amount} {denom} from {to}, only {sent} was sent")
            self.holdings += amount
            if sent == amount:
                del self.paid[to]
            else:
                self.paid[to] = sent - amount
        logger.debug(f"Reclaimed {amount} {denom} from {to}")

    def paid_to(self, address: str) -> int:
        with self._lock:
            return self.paid.get(address, 0)
