"""
Supply-Token Ledger Capability

The pricing core never owns token balances. It consumes the supply-token
ledger through the narrow ``TokenLedger`` capability (mint, burn, balance_of,
total_supply); transfers and allowances stay behind the ledger's own API.

``InMemoryTokenLedger`` is the bookkeeping used by the MCP server and the tests:
a sparse balance table with an optional mint cap.
"""
import threading
from typing import Dict, Optional, Protocol

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve.errors import InsufficientBalance, InvalidAmount, TokenLedgerError

logger = get_logger(__name__)


class TokenLedger(Protocol):
    def mint(self, to: str, amount: int) -> None:
        ...

    def burn(self, owner: str, amount: int) -> None:
        ...

    def balance_of(self, address: str) -> int:
        ...

    def total_supply(self) -> int:
        ...


class InMemoryTokenLedger:
    """
    Balance table mapping address -> raw supply-token amount.

    Zero balances are removed to keep the table sparse.
    """

    def __init__(self, cap: Optional[int] = None):
        if cap is not None and cap < 0:
            raise ValueError(f"cap must be non-negative: {cap}")
        self.cap = cap
        self._balances: Dict[str, int] = {}
        self._total_supply = 0
        self._lock = threading.RLock()

    def balance_of(self, address: str) -> int:
        with self._lock:
            return self._balances.get(address, 0)

    def total_supply(self) -> int:
        with self._lock:
            return self._total_supply

    def mint(self, to: str, amount: int) -> None:
        """
        Creates ``amount`` new tokens for ``to``.

        Raises:
            InvalidAmount: If amount is not positive.
            TokenLedgerError: If the mint would exceed the cap.
        """
        if amount <= 0:
            raise InvalidAmount(f"mint amount must be positive: {amount}")
        with self._lock:
            new_supply = self._total_supply + amount
            if self.cap is not None and new_supply > self.cap:
                raise TokenLedgerError(f"Minting {amount} would exceed the cap of {self.cap}")
            self._balances[to] = self._balances.get(to, 0) + amount
            self._total_supply = new_supply
        logger.debug(f"Minted {amount} to {to}, total supply {new_supply}")

    def burn(self, owner: str, amount: int) -> None:
        """
        Destroys ``amount`` tokens held by ``owner``.

        Raises:
            InvalidAmount: If amount is not positive.
            InsufficientBalance: If owner holds less than amount.
        """
        if amount <= 0:
            raise InvalidAmount(f"burn amount must be positive: {amount}")
        with self._lock:
            balance = self._balances.get(owner, 0)
            if amount > balance:
                raise InsufficientBalance(f"{owner} holds {balance}, cannot burn {amount}")
            remaining = balance - amount
            if remaining == 0:
                self._balances.pop(owner, None)
            else:
                self._balances[owner] = remaining
            self._total_supply -= amount
        logger.debug(f"Burned {amount} from {owner}, total supply {self._total_supply}")

    def __repr__(self) -> str:
        return f"InMemoryTokenLedger({len(self._balances)} holders, supply={self._total_supply})"
