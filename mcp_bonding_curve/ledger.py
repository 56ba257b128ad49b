"""
Reserve/Supply Ledger

Holds the two scalars of a bonding curve instance, ``total_supply`` and
``total_reserve``, and exposes the buy (deposit-for-mint) and sell
(burn-for-withdrawal) operations. Exchange amounts come from ``pricing``; this
module owns ordering, atomicity and the post-trade invariant.

Atomicity:
- Every trade runs inside one ``Transaction``. The new scalars are buffered and
  only applied to the store after the delegated mint/burn and the reserve
  settlement succeeded.
- Side effects on the token ledger and the bank register a compensation, so a
  later failure undoes them before the error propagates. A buy whose commit
  fails refunds the deposit to the sender; a sell reclaims the payout.
- Mutations are serialized by a per-ledger lock; queries read both scalars with
  one ``get_many`` and therefore always see a matching pair.

Invariant (checked before every commit):
    curve.reserve(total_supply) == total_reserve

A buy keeps only the reserve the curve requires for the minted supply and
refunds the rest of the deposit to the sender in the same transaction.
"""
import threading
from dataclasses import dataclass
from typing import Optional, Sequence

from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve.curves import Curve, build_curve
from mcp_bonding_curve.errors import InsufficientBalance, InvalidIssuanceConfig
from mcp_bonding_curve.fixed_point import format_fixed
from mcp_bonding_curve.pricing import check_solvency, compute_buy, compute_sell
from mcp_bonding_curve.reserve import ReserveBank, must_pay, nonpayable
from mcp_bonding_curve.schemas import (
    Coin,
    CurveInfo,
    CurveParameters,
    Denomination,
    Quote,
    SupplyState,
    TokenInfo,
    TokenMetadata,
    TradeEvent,
)
from mcp_bonding_curve.storage import KeyValueStore, Transaction
from mcp_bonding_curve.token_ledger import TokenLedger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StateKeys:
    """Stable store keys of one instance."""

    instance_id: str

    def _key(self, name: str) -> str:
        return f"{self.instance_id}/{name}"

    @property
    def total_supply(self) -> str:
        return self._key("total_supply")

    @property
    def total_reserve(self) -> str:
        return self._key("total_reserve")

    @property
    def curve(self) -> str:
        return self._key("curve")

    @property
    def denomination(self) -> str:
        return self._key("denomination")

    @property
    def token_info(self) -> str:
        return self._key("token_info")

    def all(self):
        return (self.total_supply, self.total_reserve, self.curve, self.denomination, self.token_info)


class BondingLedger:
    """
    Buy/sell engine of a single instance.

    Construct it through ``issuance.instantiate`` (fresh instance) or
    ``issuance.load_ledger`` (persisted instance); the immutable records passed
    here must match what is stored under ``instance_id``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        instance_id: str,
        curve_params: CurveParameters,
        denomination: Denomination,
        metadata: TokenMetadata,
        token_ledger: TokenLedger,
        bank: ReserveBank,
    ):
        self.store = store
        self.instance_id = instance_id
        self.keys = StateKeys(instance_id)
        self.curve_params = curve_params
        self.denomination = denomination
        self.metadata = metadata
        self.curve: Curve = build_curve(curve_params, denomination.decimals)
        self.token_ledger = token_ledger
        self.bank = bank
        self._lock = threading.Lock()

    @property
    def reserve_denom(self) -> str:
        return self.denomination.reserve_denom

    # --- State ---

    def state(self) -> SupplyState:
        """Consistent snapshot of both scalars."""
        values = self.store.get_many([self.keys.total_supply, self.keys.total_reserve])
        supply = values[self.keys.total_supply]
        reserve = values[self.keys.total_reserve]
        if supply is None or reserve is None:
            raise InvalidIssuanceConfig(f"Instance '{self.instance_id}' has no supply state")
        return SupplyState(total_supply=int(supply), total_reserve=int(reserve))

    def _write_state(self, tx: Transaction, state: SupplyState) -> None:
        check_solvency(self.curve, state)
        tx.set(self.keys.total_supply, str(state.total_supply))
        tx.set(self.keys.total_reserve, str(state.total_reserve))

    # --- Execute ---

    def buy(self, sender: str, funds: Optional[Sequence[Coin]], recipient: Optional[str] = None) -> TradeEvent:
        """
        Mints supply tokens for the reserve deposit attached in ``funds``.

        Args:
            sender: Address that attached the deposit.
            funds: Coins attached to the request; exactly one coin of the reserve denom.
            recipient: Receiver of the minted tokens, defaults to ``sender``.

        Returns:
            TradeEvent with the minted amount, the refunded remainder and the
            post-trade totals.

        Raises:
            DepositTooSmall: No deposit, or it funds less than one raw supply unit.
            PaymentError: Wrong or multiple denominations attached.
            ArithmeticOverflow / TokenLedgerError / SettlementError /
            InternalInvariantViolation: the trade is aborted and nothing is committed.
        """
        recipient = recipient or sender
        deposit = must_pay(funds, self.reserve_denom)

        with self._lock:
            quote = compute_buy(self.curve, self.state(), deposit)
            minted = quote.amount_out
            refund = quote.refund
            new_state = SupplyState(total_supply=quote.new_supply, total_reserve=quote.new_reserve)

            with Transaction(self.store) as tx:
                self._write_state(tx, new_state)
                self.token_ledger.mint(recipient, minted)
                tx.on_rollback(lambda: self.token_ledger.burn(recipient, minted))
                self.bank.receive(self.reserve_denom, deposit)
                tx.on_rollback(lambda: self.bank.send(sender, self.reserve_denom, deposit))
                if refund > 0:
                    self.bank.send(sender, self.reserve_denom, refund)
                    tx.on_rollback(lambda: self.bank.reclaim(sender, self.reserve_denom, refund))

        event = TradeEvent(
            action="buy",
            sender=sender,
            recipient=recipient,
            supply=minted,
            reserve=deposit - refund,
            refund=refund,
            total_supply=new_state.total_supply,
            total_reserve=new_state.total_reserve,
        )
        logger.info(
            f"[{self.instance_id}] buy: {sender} deposited {deposit} {self.reserve_denom}, "
            f"minted {minted} to {recipient}, refunded {refund} (supply={event.total_supply}, reserve={event.total_reserve})"
        )
        return event

    def sell(
        self,
        sender: str,
        amount: int,
        recipient: Optional[str] = None,
        funds: Optional[Sequence[Coin]] = None,
    ) -> TradeEvent:
        """
        Burns ``amount`` supply tokens held by ``sender`` and pays out reserve.

        The payout is ``total_reserve - curve.reserve(total_supply - amount)``
        and goes to ``recipient`` (defaults to ``sender``).

        Raises:
            PaymentError: Funds were attached.
            InvalidAmount: amount is not positive.
            InsufficientSupply: amount exceeds the total supply.
            InsufficientBalance: sender holds fewer tokens than amount.
        """
        nonpayable(funds)
        recipient = recipient or sender

        with self._lock:
            quote = compute_sell(self.curve, self.state(), amount)
            balance = self.token_ledger.balance_of(sender)
            if balance < amount:
                raise InsufficientBalance(f"{sender} holds {balance}, cannot sell {amount}")
            payout = quote.amount_out
            new_state = SupplyState(total_supply=quote.new_supply, total_reserve=quote.new_reserve)

            with Transaction(self.store) as tx:
                self.token_ledger.burn(sender, amount)
                tx.on_rollback(lambda: self.token_ledger.mint(sender, amount))
                self._write_state(tx, new_state)
                if payout > 0:
                    self.bank.send(recipient, self.reserve_denom, payout)
                    tx.on_rollback(lambda: self.bank.reclaim(recipient, self.reserve_denom, payout))

        event = TradeEvent(
            action="sell",
            sender=sender,
            recipient=recipient,
            supply=amount,
            reserve=payout,
            total_supply=new_state.total_supply,
            total_reserve=new_state.total_reserve,
        )
        logger.info(
            f"[{self.instance_id}] sell: {sender} burned {amount}, paid {payout} {self.reserve_denom} "
            f"to {recipient} (supply={event.total_supply}, reserve={event.total_reserve})"
        )
        return event

    # --- Query ---

    def quote_buy(self, deposit: int) -> Quote:
        return compute_buy(self.curve, self.state(), deposit)

    def quote_sell(self, amount: int) -> Quote:
        return compute_sell(self.curve, self.state(), amount)

    def curve_info(self) -> CurveInfo:
        """Spot price, reserve and supply at the current snapshot as normalized decimal strings."""
        state = self.state()
        decimals = self.denomination.decimals
        return CurveInfo(
            spot_price=str(self.curve.spot_price(state.total_supply)),
            reserve=format_fixed(state.total_reserve, decimals.reserve),
            supply=format_fixed(state.total_supply, decimals.supply),
            reserve_for_supply=format_fixed(self.curve.reserve(state.total_supply), decimals.reserve),
            reserve_denom=self.reserve_denom,
            raw_reserve=state.total_reserve,
            raw_supply=state.total_supply,
            curve=self.curve_params,
        )

    def token_info(self) -> TokenInfo:
        return TokenInfo(
            name=self.metadata.name,
            symbol=self.metadata.symbol,
            decimals=self.metadata.decimals,
            total_supply=self.state().total_supply,
        )

    def balance(self, address: str) -> int:
        return self.token_ledger.balance_of(address)

    def __repr__(self) -> str:
        return f"BondingLedger({self.instance_id!r}, {type(self.curve).__name__})"
