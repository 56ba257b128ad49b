"""
Issuance Policy

One-shot setup of a bonding curve instance. ``instantiate`` validates the
instantiate message, checks that the instance starts from nothing, and writes
the immutable records (curve, denomination, token metadata) together with a
zeroed SupplyState in a single transaction. ``load_ledger`` rebuilds a ledger
from those records.

Every rejection surfaces as ``InvalidIssuanceConfig``; the underlying pydantic
or curve error is kept as ``__cause__``.
"""
from typing import Any, Mapping, Union

from mcp.server.fastmcp.utilities.logging import get_logger
from pydantic import TypeAdapter, ValidationError

from mcp_bonding_curve.curves import build_curve
from mcp_bonding_curve.errors import InvalidCurveParameters, InvalidIssuanceConfig
from mcp_bonding_curve.ledger import BondingLedger, StateKeys
from mcp_bonding_curve.reserve import ReserveBank
from mcp_bonding_curve.schemas import (
    CurveParameters,
    Denomination,
    InstantiateMsg,
    SupplyState,
    TokenMetadata,
)
from mcp_bonding_curve.storage import KeyValueStore, Transaction
from mcp_bonding_curve.token_ledger import TokenLedger

logger = get_logger(__name__)

_curve_adapter = TypeAdapter(CurveParameters)


def parse_instantiate_msg(msg: Union[InstantiateMsg, Mapping[str, Any]]) -> InstantiateMsg:
    if isinstance(msg, InstantiateMsg):
        return msg
    try:
        return InstantiateMsg.model_validate(msg)
    except ValidationError as e:
        raise InvalidIssuanceConfig(f"Invalid instantiate message: {e}") from e


def instantiate(
    store: KeyValueStore,
    instance_id: str,
    msg: Union[InstantiateMsg, Mapping[str, Any]],
    token_ledger: TokenLedger,
    bank: ReserveBank,
) -> BondingLedger:
    """
    Creates a new bonding curve instance.

    Args:
        store: State store the instance is persisted in.
        instance_id: Key prefix of the instance; must not be in use.
        msg: InstantiateMsg or its dict form.
        token_ledger: Supply-token ledger; must not have any supply yet.
        bank: Reserve bank that receives deposits and sends payouts.

    Returns:
        The BondingLedger of the new instance, with zero supply and reserve.

    Raises:
        InvalidIssuanceConfig: On any validation failure or if the instance
            or the token ledger already carries state.
    """
    if not instance_id or "/" in instance_id:
        raise InvalidIssuanceConfig(f"Invalid instance id: {instance_id!r}")

    msg = parse_instantiate_msg(msg)
    try:
        build_curve(msg.curve, msg.decimal_places)
    except InvalidCurveParameters as e:
        raise InvalidIssuanceConfig(f"Invalid curve: {e}") from e

    keys = StateKeys(instance_id)
    existing = store.get_many(keys.all())
    if any(value is not None for value in existing.values()):
        raise InvalidIssuanceConfig(f"Instance '{instance_id}' is already instantiated")
    if token_ledger.total_supply() != 0:
        raise InvalidIssuanceConfig(
            f"Token ledger already has a supply of {token_ledger.total_supply()}, initial supply must be zero"
        )

    denomination = Denomination(reserve_denom=msg.reserve_denom, decimals=msg.decimal_places)
    metadata = TokenMetadata(name=msg.name, symbol=msg.symbol, decimals=msg.decimals)
    state = SupplyState()

    with Transaction(store) as tx:
        tx.set(keys.curve, _curve_adapter.dump_json(msg.curve).decode())
        tx.set(keys.denomination, denomination.model_dump_json())
        tx.set(keys.token_info, metadata.model_dump_json())
        tx.set(keys.total_supply, str(state.total_supply))
        tx.set(keys.total_reserve, str(state.total_reserve))

    logger.info(
        f"Instantiated '{instance_id}': {msg.symbol} on a {msg.curve.type} curve "
        f"backed by {msg.reserve_denom} (decimals {msg.decimals}/{msg.reserve_decimals})"
    )
    return BondingLedger(store, instance_id, msg.curve, denomination, metadata, token_ledger, bank)


def load_ledger(
    store: KeyValueStore,
    instance_id: str,
    token_ledger: TokenLedger,
    bank: ReserveBank,
) -> BondingLedger:
    """Restores the ledger of a persisted instance. Missing or corrupt records raise InvalidIssuanceConfig."""
    keys = StateKeys(instance_id)
    records = store.get_many(keys.all())
    missing = [key for key, value in records.items() if value is None]
    if missing:
        raise InvalidIssuanceConfig(f"Instance '{instance_id}' is missing state: {', '.join(missing)}")

    try:
        curve_params = _curve_adapter.validate_json(records[keys.curve])
        denomination = Denomination.model_validate_json(records[keys.denomination])
        metadata = TokenMetadata.model_validate_json(records[keys.token_info])
    except ValidationError as e:
        raise InvalidIssuanceConfig(f"Corrupt state for instance '{instance_id}': {e}") from e

    try:
        ledger = BondingLedger(store, instance_id, curve_params, denomination, metadata, token_ledger, bank)
    except InvalidCurveParameters as e:
        raise InvalidIssuanceConfig(f"Stored curve of '{instance_id}' is invalid: {e}") from e
    logger.debug(f"Loaded ledger for '{instance_id}'")
    return ledger
