"""
Bonding Curve Server - MCP Server Implementation

This module exposes bonding curve instances as MCP tools. Each instance issues
a supply token whose price follows a constant, linear or square-root curve;
buyers deposit the reserve asset to mint, sellers burn to withdraw.

Tools:
- instantiate: create an instance from an instantiate message (JSON)
- buy / sell: execute trades, rate limited per sender
- curve_info / token_info / balance: read-only queries
- quote_buy / quote_sell: preview a trade against the current state

Every tool returns a JSON string. Failures are rendered as
``{"error": {"kind": ..., "message": ..., "retryable": ...}}`` where ``kind``
is the error taxonomy name; unexpected exceptions are logged with traceback
and rendered as ``InternalError`` without internal details.
"""
import json
import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.fastmcp.utilities.logging import get_logger

from mcp_bonding_curve import instance_manager
from mcp_bonding_curve import rate_limiter
from mcp_bonding_curve.errors import BondingCurveError, RateLimitExceededError
from mcp_bonding_curve.fixed_point import MAX_AMOUNT
from mcp_bonding_curve.schemas import Coin, InstanceConfig

logger = get_logger(__name__)

MAX_INSTANCE_ID_LENGTH = 100
MAX_ADDRESS_LENGTH = 128
MAX_CONFIG_JSON_LENGTH = 10000

# --- Server Setup ---
mcp = FastMCP(name="Bonding Curve Server")


# --- Helper Functions ---

def validate_instance_id(instance_id: str) -> None:
    if not instance_id or not isinstance(instance_id, str):
        raise ValueError("Instance ID must be a non-empty string")
    if len(instance_id) > MAX_INSTANCE_ID_LENGTH:
        raise ValueError("Instance ID is too long")


def validate_address(address: str, name: str = "Address") -> None:
    if not address or not isinstance(address, str):
        raise ValueError(f"{name} must be a non-empty string")
    if len(address) > MAX_ADDRESS_LENGTH:
        raise ValueError(f"{name} is too long")


def validate_amount(amount: int, name: str = "Amount") -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"{name} must be a positive integer")
    if amount > MAX_AMOUNT:
        raise ValueError(f"{name} is too large")


def render(payload: Any) -> str:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    return json.dumps(payload)


def render_error(kind: str, message: str, retryable: bool = False) -> str:
    return json.dumps({"error": {"kind": kind, "message": message, "retryable": retryable}})


def handle_error(operation: str, instance_id: str, error: Exception, start_time: float) -> str:
    """Logs a failed tool call and renders it as a structured error."""
    duration = time.time() - start_time
    if isinstance(error, BondingCurveError):
        log = logger.warning if error.retryable else logger.error
        log(f"{operation} failed for instance '{instance_id}': {error.kind}: {error}, duration: {duration:.3f}s")
        return json.dumps({"error": error.to_dict()})
    if isinstance(error, (ValueError, ValidationError)):
        logger.warning(f"{operation} rejected for instance '{instance_id}': {error}")
        return render_error("InvalidInput", str(error), retryable=True)
    logger.exception(f"Unexpected error in {operation} for instance '{instance_id}': {error}")
    return render_error("InternalError", f"An unexpected server error occurred during {operation}")


# --- MCP Tools ---

@mcp.tool()
async def instantiate(
    context: Context,
    instance_id: str = Field(..., description="Identifier of the new bonding curve instance."),
    config_json: str = Field(
        ...,
        description=(
            "The instantiate message as a JSON string: name, symbol, decimals, reserve_denom, "
            "reserve_decimals and curve ({\"type\": \"constant\", \"value\": \"2\"}, "
            "{\"type\": \"linear\", \"slope\": \"0.01\"} or {\"type\": \"square_root\", \"slope\": \"1\"})."
        ),
    ),
    token_cap: Optional[int] = Field(None, description="Optional mint cap of the supply token (raw units)."),
) -> str:
    """Creates a new bonding curve instance and returns its token and curve info."""
    start_time = time.time()
    try:
        validate_instance_id(instance_id)
        if not config_json or len(config_json) > MAX_CONFIG_JSON_LENGTH:
            raise ValueError("Configuration JSON must be a non-empty string of at most 10KB")
        msg = json.loads(config_json)
        instance_config = InstanceConfig(instance_id=instance_id, instantiate=msg, token_cap=token_cap)

        contract = instance_manager.create_instance(instance_config)
        return render({
            "instance_id": instance_id,
            "token_info": contract.ledger.token_info().model_dump(mode="json"),
            "curve_info": contract.ledger.curve_info().model_dump(mode="json"),
        })
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON for instantiate request: {e}")
        return render_error("InvalidIssuanceConfig", "Invalid JSON format provided")
    except ValidationError as e:
        logger.warning(f"Invalid instantiate message for '{instance_id}': {e}")
        return render_error("InvalidIssuanceConfig", f"Invalid instantiate message: {e}")
    except Exception as e:
        return handle_error("instantiate", instance_id, e, start_time)


@mcp.tool()
async def buy(
    context: Context,
    instance_id: str = Field(..., description="The bonding curve instance."),
    sender: str = Field(..., description="Address attaching the reserve deposit."),
    amount: int = Field(..., description="Reserve deposit in raw reserve units."),
    denom: Optional[str] = Field(None, description="Denomination of the deposit; defaults to the reserve denom."),
    recipient: Optional[str] = Field(None, description="Receiver of the minted tokens; defaults to the sender."),
) -> str:
    """
    Deposits reserve and mints supply tokens at the current curve price.

    Returns:
        str: JSON trade event (minted ``supply``, the ``reserve`` kept by the
        curve, the ``refund`` returned to the sender and the new totals) or a
        structured error.
    """
    start_time = time.time()
    try:
        validate_instance_id(instance_id)
        validate_address(sender, "Sender")
        if recipient is not None:
            validate_address(recipient, "Recipient")
        validate_amount(amount)

        if not rate_limiter.check_rate_limit(sender):
            raise RateLimitExceededError(f"Rate limit exceeded for sender: {sender}")

        ledger = instance_manager.get_instance(instance_id).ledger
        funds = [Coin(denom=denom or ledger.reserve_denom, amount=amount)]
        event = ledger.buy(sender, funds, recipient)
        logger.info(f"Buy on '{instance_id}' completed in {time.time() - start_time:.3f}s")
        return render(event)
    except Exception as e:
        return handle_error("buy", instance_id, e, start_time)


@mcp.tool()
async def sell(
    context: Context,
    instance_id: str = Field(..., description="The bonding curve instance."),
    sender: str = Field(..., description="Holder burning supply tokens."),
    amount: int = Field(..., description="Supply tokens to burn, in raw units."),
    recipient: Optional[str] = Field(None, description="Receiver of the reserve payout; defaults to the sender."),
) -> str:
    """Burns supply tokens and pays out reserve at the current curve price."""
    start_time = time.time()
    try:
        validate_instance_id(instance_id)
        validate_address(sender, "Sender")
        if recipient is not None:
            validate_address(recipient, "Recipient")
        validate_amount(amount)

        if not rate_limiter.check_rate_limit(sender):
            raise RateLimitExceededError(f"Rate limit exceeded for sender: {sender}")

        ledger = instance_manager.get_instance(instance_id).ledger
        event = ledger.sell(sender, amount, recipient)
        logger.info(f"Sell on '{instance_id}' completed in {time.time() - start_time:.3f}s")
        return render(event)
    except Exception as e:
        return handle_error("sell", instance_id, e, start_time)


@mcp.tool()
async def curve_info(
    context: Context,
    instance_id: str = Field(..., description="The bonding curve instance."),
) -> str:
    """Spot price, reserve and supply of an instance as normalized decimal strings."""
    start_time = time.time()
    try:
        validate_instance_id(instance_id)
        return render(instance_manager.get_instance(instance_id).ledger.curve_info())
    except Exception as e:
        return handle_error("curve_info", instance_id, e, start_time)


@mcp.tool()
async def token_info(
    context: Context,
    instance_id: str = Field(..., description="The bonding curve instance."),
) -> str:
    """Name, symbol, decimals and total supply of the instance's supply token."""
    start_time = time.time()
    try:
        validate_instance_id(instance_id)
        return render(instance_manager.get_instance(instance_id).ledger.token_info())
    except Exception as e:
        return handle_error("token_info", instance_id, e, start_time)


@mcp.tool()
async def balance(
    context: Context,
    instance_id: str = Field(..., description="The bonding curve instance."),
    address: str = Field(..., description="Holder address."),
) -> str:
    """Supply-token balance of an address."""
    start_time = time.time()
    try:
        validate_instance_id(instance_id)
        validate_address(address)
        ledger = instance_manager.get_instance(instance_id).ledger
        return render({"address": address, "balance": ledger.balance(address)})
    except Exception as e:
        return handle_error("balance", instance_id, e, start_time)


@mcp.tool()
async def quote_buy(
    context: Context,
    instance_id: str = Field(..., description="The bonding curve instance."),
    amount: int = Field(..., description="Reserve deposit to price, in raw reserve units."),
) -> str:
    """Previews the supply a deposit would mint, without changing state."""
    start_time = time.time()
    try:
        validate_instance_id(instance_id)
        validate_amount(amount)
        return render(instance_manager.get_instance(instance_id).ledger.quote_buy(amount))
    except Exception as e:
        return handle_error("quote_buy", instance_id, e, start_time)


@mcp.tool()
async def quote_sell(
    context: Context,
    instance_id: str = Field(..., description="The bonding curve instance."),
    amount: int = Field(..., description="Supply tokens to price, in raw units."),
) -> str:
    """Previews the reserve payout for burning ``amount``, without changing state."""
    start_time = time.time()
    try:
        validate_instance_id(instance_id)
        validate_amount(amount)
        return render(instance_manager.get_instance(instance_id).ledger.quote_sell(amount))
    except Exception as e:
        return handle_error("quote_sell", instance_id, e, start_time)


def main() -> None:
    startup_start = time.time()
    logger.info("Starting Bonding Curve MCP Server...")

    loaded: Dict[str, Any] = instance_manager.load_instances_from_config_files()
    logger.info(
        f"Server startup completed in {time.time() - startup_start:.3f}s, loaded {len(loaded)} instance(s)."
    )

    try:
        mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user")
    finally:
        logger.info("Bonding Curve MCP Server stopped.")


if __name__ == "__main__":
    main()
