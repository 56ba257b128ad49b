import os
from typing import Any, Dict, Tuple

from flask import Flask, request, jsonify

from mcp_bonding_curve import config
from mcp_bonding_curve import instance_manager
from mcp_bonding_curve.errors import BondingCurveError, InstanceNotFoundError, InternalInvariantViolation
from mcp_bonding_curve.fixed_point import MAX_AMOUNT
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)


app = Flask(__name__)

Response = Tuple[Any, int, Dict[str, str]]


# --- CORS Headers ---

def get_cors_headers(origin: str) -> Dict[str, str]:
    """Get CORS headers with origin validation."""
    allowed = config.CORS_ALLOWED_ORIGINS
    allowed_origin = "*"
    if "*" not in allowed:
        if origin in allowed:
            allowed_origin = origin
        else:
            allowed_origin = allowed[0] if allowed else "null"

    return {
        'Access-Control-Allow-Origin': allowed_origin,
        'Access-Control-Allow-Methods': 'GET, OPTIONS',
        'Access-Control-Allow-Headers': 'Content-Type, Authorization',
        'Access-Control-Max-Age': '3600',
        'Access-Control-Allow-Credentials': 'false'
    }


def _error_response(error: Exception, cors_headers: Dict[str, str]) -> Response:
    if isinstance(error, InstanceNotFoundError):
        status = 404
    elif isinstance(error, InternalInvariantViolation):
        logger.error(f"Invariant violation while serving {request.path}: {error}")
        status = 500
    else:
        status = 400
    return jsonify({"error": error.to_dict()}), status, cors_headers


def _parse_amount() -> int:
    raw = request.args.get("amount")
    if raw is None:
        raise ValueError("Amount parameter is required")
    amount = int(raw)
    if amount <= 0:
        raise ValueError("Amount must be positive")
    if amount > MAX_AMOUNT:
        raise ValueError("Amount is too large")
    return amount


# --- Flask Routes ---

@app.route('/instances/<instance_id>/curve_info', methods=['GET', 'OPTIONS'])
def get_curve_info(instance_id: str) -> Response:
    """Spot price, reserve and supply of an instance."""
    cors_headers = get_cors_headers(request.headers.get('Origin', '*'))
    if request.method == 'OPTIONS':
        return '', 204, cors_headers
    try:
        info = instance_manager.get_instance(instance_id).ledger.curve_info()
        return jsonify(info.model_dump(mode="json")), 200, cors_headers
    except BondingCurveError as e:
        return _error_response(e, cors_headers)
    except Exception as e:
        logger.exception(f"Unexpected error in get_curve_info for '{instance_id}': {e}")
        return jsonify({"message": "An unexpected server error occurred"}), 500, cors_headers


@app.route('/instances/<instance_id>/quote/<side>', methods=['GET', 'OPTIONS'])
def get_quote(instance_id: str, side: str) -> Response:
    """Previews a buy (``amount`` = reserve deposit) or a sell (``amount`` = supply to burn)."""
    cors_headers = get_cors_headers(request.headers.get('Origin', '*'))
    if request.method == 'OPTIONS':
        return '', 204, cors_headers
    if side not in ("buy", "sell"):
        return jsonify({"message": f"Unknown quote side '{side}'"}), 404, cors_headers

    try:
        amount = _parse_amount()
    except (ValueError, TypeError) as e:
        return jsonify({"message": f"Invalid amount: {e}"}), 400, cors_headers

    try:
        ledger = instance_manager.get_instance(instance_id).ledger
        quote = ledger.quote_buy(amount) if side == "buy" else ledger.quote_sell(amount)
        return jsonify(quote.model_dump(mode="json")), 200, cors_headers
    except BondingCurveError as e:
        return _error_response(e, cors_headers)
    except Exception as e:
        logger.exception(f"Unexpected error in get_quote for '{instance_id}': {e}")
        return jsonify({"message": "An unexpected server error occurred"}), 500, cors_headers


@app.route('/curve_info', methods=['GET', 'OPTIONS'])
def get_default_curve_info() -> Response:
    return get_curve_info(config.DEFAULT_INSTANCE_ID)


@app.route('/quote/<side>', methods=['GET', 'OPTIONS'])
def get_default_quote(side: str) -> Response:
    return get_quote(config.DEFAULT_INSTANCE_ID, side)


def main() -> None:
    if not instance_manager.instances:
        logger.info("Loading instances for standalone HTTP API run...")
        instance_manager.load_instances_from_config_files()

    port = config.HTTP_API_PORT
    logger.info(f"Starting read-only HTTP API on port {port}...")
    app.run(debug=os.getenv("FLASK_DEBUG", "False").lower() == "true", port=port, host="0.0.0.0")


if __name__ == '__main__':
    main()
