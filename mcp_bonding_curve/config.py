import os
import logging
from typing import List, Optional
from dotenv import load_dotenv

from mcp_bonding_curve.errors import ConfigurationError

"""
Configuration Management for the Bonding Curve Server

Settings are read from environment variables (a ``.env`` file is loaded first)
and validated once at import time. Invalid values raise ConfigurationError.

Configuration Sources (in order of precedence):
1. Environment variables
2. Default values defined in this module

Environment Variables:
    INSTANCE_CONFIG_DIR: Directory of persisted instantiate messages (relative to the package)
    DEFAULT_INSTANCE_ID: Instance used by the HTTP API when none is given
    RATE_LIMIT_PER_MINUTE: Buy/sell requests allowed per sender per minute
    HTTP_API_PORT: Port of the read-only HTTP API
    CORS_ALLOWED_ORIGINS: Comma-separated allowed CORS origins
"""

logger = logging.getLogger(__name__)

load_dotenv()


def _get_env_str(key: str, default: str, required: bool = False) -> str:
    """Get environment variable as string with validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ConfigurationError(f"Required environment variable {key} is not set")
    return value


def _get_env_int(key: str, default: int, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
    """Get environment variable as integer with validation."""
    try:
        value = int(os.getenv(key, str(default)))
    except ValueError:
        raise ConfigurationError(f"Environment variable {key} must be a valid integer")
    if min_val is not None and value < min_val:
        raise ConfigurationError(f"Environment variable {key} must be >= {min_val}")
    if max_val is not None and value > max_val:
        raise ConfigurationError(f"Environment variable {key} must be <= {max_val}")
    return value


def _get_env_list(key: str, default: str) -> List[str]:
    """Get a comma-separated environment variable as a list of non-empty entries."""
    return [item.strip() for item in os.getenv(key, default).split(",") if item.strip()]


try:
    # --- Instances ---
    INSTANCE_CONFIG_DIR = _get_env_str("INSTANCE_CONFIG_DIR", "instance_configs", required=True)
    DEFAULT_INSTANCE_ID = _get_env_str("DEFAULT_INSTANCE_ID", "main", required=True)

    # --- Rate Limiting ---
    RATE_LIMIT_PER_MINUTE = _get_env_int("RATE_LIMIT_PER_MINUTE", 10, min_val=1, max_val=1000)

    # --- HTTP API ---
    HTTP_API_PORT = _get_env_int("HTTP_API_PORT", 5000, min_val=1024, max_val=65535)
    CORS_ALLOWED_ORIGINS = _get_env_list("CORS_ALLOWED_ORIGINS", "*")

    logger.info("Configuration loaded successfully")

except ConfigurationError as e:
    logger.error(f"Configuration error: {e}")
    raise
