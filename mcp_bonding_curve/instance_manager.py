import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from mcp_bonding_curve import config
from mcp_bonding_curve.errors import BondingCurveError, InstanceNotFoundError, InvalidIssuanceConfig
from mcp_bonding_curve.issuance import instantiate
from mcp_bonding_curve.ledger import BondingLedger
from mcp_bonding_curve.reserve import InMemoryReserveBank
from mcp_bonding_curve.schemas import InstanceConfig
from mcp_bonding_curve.storage import MemoryStore
from mcp_bonding_curve.token_ledger import InMemoryTokenLedger
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

# Determine the absolute path to the directory containing this file
MODULE_DIR = Path(__file__).parent.resolve()


@dataclass
class BondingContract:
    """A ledger together with the capabilities it was instantiated with."""

    config: InstanceConfig
    ledger: BondingLedger
    token_ledger: InMemoryTokenLedger
    bank: InMemoryReserveBank


# In-process state shared by every instance; instance ids prefix the keys
store = MemoryStore()
instances: Dict[str, BondingContract] = {}
_registry_lock = threading.Lock()


def config_dir_path(config_dir_name: Optional[str] = None) -> Path:
    """Resolves the instance config directory; relative names are taken from this module's directory."""
    return MODULE_DIR / (config_dir_name or config.INSTANCE_CONFIG_DIR)


def _create(instance_config: InstanceConfig) -> BondingContract:
    msg = instance_config.instantiate
    token_ledger = InMemoryTokenLedger(cap=instance_config.token_cap)
    bank = InMemoryReserveBank(msg.reserve_denom)
    ledger = instantiate(store, instance_config.instance_id, msg, token_ledger, bank)
    return BondingContract(instance_config, ledger, token_ledger, bank)


def create_instance(instance_config: InstanceConfig, persist: bool = True) -> BondingContract:
    """
    Instantiates a new bonding curve instance and registers it.

    Args:
        instance_config: Instance id, instantiate message and optional token cap.
        persist: Also save the config to ``INSTANCE_CONFIG_DIR`` so it is
            recreated on the next start.

    Raises:
        InvalidIssuanceConfig: If the id is taken or the issuance policy rejects the message.
    """
    instance_id = instance_config.instance_id
    with _registry_lock:
        if instance_id in instances:
            raise InvalidIssuanceConfig(f"Instance '{instance_id}' already exists")
        contract = _create(instance_config)
        instances[instance_id] = contract

    if persist:
        save_instance_config(instance_config)
    return contract


def save_instance_config(instance_config: InstanceConfig, config_dir_name: Optional[str] = None) -> Path:
    config_path = config_dir_path(config_dir_name)
    config_path.mkdir(parents=True, exist_ok=True)
    file_path = config_path / f"{instance_config.instance_id}.json"
    with open(file_path, "w") as f:
        json.dump(instance_config.model_dump(mode="json"), f, indent=4)
    logger.info(f"Saved instance configuration to {file_path}")
    return file_path


def get_instance(instance_id: str) -> BondingContract:
    contract = instances.get(instance_id)
    if contract is None:
        raise InstanceNotFoundError(f"Bonding curve instance '{instance_id}' not found")
    return contract


def list_instances() -> List[str]:
    return sorted(instances)


def load_instances_from_config_files(config_dir_name: Optional[str] = None) -> Dict[str, BondingContract]:
    """
    Instantiates every ``<instance_id>.json`` in the config directory that is
    not registered yet.

    Files that fail to parse, whose ``instance_id`` does not match the file
    name, or that the issuance policy rejects are logged and skipped.

    Returns:
        The instances created by this call.
    """
    loaded: Dict[str, BondingContract] = {}
    config_path = config_dir_path(config_dir_name)

    if not config_path.is_dir():
        logger.warning(f"Instance configuration directory not found: {config_path}. No instances loaded.")
        return loaded

    logger.info(f"Loading instance configurations from: {config_path}")

    for file_path in sorted(config_path.glob("*.json")):
        try:
            with open(file_path, "r") as f:
                instance_config = InstanceConfig.model_validate(json.load(f))

            if instance_config.instance_id != file_path.stem:
                logger.warning(
                    f"Instance ID mismatch in {file_path}: expected '{file_path.stem}', "
                    f"found '{instance_config.instance_id}'. Skipping."
                )
                continue
            if instance_config.instance_id in instances:
                logger.debug(f"Instance '{instance_config.instance_id}' already registered, skipping {file_path}")
                continue

            loaded[instance_config.instance_id] = create_instance(instance_config, persist=False)
        except json.JSONDecodeError:
            logger.error(f"Error decoding JSON from file: {file_path}")
        except ValidationError as e:
            logger.error(f"Invalid instance configuration in file {file_path}: {e}")
        except BondingCurveError as e:
            logger.error(f"Instance configuration in {file_path} rejected: {e}")

    logger.info(f"Finished loading instances. Total loaded: {len(loaded)}")
    return loaded


def reset() -> None:
    """Drops every registered instance and its state."""
    global store
    with _registry_lock:
        instances.clear()
        store = MemoryStore()
