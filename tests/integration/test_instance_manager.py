import json

import pytest

from mcp_bonding_curve import instance_manager
from mcp_bonding_curve.errors import InstanceNotFoundError, InvalidIssuanceConfig
from mcp_bonding_curve.schemas import Coin, InstanceConfig


def write_config(directory, name, payload):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.json"
    with open(path, "w") as f:
        if isinstance(payload, str):
            f.write(payload)
        else:
            json.dump(payload, f)
    return path


def test_create_and_get_instance(instantiate_msg):
    instance_config = InstanceConfig(instance_id="bond", instantiate=instantiate_msg)
    contract = instance_manager.create_instance(instance_config, persist=False)

    assert instance_manager.get_instance("bond") is contract
    assert instance_manager.list_instances() == ["bond"]
    assert contract.bank.denom == "ureserve"
    assert not instance_manager.config_dir_path().exists()


def test_create_instance_rejects_duplicates(instantiate_msg):
    instance_config = InstanceConfig(instance_id="bond", instantiate=instantiate_msg)
    instance_manager.create_instance(instance_config, persist=False)
    with pytest.raises(InvalidIssuanceConfig, match="already exists"):
        instance_manager.create_instance(instance_config, persist=False)


def test_get_unknown_instance():
    with pytest.raises(InstanceNotFoundError):
        instance_manager.get_instance("nope")


def test_instances_do_not_share_state(instantiate_msg):
    first = instance_manager.create_instance(InstanceConfig(instance_id="a", instantiate=instantiate_msg), persist=False)
    second = instance_manager.create_instance(InstanceConfig(instance_id="b", instantiate=instantiate_msg), persist=False)

    first.ledger.buy("alice", [Coin(denom="ureserve", amount=100)])
    assert first.ledger.state().total_supply == 50
    assert second.ledger.state().total_supply == 0
    assert second.token_ledger.balance_of("alice") == 0


def test_load_instances_from_config_files(instantiate_msg):
    directory = instance_manager.config_dir_path()
    write_config(directory, "good", {"instance_id": "good", "instantiate": instantiate_msg})
    write_config(directory, "mismatch", {"instance_id": "other", "instantiate": instantiate_msg})
    write_config(directory, "broken", "{not json")
    write_config(
        directory,
        "zero_slope",
        {"instance_id": "zero_slope", "instantiate": {**instantiate_msg, "curve": {"type": "linear", "slope": "0"}}},
    )
    write_config(directory, "no_name", {"instance_id": "no_name", "instantiate": {"symbol": "BOND"}})

    loaded = instance_manager.load_instances_from_config_files()

    assert list(loaded) == ["good"]
    assert instance_manager.list_instances() == ["good"]

    # Already registered instances are left alone on reload
    assert instance_manager.load_instances_from_config_files() == {}


def test_missing_config_directory_loads_nothing():
    assert instance_manager.load_instances_from_config_files() == {}


def test_persisted_config_round_trips(instantiate_msg):
    instance_config = InstanceConfig(instance_id="bond", instantiate=instantiate_msg, token_cap=1000)
    instance_manager.create_instance(instance_config)

    instance_manager.reset()
    loaded = instance_manager.load_instances_from_config_files()

    assert loaded["bond"].config == instance_config
    assert loaded["bond"].token_ledger.cap == 1000
