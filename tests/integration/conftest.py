import pytest
from dotenv import load_dotenv

from mcp_bonding_curve import config
from mcp_bonding_curve import instance_manager
from mcp_bonding_curve import rate_limiter


@pytest.fixture(scope="session", autouse=True)
def load_test_env():
    load_dotenv()


@pytest.fixture(autouse=True)
def fresh_registry(tmp_path, monkeypatch):
    """Every test starts without instances and writes configs under its own tmp dir."""
    monkeypatch.setattr(config, "INSTANCE_CONFIG_DIR", str(tmp_path / "instance_configs"))
    instance_manager.reset()
    rate_limiter.reset()
    yield
    instance_manager.reset()
    rate_limiter.reset()


@pytest.fixture
def instantiate_msg():
    return {
        "name": "Bonded Token",
        "symbol": "BOND",
        "decimals": 0,
        "reserve_denom": "ureserve",
        "reserve_decimals": 0,
        "curve": {"type": "constant", "value": "2"},
    }
