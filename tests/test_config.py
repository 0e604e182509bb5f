"""Environment configuration."""

import pytest

from vault_router.config import DEFAULT_META_URL, DEFAULT_PICKLE_JARS, RouterConfig, get_json_rpc_env, read_json_rpc_url, read_router_config_env


@pytest.fixture()
def clean_env(monkeypatch):
    for name in (
        "VAULT_ROUTER_PARTNER_ID",
        "VAULT_ROUTER_PARTNER_TRACKER",
        "VAULT_ROUTER_META_URL",
        "VAULT_ROUTER_ENFORCE_ALLOWLIST",
        "ZAPPER_API_KEY",
        "JSON_RPC_ETHEREUM",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    config = read_router_config_env(1)
    assert config.chain_id == 1
    assert config.partner_id is None
    assert config.router_aggregator_address is None
    assert config.pickle_jars == DEFAULT_PICKLE_JARS
    assert config.meta_url == DEFAULT_META_URL
    assert config.enforce_allowlist is False


def test_from_env(clean_env):
    clean_env.setenv("VAULT_ROUTER_PARTNER_ID", "0x00000000000000000000000000000000000000aa")
    clean_env.setenv("VAULT_ROUTER_ENFORCE_ALLOWLIST", "true")
    clean_env.setenv("VAULT_ROUTER_META_URL", "http://localhost:8080")
    clean_env.setenv("ZAPPER_API_KEY", "key")

    config = read_router_config_env(1)
    assert config.partner_id == "0x00000000000000000000000000000000000000aa"
    assert config.enforce_allowlist is True
    assert config.meta_url == "http://localhost:8080"
    assert config.zapper_api_key == "key"


def test_fantom_defaults():
    config = RouterConfig.for_chain(250)
    assert config.router_aggregator_address == "0x7Bbd6348db83C2fb3633Eebb70367E1AEc258764"
    assert config.ftm_ape_zappable_vaults == ("0x21be370D5312f44cB42ce377BC9b8a0cEF1A4C83",)


def test_json_rpc_url(clean_env):
    assert get_json_rpc_env(1) == "JSON_RPC_ETHEREUM"

    with pytest.raises(ValueError):
        read_json_rpc_url(1)

    clean_env.setenv("JSON_RPC_ETHEREUM", "http://localhost:8545")
    assert read_json_rpc_url(1) == "http://localhost:8545"


def test_json_rpc_unknown_chain():
    with pytest.raises(AssertionError):
        get_json_rpc_env(999)
