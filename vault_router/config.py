"""Router configuration.

Read from environment variables, or construct :py:class:`RouterConfig` directly.

Environment variables:

- ``JSON_RPC_<CHAIN NAME>``: JSON-RPC URL, e.g. ``JSON_RPC_ETHEREUM``
- ``VAULT_ROUTER_PARTNER_ID``: partner id for tracked deposits
- ``VAULT_ROUTER_PARTNER_TRACKER``: partner tracker contract address
- ``ZAPPER_API_KEY``: Zapper API key
- ``VAULT_ROUTER_META_URL``: metadata override service base URL
- ``VAULT_ROUTER_ENFORCE_ALLOWLIST``: set to ``true`` to block transactions the allow-list rejects
"""

import os
from dataclasses import dataclass, field

from eth_typing import HexAddress

from vault_router.chain import CHAIN_NAMES, FTM_APE_ZAPPABLE_VAULTS, ROUTER_AGGREGATOR_ADDRESSES, is_fantom


#: The one Pickle jar we zap into
DEFAULT_PICKLE_JARS = ("0xCeD67a187b923F0E5ebcc77C7f2F7da20099e378",)

#: Yearn curated metadata
DEFAULT_META_URL = "https://meta.yearn.network"


@dataclass(slots=True)
class RouterConfig:
    """Everything the router needs to know besides its collaborators."""

    #: Chain we are routing on
    chain_id: int

    #: Partner id recorded by the partner tracker, ``None`` if not a partner
    partner_id: HexAddress | str | None = None

    #: Partner tracker contract
    partner_tracker_address: HexAddress | str | None = None

    #: Vaults we zap into through the Pickle zap
    pickle_jars: tuple[HexAddress | str, ...] = DEFAULT_PICKLE_JARS

    #: Fixed router contract on chains using a routing aggregator
    router_aggregator_address: HexAddress | str | None = None

    #: Vaults on Fantom marked as ape-zappable
    ftm_ape_zappable_vaults: tuple[HexAddress | str, ...] = field(default_factory=tuple)

    zapper_api_key: str | None = None

    meta_url: str = DEFAULT_META_URL

    #: Block transactions the allow-list rejects.
    #:
    #: Off by default: rejections are only logged.
    enforce_allowlist: bool = False

    #: Thread pool size for fan-out queries
    max_workers: int = 8

    @classmethod
    def for_chain(cls, chain_id: int, **kwargs) -> "RouterConfig":
        """Config with the built-in per-chain defaults."""
        kwargs.setdefault("router_aggregator_address", ROUTER_AGGREGATOR_ADDRESSES.get(chain_id))
        if is_fantom(chain_id):
            kwargs.setdefault("ftm_ape_zappable_vaults", tuple(FTM_APE_ZAPPABLE_VAULTS))
        return cls(chain_id=chain_id, **kwargs)


def get_json_rpc_env(chain: int) -> str:
    """Get the JSON-RPC URL environment variable based on the chain id.

    - Map chain id to a name and from there to environment variables.
    """
    chain_name = CHAIN_NAMES.get(chain)
    assert chain_name, f"CHAIN_NAMES not configured for chain if {chain}"
    return f"JSON_RPC_{chain_name.upper()}"


def read_json_rpc_url(chain: int) -> str:
    """Read JSON-RPC URL from environment variable based on the chain id.

    :raises ValueError: If the environment variable is not set for the given chain.
    """
    assert type(chain) is int, f"Chain ID must be an integer: {type(chain)}"
    env_var = get_json_rpc_env(chain)
    json_rpc_url = os.environ.get(env_var)
    if not json_rpc_url:
        raise ValueError(f"Environment variable {env_var} is not set for chain {chain}")
    return json_rpc_url


def _read_bool(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes")


def read_router_config_env(chain_id: int) -> RouterConfig:
    """Build router config from environment variables."""
    kwargs = {
        "partner_id": os.environ.get("VAULT_ROUTER_PARTNER_ID") or None,
        "partner_tracker_address": os.environ.get("VAULT_ROUTER_PARTNER_TRACKER") or None,
        "zapper_api_key": os.environ.get("ZAPPER_API_KEY") or None,
        "enforce_allowlist": _read_bool("VAULT_ROUTER_ENFORCE_ALLOWLIST"),
    }
    meta_url = os.environ.get("VAULT_ROUTER_META_URL")
    if meta_url:
        kwargs["meta_url"] = meta_url
    return RouterConfig.for_chain(chain_id, **kwargs)
