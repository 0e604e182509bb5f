"""Chain specific configuration.

Which chains get which zap solution, native asset pseudo-addresses
and other per-chain constants the router needs.
"""

import enum

from eth_typing import HexAddress


#: Manually maintained shorthand names for the chains we route on
CHAIN_NAMES = {
    1: "Ethereum",
    10: "Optimism",
    250: "Fantom",
    42161: "Arbitrum",
    1337: "Localhost",
}

#: Pseudo-address used for the chain native asset (ETH, FTM) in deposits and token lists
NATIVE_TOKEN_ADDRESS: HexAddress = HexAddress("0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE")

#: Wrapped native token per chain
WRAPPED_NATIVE_TOKEN: dict[int, HexAddress | str] = {
    # WETH
    1: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
    # WFTM
    250: "0x21be370D5312f44cB42ce377BC9b8a0cEF1A4C83",
    # WETH: Optimism
    10: "0x4200000000000000000000000000000000000006",
    # WETH: Arbitrum
    42161: "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
}

#: Vaults with a wrapped native underlying are displayed as the native asset.
#:
#: Chain id -> (wrapped token address, display symbol)
WRAPPED_NATIVE_DISPLAY: dict[int, tuple[HexAddress | str, str]] = {
    1: ("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "ETH"),
}


class ZapSolution(str, enum.Enum):
    """How non-underlying token deposits and withdrawals are executed on a chain."""

    #: Zapper zap-in/zap-out contracts, looked up from the address provider
    zapper = "zapper"

    #: Dedicated routing aggregator with a fixed router contract (Wido)
    router_aggregator = "router_aggregator"


#: Per-chain zap solution.
#:
#: Chains not listed here use :py:attr:`ZapSolution.zapper`.
CHAIN_ZAP_SOLUTIONS: dict[int, ZapSolution] = {
    1: ZapSolution.zapper,
    250: ZapSolution.router_aggregator,
}

#: Fixed router contracts for chains using :py:attr:`ZapSolution.router_aggregator`.
#:
#: There is no registry for these, the router address is published by the aggregator.
ROUTER_AGGREGATOR_ADDRESSES: dict[int, HexAddress | str] = {
    # Wido router on Fantom
    250: "0x7Bbd6348db83C2fb3633Eebb70367E1AEc258764",
}

#: Fantom vaults we allow to ape-zap into.
#:
#: Hardcoded for now, there is no supported vault list API for Fantom.
FTM_APE_ZAPPABLE_VAULTS: list[HexAddress | str] = [
    WRAPPED_NATIVE_TOKEN[250],
]


def get_chain_name(chain_id: int) -> str:
    """Translate Ethereum chain id to its name."""
    return CHAIN_NAMES.get(chain_id, f"Unknown chain {chain_id}")


def get_zap_solution(chain_id: int) -> ZapSolution:
    """Which zap solution a chain uses."""
    return CHAIN_ZAP_SOLUTIONS.get(chain_id, ZapSolution.zapper)


def is_native_token(address: HexAddress | str) -> bool:
    """Is this the native asset pseudo-address."""
    return address.lower() == NATIVE_TOKEN_ADDRESS.lower()


def is_ethereum(chain_id: int) -> bool:
    return chain_id == 1


def is_fantom(chain_id: int) -> bool:
    return chain_id == 250
