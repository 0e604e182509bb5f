"""Shared fixtures: in-memory registry adapter and asset lookup."""

from dataclasses import dataclass

import pytest

from vault_router.address_dict import AddressDict
from vault_router.utils import filter_by_addresses
from vault_router.vault.base import Position, TokenAmount, VaultDynamic, VaultMetadata, VaultStatic


#: Underlying tokens
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"


def make_address(i: int) -> str:
    return f"0x{i:040x}"


def upper_address(address: str) -> str:
    """Same address, different casing."""
    return "0x" + address[2:].upper()


def make_static(address: str, token: str = DAI, name: str | None = None, type_id: str = "VAULT_V2") -> VaultStatic:
    return VaultStatic(
        address=address,
        type_id=type_id,
        token=token,
        name=name or f"Vault {address[-4:]}",
        version="0.4.3",
        symbol="yvTKN",
        decimals=18,
    )


def make_dynamic(static: VaultStatic, **metadata) -> VaultDynamic:
    return VaultDynamic(
        address=static.address,
        type_id=static.type_id,
        token_id=static.token,
        underlying_token_balance=TokenAmount(amount=1000),
        metadata=VaultMetadata(symbol=static.symbol, **metadata),
    )


class FakeRegistryAdapter:
    """Registry adapter over a fixed list of vaults.

    Multi-address queries for more than ``max_bulk`` vaults fail, like nodes do with too large calls.
    """

    def __init__(self, statics: list[VaultStatic], max_bulk: int | None = None, dynamic_metadata: dict | None = None):
        self.statics = statics
        self.max_bulk = max_bulk
        self.dynamic_metadata = AddressDict(dynamic_metadata or {})
        self.static_calls = []
        self.dynamic_calls = []
        self.position_calls = []

    def __repr__(self):
        return f"<FakeRegistryAdapter vaults:{len(self.statics)}>"

    def _check_bulk(self, selected: list):
        if self.max_bulk is not None and len(selected) > self.max_bulk:
            raise ValueError(f"Multicall too large: {len(selected)}")

    def assets_static(self, addresses=None):
        self.static_calls.append(addresses)
        return filter_by_addresses(self.statics, addresses)

    def assets_dynamic(self, addresses=None):
        self.dynamic_calls.append(addresses)
        selected = filter_by_addresses(self.statics, addresses)
        self._check_bulk(selected)
        return [make_dynamic(s, **self.dynamic_metadata.get(s.address, {})) for s in selected]

    def positions_of(self, account, addresses=None):
        self.position_calls.append(addresses)
        selected = filter_by_addresses(self.statics, addresses)
        self._check_bulk(selected)
        return [
            Position(
                asset_address=s.address,
                token_address=s.token,
                type_id=s.type_id,
                balance=TokenAmount(amount=10),
                underlying_token_balance=TokenAmount(amount=11),
            )
            for s in selected
        ]

    def tokens(self):
        return list(dict.fromkeys(s.token for s in self.statics))


@dataclass
class FakeAlias:
    symbol: str
    name: str


class FakeAssetLookup:
    """Icons for every token, aliases for a few."""

    def __init__(self, aliases: dict | None = None):
        self.aliases = AddressDict(aliases or {})

    def icon(self, address):
        return f"https://assets.example.com/tokens/{address.lower()}.png"

    def alias(self, address):
        return self.aliases.get(address)


@pytest.fixture()
def assets() -> FakeAssetLookup:
    return FakeAssetLookup({DAI: FakeAlias(symbol="DAI", name="Dai Stablecoin")})


@pytest.fixture()
def vault_statics() -> list[VaultStatic]:
    """Three vaults: two DAI, one WETH."""
    return [
        make_static(make_address(0xA1), token=DAI, name="DAI yVault"),
        make_static(make_address(0xB2), token=DAI, name="DAI yVault 2"),
        make_static(make_address(0xC3), token=WETH, name="WETH yVault"),
    ]


@pytest.fixture()
def adapter(vault_statics) -> FakeRegistryAdapter:
    return FakeRegistryAdapter(vault_statics)
