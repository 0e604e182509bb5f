"""ERC-4626 registry adapter.

Read static and dynamic records of a known set of ERC-4626 vaults with plain
``eth_call``s. One adapter instance covers the vault set it was given.
"""

import logging
from typing import Iterable

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

from vault_router.abi import ERC20_ABI, ZERO_ADDRESS
from vault_router.address_dict import AddressDict
from vault_router.token import get_erc20_contract
from vault_router.vault.base import Position, TokenAllowance, TokenAmount, VaultDynamic, VaultMetadata, VaultStatic


logger = logging.getLogger(__name__)


#: Adapter type id set on the records we produce
ERC4626_TYPE_ID = "ERC4626"

#: ERC-4626 functions on top of ERC-20
ERC4626_ABI = ERC20_ABI + [
    {"name": "asset", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "address"}]},
    {"name": "totalAssets", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "totalSupply", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "convertToAssets", "type": "function", "stateMutability": "view", "inputs": [{"name": "shares", "type": "uint256"}], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "maxDeposit", "type": "function", "stateMutability": "view", "inputs": [{"name": "receiver", "type": "address"}], "outputs": [{"name": "", "type": "uint256"}]},
]


class ERC4626RegistryAdapter:
    """Registry adapter for a fixed list of ERC-4626 vaults.

    Example:

    .. code-block:: python

        adapter = ERC4626RegistryAdapter(web3, ["0x...", "0x..."])
        aggregator = AdapterAggregator(chain_id=1, adapters=[adapter], assets=assets)
    """

    def __init__(
        self,
        web3: Web3,
        vault_addresses: Iterable[HexAddress | str],
        type_id: str = ERC4626_TYPE_ID,
        version: str = "erc-4626",
    ):
        self.web3 = web3
        self.vault_addresses = list(vault_addresses)
        self.type_id = type_id
        self.version = version
        # Static records do not change, read once
        self._static_cache = AddressDict()

    def __repr__(self):
        return f"<ERC4626RegistryAdapter {self.type_id} vaults:{len(self.vault_addresses)}>"

    def get_contract(self, address: HexAddress | str) -> Contract:
        return self.web3.eth.contract(address=Web3.to_checksum_address(address), abi=ERC4626_ABI)

    def _resolve(self, addresses: list[HexAddress | str] | None) -> list[HexAddress | str]:
        if addresses is None:
            return self.vault_addresses
        known = AddressDict({a: a for a in self.vault_addresses})
        return [known[a] for a in addresses if a in known]

    def _read_static(self, address: HexAddress | str) -> VaultStatic:
        cached = self._static_cache.get(address)
        if cached is not None:
            return cached

        contract = self.get_contract(address)
        static = VaultStatic(
            address=address,
            type_id=self.type_id,
            token=contract.functions.asset().call(),
            name=contract.functions.name().call(),
            version=self.version,
            symbol=contract.functions.symbol().call(),
            decimals=contract.functions.decimals().call(),
        )
        self._static_cache[address] = static
        return static

    def _read_dynamic(self, address: HexAddress | str) -> VaultDynamic:
        static = self._read_static(address)
        contract = self.get_contract(address)
        total_assets = contract.functions.totalAssets().call()
        metadata = VaultMetadata(
            symbol=static.symbol,
            price_per_share=contract.functions.convertToAssets(10**static.decimals).call(),
            deposit_limit=contract.functions.maxDeposit(ZERO_ADDRESS).call(),
            total_assets=total_assets,
            total_supply=contract.functions.totalSupply().call(),
            display_name=static.name,
        )
        return VaultDynamic(
            address=address,
            type_id=self.type_id,
            token_id=static.token,
            underlying_token_balance=TokenAmount(amount=total_assets),
            metadata=metadata,
        )

    def _read_position(self, account: HexAddress | str, address: HexAddress | str) -> Position | None:
        static = self._read_static(address)
        contract = self.get_contract(address)
        account_checksum = Web3.to_checksum_address(account)
        shares = contract.functions.balanceOf(account_checksum).call()
        if shares == 0:
            return None

        token_allowance = get_erc20_contract(self.web3, static.token).functions.allowance(account_checksum, Web3.to_checksum_address(address)).call()
        return Position(
            asset_address=address,
            token_address=static.token,
            type_id=self.type_id,
            balance=TokenAmount(amount=shares),
            underlying_token_balance=TokenAmount(amount=contract.functions.convertToAssets(shares).call()),
            token_allowances=(TokenAllowance(owner=account, spender=address, token=static.token, amount=token_allowance),),
        )

    def assets_static(self, addresses: list[HexAddress | str] | None = None) -> list[VaultStatic]:
        return [self._read_static(a) for a in self._resolve(addresses)]

    def assets_dynamic(self, addresses: list[HexAddress | str] | None = None) -> list[VaultDynamic]:
        return [self._read_dynamic(a) for a in self._resolve(addresses)]

    def positions_of(self, account: HexAddress | str, addresses: list[HexAddress | str] | None = None) -> list[Position]:
        """Positions with non-zero share balance."""
        positions = [self._read_position(account, a) for a in self._resolve(addresses)]
        return [p for p in positions if p is not None]

    def tokens(self) -> list[HexAddress | str]:
        return list(dict.fromkeys(s.token for s in self.assets_static()))
