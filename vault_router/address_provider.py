"""Contract address registry lookups.

Zap contract addresses are not hardcoded: they are read from an
on-chain address provider contract by their string id.
"""

import logging

import cachetools
from eth_typing import HexAddress
from web3 import Web3

from vault_router.abi import ZERO_ADDRESS
from vault_router.route import ContractAddressId


logger = logging.getLogger(__name__)


#: Address provider contract ABI fragment
ADDRESS_PROVIDER_ABI = [
    {
        "name": "addressById",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "id", "type": "string"}],
        "outputs": [{"name": "", "type": "address"}],
    },
]


class StaticAddressProvider:
    """Address provider backed by a fixed mapping.

    Example:

    .. code-block:: python

        provider = StaticAddressProvider({ContractAddressId.zapper_zap_in: "0x..."})
    """

    def __init__(self, addresses: dict[ContractAddressId, HexAddress | str]):
        self.addresses = dict(addresses)

    def address_by_id(self, contract_id: ContractAddressId) -> HexAddress | str:
        try:
            return self.addresses[contract_id]
        except KeyError:
            raise KeyError(f"Contract {contract_id.value} not configured. Configured: {[k.value for k in self.addresses]}")


class Web3AddressProvider:
    """Read contract addresses from the on-chain address provider.

    - Lookups are cached for the lifetime of the instance, registered addresses rarely change
    """

    def __init__(self, web3: Web3, address: HexAddress | str):
        self.web3 = web3
        self.contract = web3.eth.contract(address=Web3.to_checksum_address(address), abi=ADDRESS_PROVIDER_ABI)
        self.cache = cachetools.LRUCache(maxsize=32)

    def __repr__(self):
        return f"<Web3AddressProvider {self.contract.address}>"

    def address_by_id(self, contract_id: ContractAddressId) -> HexAddress | str:
        cached = self.cache.get(contract_id)
        if cached is not None:
            return cached

        address = self.contract.functions.addressById(contract_id.value).call()
        if address == ZERO_ADDRESS:
            raise KeyError(f"Contract {contract_id.value} not registered in {self.contract.address}")

        logger.info("Address provider resolved %s to %s", contract_id.value, address)
        self.cache[contract_id] = address
        return address
