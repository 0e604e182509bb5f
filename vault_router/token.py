"""ERC-20 token reads.

- Token details are immutable and cached per process
- Balances and allowances are always read fresh
"""

import logging
from typing import Protocol

import cachetools
from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

from vault_router.abi import ERC20_ABI
from vault_router.chain import NATIVE_TOKEN_ADDRESS, is_native_token
from vault_router.vault.base import TokenAllowance, TokenDetails


logger = logging.getLogger(__name__)


#: By default we cache 1024 token details using LRU in the process memory.
DEFAULT_TOKEN_CACHE = cachetools.LRUCache(1024)


class TokenHelper(Protocol):
    """ERC-20 reads the vault service needs."""

    def details(self, address: HexAddress | str) -> TokenDetails:
        """Name, symbol and decimals."""

    def balance_of(self, token: HexAddress | str, account: HexAddress | str) -> int:
        """Raw token balance, native asset included."""

    def allowance(self, token: HexAddress | str, owner: HexAddress | str, spender: HexAddress | str) -> TokenAllowance:
        """ERC-20 allowance."""


class PriceOracle(Protocol):
    """Token USD prices."""

    def price_usdc(self, token: HexAddress | str) -> int:
        """USDC price of one whole token, 6 decimals."""


def get_erc20_contract(web3: Web3, address: HexAddress | str) -> Contract:
    return web3.eth.contract(address=Web3.to_checksum_address(address), abi=ERC20_ABI)


class Web3TokenHelper:
    """Read tokens with web3.py."""

    def __init__(self, web3: Web3, cache: cachetools.Cache | None = DEFAULT_TOKEN_CACHE):
        """
        :param cache:
            Token details cache.
            Set to ``None`` to disable the cache.
        """
        self.web3 = web3
        self.cache = cache

    def details(self, address: HexAddress | str) -> TokenDetails:
        if is_native_token(address):
            return TokenDetails(address=NATIVE_TOKEN_ADDRESS, name="Native token", symbol="ETH", decimals=18)

        chain_id = self.web3.eth.chain_id
        key = (chain_id, address.lower())
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        logger.debug("Fetching uncached token %s on chain %d", address, chain_id)
        contract = get_erc20_contract(self.web3, address)
        details = TokenDetails(
            address=address,
            name=contract.functions.name().call(),
            symbol=contract.functions.symbol().call(),
            decimals=contract.functions.decimals().call(),
        )
        if self.cache is not None:
            self.cache[key] = details
        return details

    def balance_of(self, token: HexAddress | str, account: HexAddress | str) -> int:
        account = Web3.to_checksum_address(account)
        if is_native_token(token):
            return self.web3.eth.get_balance(account)
        return get_erc20_contract(self.web3, token).functions.balanceOf(account).call()

    def allowance(self, token: HexAddress | str, owner: HexAddress | str, spender: HexAddress | str) -> TokenAllowance:
        contract = get_erc20_contract(self.web3, token)
        amount = contract.functions.allowance(Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)).call()
        return TokenAllowance(owner=owner, spender=spender, token=token, amount=amount)
