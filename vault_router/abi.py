"""ABI encoding helpers.

We only ever call a handful of functions on vaults, ERC-20 tokens and
the partner tracker, so we carry human-readable ABI fragments instead of
full JSON ABI files.
"""

from typing import Sequence

import eth_abi
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3


#: Ethereum 0x0000000000000000000000000000000000000000 address
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

#: Unlimited ERC-20 approval
MAX_UINT256 = 2**256 - 1

#: Minimal vault ABI used for direct deposits and withdraws
VAULT_DEPOSIT_SIGNATURE = "deposit(uint256)"
VAULT_WITHDRAW_SIGNATURE = "withdraw(uint256)"

#: ERC-20 approve
ERC20_APPROVE_SIGNATURE = "approve(address,uint256)"

#: Yearn partner tracker
PARTNER_DEPOSIT_SIGNATURE = "deposit(address,address,uint256)"

#: Minimal ERC-20 ABI for balance, allowance and details reads
ERC20_ABI = [
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint8"}]},
    {"name": "balanceOf", "type": "function", "stateMutability": "view", "inputs": [{"name": "owner", "type": "address"}], "outputs": [{"name": "", "type": "uint256"}]},
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


def get_function_selector(function_signature: str) -> HexBytes:
    """4-byte selector for a Solidity function signature."""
    return HexBytes(Web3.keccak(text=function_signature)[0:4])


def encode_with_signature(function_signature: str, args: Sequence) -> HexBytes:
    """Mimic Solidity's abi.encodeWithSignature() in Python.

    Example:

    .. code-block:: python

            payload = encode_with_signature("deposit(uint256)", [10**18])
            assert payload[0:4] == get_function_selector("deposit(uint256)")

    :param function_signature:
        Solidity function signature that can be hashed to a selector.

        ABI fill be extractd from this signature.

    :param args:
        Argument values to be encoded.
    """

    assert type(args) in (tuple, list)

    selector_text = function_signature[function_signature.find("(") + 1 : function_signature.rfind(")")]
    arg_types = selector_text.split(",") if selector_text else []
    encoded_args = eth_abi.encode(arg_types, args)
    return HexBytes(get_function_selector(function_signature) + encoded_args)


def encode_vault_deposit(amount: int) -> HexBytes:
    return encode_with_signature(VAULT_DEPOSIT_SIGNATURE, [amount])


def encode_vault_withdraw(amount: int) -> HexBytes:
    return encode_with_signature(VAULT_WITHDRAW_SIGNATURE, [amount])


def encode_erc20_approve(spender: HexAddress | str, amount: int) -> HexBytes:
    return encode_with_signature(ERC20_APPROVE_SIGNATURE, [Web3.to_checksum_address(spender), amount])
