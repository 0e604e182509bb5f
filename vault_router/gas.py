"""Gas pricing schemes.

A transaction carries either legacy ``gasPrice`` or EIP-1559
``maxFeePerGas`` + ``maxPriorityFeePerGas``, never both.
We model this as a tagged union, so that a caller cannot hand us both.

`Web3.py no longer support gas price strategies post London hard work <https://web3py.readthedocs.io/en/stable/gas_price.html>`_.
"""

import enum
from dataclasses import dataclass
from pprint import pformat
from typing import ClassVar, TypeAlias

from web3 import Web3


#: Transaction dict keys for EIP-1559 fee fields
LONDON_GAS_FIELDS = ("maxFeePerGas", "maxPriorityFeePerGas")

#: Transaction dict key for legacy fee field
LEGACY_GAS_FIELD = "gasPrice"


class GasPriceMethod(enum.Enum):
    """What pricing scheme a transaction uses."""

    #: Legacy chains and nodes not accepting EIP-1559 params
    legacy = "legacy"

    #: Post London hard work
    london = "london"


@dataclass(slots=True, frozen=True)
class LegacyGasPricing:
    """Flat gas price."""

    method: ClassVar[GasPriceMethod] = GasPriceMethod.legacy

    #: Gas price in wei
    gas_price: int

    def __post_init__(self):
        assert type(self.gas_price) == int, f"Got {type(self.gas_price)}"

    def get_tx_gas_params(self) -> dict:
        """Get gas params as they are applied to a transaction dict."""
        return {LEGACY_GAS_FIELD: self.gas_price}


@dataclass(slots=True, frozen=True)
class LondonGasPricing:
    """EIP-1559 dynamic gas fees."""

    method: ClassVar[GasPriceMethod] = GasPriceMethod.london

    #: Max fee per gas in wei
    max_fee_per_gas: int

    #: Tip for the block producer in wei
    max_priority_fee_per_gas: int

    #: Base fee of the block we estimated from, informational
    base_fee: int | None = None

    def __post_init__(self):
        # https://github.com/ethereum/go-ethereum/blob/2e478aab98c13577c66b4531ba240a601dbc1516/core/error.go#L87
        assert self.max_priority_fee_per_gas <= self.max_fee_per_gas, f"Priority fee {self.max_priority_fee_per_gas} above max fee {self.max_fee_per_gas}"

    def get_tx_gas_params(self) -> dict:
        """Get gas params as they are applied to a transaction dict."""
        return {"maxFeePerGas": self.max_fee_per_gas, "maxPriorityFeePerGas": self.max_priority_fee_per_gas}


#: Exactly one of the gas pricing schemes
GasPricing: TypeAlias = LegacyGasPricing | LondonGasPricing


def format_gas_pricing(pricing: GasPricing | None) -> str:
    """Pretty format for logging."""

    def _format(value: int | None) -> str:
        if value is None:
            return "-"
        return f"{value / 10**9:.2f}G ({value:,})"

    match pricing:
        case LegacyGasPricing():
            data = {"Gas price": _format(pricing.gas_price)}
        case LondonGasPricing():
            data = {
                "Base Fee": _format(pricing.base_fee),
                "Max priority fee per gas": _format(pricing.max_priority_fee_per_gas),
                "Max fee per gas": _format(pricing.max_fee_per_gas),
            }
        case _:
            data = {"Gas": "node default"}
    return pformat(data)


def strip_gas(tx: dict, method: GasPriceMethod) -> dict:
    """Remove the fields of one gas pricing scheme from a transaction dict.

    :return:
        A copy of the transaction without the fields
    """
    fields = LONDON_GAS_FIELDS if method == GasPriceMethod.london else (LEGACY_GAS_FIELD,)
    return {k: v for k, v in tx.items() if k not in fields}


def apply_gas(tx: dict, pricing: GasPricing) -> dict:
    """Apply gas fees to a raw transaction dict.

    - Any fields of the other scheme are removed

    :return:
        Mutated dict
    """

    assert isinstance(tx, dict), f"Expected tx to be dict, got {type(tx)}"

    if pricing.method == GasPriceMethod.london:
        # Cannot have both maxFeePerGas + maxPriorityFeePerGas and gasPrice
        tx.pop(LEGACY_GAS_FIELD, None)
    else:
        for field in LONDON_GAS_FIELDS:
            tx.pop(field, None)

    tx.update(pricing.get_tx_gas_params())
    return tx


def get_gas_method(tx: dict) -> GasPriceMethod | None:
    """Which gas pricing scheme a transaction dict carries.

    :return:
        ``None`` if the node or signer fills in gas

    :raise AssertionError:
        Both schemes populated
    """
    has_legacy = tx.get(LEGACY_GAS_FIELD) is not None
    has_london = any(tx.get(f) is not None for f in LONDON_GAS_FIELDS)
    assert not (has_legacy and has_london), f"Transaction has both legacy and EIP-1559 gas fields: {tx}"
    if has_legacy:
        return GasPriceMethod.legacy
    if has_london:
        return GasPriceMethod.london
    return None


def estimate_gas_price(web3: Web3, method: GasPriceMethod | None = None) -> GasPricing:
    """Get a good gas price for a transaction.

    :param method:
        Force a pricing scheme.
        If not given, use EIP-1559 when the latest block has a base fee.
    """

    if method is None:
        last_block = web3.eth.get_block("latest")
        base_fee = last_block.get("baseFeePerGas")
        method = GasPriceMethod.london if base_fee is not None else GasPriceMethod.legacy
    else:
        base_fee = None

    if method == GasPriceMethod.london:
        if base_fee is None:
            base_fee = web3.eth.get_block("latest")["baseFeePerGas"]

        # see https://github.com/ethereum/web3.py/blob/36adb16c68f570c343d01ecc8d0096cbac814172/web3/middleware/gas_price_strategy.py#L57
        max_priority_fee_per_gas = web3.eth.max_priority_fee
        max_fee_per_gas = max_priority_fee_per_gas + (2 * base_fee)
        return LondonGasPricing(
            max_fee_per_gas=max_fee_per_gas,
            max_priority_fee_per_gas=max_priority_fee_per_gas,
            base_fee=base_fee,
        )
    else:
        return LegacyGasPricing(gas_price=web3.eth.gas_price)
