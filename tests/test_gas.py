"""Gas helpers."""

import pytest
from web3 import EthereumTesterProvider, Web3

from vault_router.gas import GasPriceMethod, LegacyGasPricing, LondonGasPricing, apply_gas, estimate_gas_price, format_gas_pricing, get_gas_method, strip_gas


@pytest.fixture
def tester_provider():
    # https://web3py.readthedocs.io/en/stable/examples.html#contract-unit-tests-in-python
    return EthereumTesterProvider()


@pytest.fixture
def web3(tester_provider):
    """Set up a local unit testing blockchain."""
    return Web3(tester_provider)


def test_gas_fees_london(web3: Web3):
    """Estimate London fees from the latest block."""
    pricing = estimate_gas_price(web3)
    assert isinstance(pricing, LondonGasPricing)
    assert pricing.base_fee > 0
    assert pricing.max_fee_per_gas >= pricing.max_priority_fee_per_gas


def test_gas_fees_legacy(web3: Web3):
    pricing = estimate_gas_price(web3, method=GasPriceMethod.legacy)
    assert isinstance(pricing, LegacyGasPricing)
    assert pricing.gas_price > 0


def test_apply_gas_london():
    tx = {"to": "0x1", "gasPrice": 1}
    result = apply_gas(tx, LondonGasPricing(max_fee_per_gas=10, max_priority_fee_per_gas=1))
    assert result is tx
    assert tx == {"to": "0x1", "maxFeePerGas": 10, "maxPriorityFeePerGas": 1}


def test_apply_gas_legacy():
    tx = {"to": "0x1", "maxFeePerGas": 10, "maxPriorityFeePerGas": 1}
    apply_gas(tx, LegacyGasPricing(gas_price=5))
    assert tx == {"to": "0x1", "gasPrice": 5}


def test_strip_gas_copies():
    tx = {"to": "0x1", "gasPrice": 1, "gas": 21000}
    stripped = strip_gas(tx, GasPriceMethod.legacy)
    assert stripped == {"to": "0x1", "gas": 21000}
    assert tx["gasPrice"] == 1

    tx = {"maxFeePerGas": 10, "maxPriorityFeePerGas": 1}
    assert strip_gas(tx, GasPriceMethod.london) == {}


@pytest.mark.parametrize(
    "tx, expected",
    [
        ({}, None),
        ({"gasPrice": None}, None),
        ({"gasPrice": 1}, GasPriceMethod.legacy),
        ({"maxFeePerGas": 2, "maxPriorityFeePerGas": 1}, GasPriceMethod.london),
    ],
)
def test_get_gas_method(tx, expected):
    assert get_gas_method(tx) == expected


def test_get_gas_method_both():
    with pytest.raises(AssertionError):
        get_gas_method({"gasPrice": 1, "maxFeePerGas": 2})


def test_london_priority_above_max():
    with pytest.raises(AssertionError):
        LondonGasPricing(max_fee_per_gas=1, max_priority_fee_per_gas=2)


def test_legacy_needs_int():
    with pytest.raises(AssertionError):
        LegacyGasPricing(gas_price=1.5)


def test_format_gas_pricing():
    assert "node default" in format_gas_pricing(None)
    assert "Gas price" in format_gas_pricing(LegacyGasPricing(gas_price=10**9))
    assert "Max fee per gas" in format_gas_pricing(LondonGasPricing(max_fee_per_gas=2, max_priority_fee_per_gas=1))
