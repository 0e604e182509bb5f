"""Partner tracked deposits."""

import eth_abi
import pytest

from conftest import make_address, upper_address
from vault_router.abi import get_function_selector
from vault_router.address_provider import StaticAddressProvider
from vault_router.route import ContractAddressId
from vault_router.partner import PartnerTracker


TRACKER = make_address(0x2A4)
PARTNER_ID = make_address(0x9A)
VAULT = make_address(0xA1)


def test_populate_deposit_transaction():
    partner = PartnerTracker(TRACKER, PARTNER_ID)
    tx = partner.populate_deposit_transaction(VAULT, 10**18)

    assert tx["to"] == TRACKER
    assert tx["value"] == 0
    assert tx["data"][0:4] == get_function_selector("deposit(address,address,uint256)")
    vault, partner_id, amount = eth_abi.decode(["address", "address", "uint256"], tx["data"][4:])
    assert vault.lower() == VAULT
    assert partner_id.lower() == PARTNER_ID
    assert amount == 10**18


def test_populate_without_tracker():
    partner = PartnerTracker(None, PARTNER_ID)
    with pytest.raises(AssertionError):
        partner.populate_deposit_transaction(VAULT, 1)


def test_partner_id_required():
    with pytest.raises(AssertionError):
        PartnerTracker(TRACKER, "")


def test_is_allowed():
    assert PartnerTracker(TRACKER, PARTNER_ID).is_allowed(VAULT)

    partner = PartnerTracker(TRACKER, PARTNER_ID, allowed_vaults=[upper_address(VAULT)])
    assert partner.is_allowed(VAULT)
    assert not partner.is_allowed(make_address(0xB2))


def test_from_address_provider():
    provider = StaticAddressProvider({ContractAddressId.partner_tracker: TRACKER})
    partner = PartnerTracker.from_address_provider(provider, PARTNER_ID)
    assert partner.address == TRACKER
