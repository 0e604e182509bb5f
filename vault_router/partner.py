"""Partner tracked deposits.

Partners integrating vaults get deposits made through their front-end attributed to them.
Attributed deposits go through the partner tracker contract instead of the vault:
``deposit(address vault, address partnerId, uint256 amount)``.
"""

import logging
from typing import Iterable, Protocol

from eth_typing import HexAddress
from web3 import Web3

from vault_router.abi import PARTNER_DEPOSIT_SIGNATURE, encode_with_signature
from vault_router.address_dict import AddressDict
from vault_router.route import ContractAddressId


logger = logging.getLogger(__name__)


class PartnerService(Protocol):
    """Partner attribution."""

    #: Partner tracker contract, ``None`` if not configured
    address: HexAddress | str | None

    #: Partner id recorded on deposits
    partner_id: HexAddress | str

    def is_allowed(self, vault: HexAddress | str) -> bool:
        """Are deposits into this vault attributed to the partner."""

    def populate_deposit_transaction(self, vault: HexAddress | str, amount: int) -> dict:
        """Draft partner tracker deposit transaction."""


class PartnerTracker:
    """Encode partner tracker deposits.

    Example:

    .. code-block:: python

        partner = PartnerTracker(
            address=address_provider.address_by_id(ContractAddressId.partner_tracker),
            partner_id="0x...",
        )
        tx = partner.populate_deposit_transaction(vault_address, 10**18)
    """

    def __init__(
        self,
        address: HexAddress | str | None,
        partner_id: HexAddress | str,
        allowed_vaults: Iterable[HexAddress | str] | None = None,
    ):
        """
        :param allowed_vaults:
            Vaults the partner program covers, ``None`` for all vaults
        """
        assert partner_id, "Partner id missing"
        self.address = address
        self.partner_id = partner_id
        self.allowed_vaults = AddressDict({a: True for a in allowed_vaults}) if allowed_vaults is not None else None

    def __repr__(self):
        return f"<PartnerTracker {self.address} partner:{self.partner_id}>"

    @classmethod
    def from_address_provider(cls, address_provider, partner_id: HexAddress | str, **kwargs) -> "PartnerTracker":
        """Resolve the tracker contract from the address provider."""
        return cls(address=address_provider.address_by_id(ContractAddressId.partner_tracker), partner_id=partner_id, **kwargs)

    def is_allowed(self, vault: HexAddress | str) -> bool:
        if self.allowed_vaults is None:
            return True
        return vault in self.allowed_vaults

    def populate_deposit_transaction(self, vault: HexAddress | str, amount: int) -> dict:
        assert self.address, "Partner tracker address not configured"
        data = encode_with_signature(PARTNER_DEPOSIT_SIGNATURE, [Web3.to_checksum_address(vault), Web3.to_checksum_address(self.partner_id), amount])
        logger.info("Partner %s deposit of %d into %s through %s", self.partner_id, amount, vault, self.address)
        return {"to": self.address, "data": data, "value": 0}
