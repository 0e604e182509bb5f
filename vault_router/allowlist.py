"""Pre-send transaction validation.

Check that the transaction goes to a known contract and calls a known function.
Inspired by on-chain guard contracts that whitelist (target, selector) call sites.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from eth_typing import HexAddress
from hexbytes import HexBytes

from vault_router.abi import get_function_selector
from vault_router.address_dict import AddressDict


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ValidationResult:
    """Allow-list verdict."""

    success: bool

    #: Human readable reason for a rejection
    error: str | None = None


class AllowListValidator(Protocol):
    """Validate transaction destination and calldata."""

    def validate_calldata(self, to: HexAddress | str | None, data: HexBytes | str | None) -> ValidationResult:
        """Check a draft transaction."""


class AllowListService:
    """Allow-list of (destination, function selector) call sites.

    Example:

    .. code-block:: python

        allowlist = AllowListService()
        allowlist.allow(vault_address, "deposit(uint256)", "withdraw(uint256)")
        assert allowlist.validate_calldata(vault_address, encode_vault_deposit(100)).success
    """

    def __init__(self):
        #: Destination -> allowed 4-byte selectors
        self.call_sites = AddressDict()

    def allow(self, address: HexAddress | str, *function_signatures: str):
        """Allow calling functions on a contract."""
        selectors = self.call_sites.setdefault(address, set())
        for signature in function_signatures:
            selectors.add(bytes(get_function_selector(signature)))

    def validate_calldata(self, to: HexAddress | str | None, data: HexBytes | str | None) -> ValidationResult:
        if not to:
            return ValidationResult(success=False, error="Transaction has no destination")

        selectors = self.call_sites.get(to)
        if selectors is None:
            return ValidationResult(success=False, error=f"Destination {to} is not allowed")

        data = HexBytes(data or b"")
        if len(data) < 4:
            return ValidationResult(success=False, error=f"Calldata to {to} has no function selector")

        selector = bytes(data[0:4])
        if selector not in selectors:
            return ValidationResult(success=False, error=f"Function selector 0x{selector.hex()} not allowed on {to}")

        return ValidationResult(success=True)
