"""Zap quote client interface."""

from dataclasses import dataclass
from typing import Protocol

from eth_typing import HexAddress
from hexbytes import HexBytes

from vault_router.route import ZapProtocol


class ZapAPIError(Exception):
    """Error returned by a zap quote API."""


@dataclass(slots=True, frozen=True)
class ZapTransaction:
    """Transaction built by a zap quote service.

    Sent as is, except for gas fields which go through the submitter's gas fallback.
    """

    #: Zap contract
    to: HexAddress | str

    #: Account the quote was made for
    from_: HexAddress | str | None

    data: HexBytes

    #: Native asset sent along, non-zero when zapping in with the native asset
    value: int = 0

    #: Gas limit estimated by the quote service
    gas: int | None = None

    #: Legacy gas price suggested by the quote service.
    #:
    #: Used only if the node rejects EIP-1559 gas parameters.
    gas_price: int | None = None

    def as_transaction(self) -> dict:
        """Draft transaction dict without gas pricing."""
        tx = {
            "to": self.to,
            "data": self.data,
            "value": self.value,
        }
        if self.from_:
            tx["from"] = self.from_
        if self.gas:
            tx["gas"] = self.gas
        return tx


class ZapQuoteClient(Protocol):
    """Build zap-in and zap-out transactions."""

    def zap_in(
        self,
        account: HexAddress | str,
        token: HexAddress | str,
        amount: int,
        vault: HexAddress | str,
        slippage: float,
        zap_protocol: ZapProtocol = ZapProtocol.yearn,
        partner_id: HexAddress | str | None = None,
    ) -> ZapTransaction:
        """Swap ``token`` to the vault underlying and deposit.

        :param slippage:
            Max slippage tolerance as a percent, e.g. ``0.5``
        """

    def zap_out(
        self,
        account: HexAddress | str,
        token: HexAddress | str,
        amount: int,
        vault: HexAddress | str,
        slippage: float,
        signature: str | None = None,
    ) -> ZapTransaction:
        """Withdraw and swap the underlying to ``token``.

        :param signature:
            Permit signature for the vault share transfer, if the service supports it
        """
