"""Wido router quote client.

Wido is the zap route on chains without Zapper support, e.g. Fantom.
Quotes are executed through the fixed Wido router contract.
"""

import datetime
import logging
from pprint import pformat

import requests
from eth_typing import HexAddress
from hexbytes import HexBytes

from vault_router.chain import is_native_token
from vault_router.route import ZapProtocol
from vault_router.zap.base import ZapAPIError, ZapTransaction


logger = logging.getLogger(__name__)


#: Wido quote API
WIDO_API_URL = "https://api.joinwido.com"

#: Wido encodes the native asset as the zero address
WIDO_NATIVE_TOKEN = "0x0000000000000000000000000000000000000000"


def to_wido_token(address: HexAddress | str) -> HexAddress | str:
    return WIDO_NATIVE_TOKEN if is_native_token(address) else address


class WidoClient:
    """Wido quote API client."""

    def __init__(
        self,
        chain_id: int,
        api_url: str = WIDO_API_URL,
        api_timeout: datetime.timedelta = datetime.timedelta(seconds=30),
    ):
        self.chain_id = chain_id
        self.api_url = api_url
        self.api_timeout = api_timeout

    def __repr__(self):
        return f"<WidoClient chain:{self.chain_id}>"

    def quote(
        self,
        account: HexAddress | str,
        from_token: HexAddress | str,
        to_token: HexAddress | str,
        amount: int,
        slippage: float,
    ) -> ZapTransaction:
        """Fetch a same-chain swap-and-deposit quote.

        :raise ZapAPIError:
            If the API returns an error, or the quote is not executable
        """
        final_url = f"{self.api_url}/quote_v2"
        params = {
            "fromChainId": self.chain_id,
            "fromToken": to_wido_token(from_token),
            "toChainId": self.chain_id,
            "toToken": to_wido_token(to_token),
            "amount": str(amount),
            "slippagePercentage": slippage,
            "user": account,
        }

        logger.info("Fetching Wido quote: %s -> %s, amount %d", from_token, to_token, amount)
        logger.debug("Wido quote request: %s params=%s", final_url, params)

        response = requests.get(final_url, params=params, timeout=self.api_timeout.total_seconds())

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            error_message = response.text
            logger.error("Error fetching Wido quote: %s", error_message)
            raise ZapAPIError(f"Error fetching Wido quote: {response.status_code} {error_message}\nParams: {pformat(params)}\nEndpoint: {final_url}") from e

        data = response.json()
        logger.debug("Wido quote response: %s", pformat(data))

        if not data.get("isSupported", True) or not data.get("data"):
            raise ZapAPIError(f"Wido cannot route {from_token} -> {to_token} on chain {self.chain_id}: {pformat(data)}")

        return ZapTransaction(
            to=data["to"],
            from_=account,
            data=HexBytes(data["data"]),
            value=int(data.get("value") or 0),
        )

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
        return self.quote(account, from_token=token, to_token=vault, amount=amount, slippage=slippage)

    def zap_out(
        self,
        account: HexAddress | str,
        token: HexAddress | str,
        amount: int,
        vault: HexAddress | str,
        slippage: float,
        signature: str | None = None,
    ) -> ZapTransaction:
        return self.quote(account, from_token=vault, to_token=token, amount=amount, slippage=slippage)
