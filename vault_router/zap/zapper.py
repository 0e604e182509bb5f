"""Zapper zap API client.

Builds zap-in and zap-out transactions for Yearn vaults and Pickle jars on Ethereum,
and lists which vaults Zapper supports.

See `Zapper API documentation <https://docs.zapper.fi>`__.
"""

import datetime
import logging
from pprint import pformat

import requests
from eth_typing import HexAddress
from hexbytes import HexBytes

from vault_router.chain import get_chain_name
from vault_router.route import ZapProtocol
from vault_router.zap.base import ZapAPIError, ZapTransaction


logger = logging.getLogger(__name__)


#: Zapper public API
ZAPPER_API_URL = "https://api.zapper.fi/v1"


def _parse_int(value: str | int | None) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return int(value, 0)
    return int(value)


def parse_zap_transaction(data: dict) -> ZapTransaction:
    """Parse Zapper transaction JSON.

    Numeric fields come as decimal or hex strings.

    Example response data:

    .. code-block:: python

        {"from": "0x...", "to": "0x5A0bade607eaca65A0FE6d1437E0e3EC2144d540", "data": "0x...", "value": "0", "gas": "620000", "gasPrice": "40000000000", "sellTokenAddress": "0x..."}
    """
    return ZapTransaction(
        to=data["to"],
        from_=data.get("from"),
        data=HexBytes(data["data"]),
        value=_parse_int(data.get("value")) or 0,
        gas=_parse_int(data.get("gas")),
        gas_price=_parse_int(data.get("gasPrice")),
    )


class ZapperClient:
    """Zapper API client.

    Example:

    .. code-block:: python

        zapper = ZapperClient(chain_id=1, api_key=os.environ["ZAPPER_API_KEY"])
        zap = zapper.zap_in(
            account=account,
            token=dai_address,
            amount=100 * 10**18,
            vault=yvusdc_address,
            slippage=0.5,
        )
    """

    def __init__(
        self,
        chain_id: int,
        api_key: str | None = None,
        api_url: str = ZAPPER_API_URL,
        api_timeout: datetime.timedelta = datetime.timedelta(seconds=30),
    ):
        self.chain_id = chain_id
        self.api_key = api_key
        self.api_url = api_url
        self.api_timeout = api_timeout

    def __repr__(self):
        return f"<ZapperClient chain:{self.chain_id} {self.api_url}>"

    @property
    def network(self) -> str:
        return get_chain_name(self.chain_id).lower()

    def _get(self, path: str, params: dict) -> dict | list:
        final_url = f"{self.api_url}/{path}"
        params = {**params, "network": self.network}
        if self.api_key:
            params["api_key"] = self.api_key

        logger.debug("Zapper request: %s params=%s", final_url, params)
        response = requests.get(final_url, params=params, timeout=self.api_timeout.total_seconds())

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            error_message = response.text
            logger.error("Error calling Zapper %s: %s", path, error_message)
            raise ZapAPIError(f"Error calling Zapper: {response.status_code} {error_message}\nParams: {pformat(params)}\nEndpoint: {final_url}") from e

        data = response.json()
        logger.debug("Zapper response: %s", pformat(data))
        return data

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
        params = {
            "ownerAddress": account,
            "sellTokenAddress": token,
            "sellAmount": str(amount),
            "poolAddress": vault,
            "slippagePercentage": str(slippage),
            "skipGasEstimate": "false",
        }
        if partner_id:
            params["affiliateAddress"] = partner_id

        logger.info("Fetching Zapper zap-in quote: %s -> %s (%s), amount %d", token, vault, zap_protocol.value, amount)
        data = self._get(f"zap-in/vault/{zap_protocol.value}/transaction", params)
        return parse_zap_transaction(data)

    def zap_out(
        self,
        account: HexAddress | str,
        token: HexAddress | str,
        amount: int,
        vault: HexAddress | str,
        slippage: float,
        signature: str | None = None,
    ) -> ZapTransaction:
        params = {
            "ownerAddress": account,
            "toTokenAddress": token,
            "sellAmount": str(amount),
            "poolAddress": vault,
            "slippagePercentage": str(slippage),
            "skipGasEstimate": "false",
        }
        if signature:
            params["signature"] = signature

        logger.info("Fetching Zapper zap-out quote: %s -> %s, amount %d", vault, token, amount)
        data = self._get(f"zap-out/vault/{ZapProtocol.yearn.value}/transaction", params)
        return parse_zap_transaction(data)

    def supported_vault_addresses(self) -> list[HexAddress | str]:
        """Vaults Zapper can zap in and out of.

        Read from Zapper's Yearn vault market data.
        """
        data = self._get(f"protocols/{ZapProtocol.yearn.value}/token-market-data", {"type": "vault"})
        return [entry["address"] for entry in data]
