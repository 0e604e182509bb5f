"""Yearn v2 vault info reads.

- `Vault contract on Github <https://github.com/yearn/yearn-vaults/blob/master/contracts/Vault.vy>`__
"""

import datetime
import logging
from typing import Protocol

from eth_typing import HexAddress
from web3 import Web3

from vault_router.utils import run_parallel
from vault_router.vault.base import VaultInfo


logger = logging.getLogger(__name__)


#: Vault property name -> Solidity return type
YEARN_V2_VAULT_PROPERTIES = {
    "name": "string",
    "symbol": "string",
    "apiVersion": "string",
    "emergencyShutdown": "bool",
    "lastReport": "uint256",
    "managementFee": "uint256",
    "performanceFee": "uint256",
    "totalAssets": "uint256",
    "depositLimit": "uint256",
    "debtRatio": "uint256",
    "management": "address",
    "governance": "address",
    "guardian": "address",
    "rewards": "address",
}

YEARN_V2_VAULT_ABI = [
    {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": output_type}],
    }
    for name, output_type in YEARN_V2_VAULT_PROPERTIES.items()
]


class VaultInfoReader(Protocol):
    """Read vault properties in one go."""

    def get_info(self, vault: HexAddress | str) -> VaultInfo:
        """Vault properties."""


class YearnV2VaultInfoReader:
    """Read Yearn v2 vault properties with web3.py.

    The property reads are independent and issued in parallel.
    """

    def __init__(self, web3: Web3, max_workers: int = 8):
        self.web3 = web3
        self.max_workers = max_workers

    def get_info(self, vault: HexAddress | str) -> VaultInfo:
        contract = self.web3.eth.contract(address=Web3.to_checksum_address(vault), abi=YEARN_V2_VAULT_ABI)
        names = list(YEARN_V2_VAULT_PROPERTIES.keys())
        values = run_parallel([getattr(contract.functions, n)().call for n in names], max_workers=self.max_workers)
        result = dict(zip(names, values))

        logger.debug("Read vault %s info: %s", vault, result)

        return VaultInfo(
            name=result["name"],
            symbol=result["symbol"],
            api_version=result["apiVersion"],
            emergency_shutdown=result["emergencyShutdown"],
            last_report=datetime.datetime.fromtimestamp(result["lastReport"], datetime.timezone.utc).replace(tzinfo=None),
            management_fee=result["managementFee"],
            performance_fee=result["performanceFee"],
            total_assets=result["totalAssets"],
            deposit_limit=result["depositLimit"],
            debt_ratio=result["debtRatio"],
            management=result["management"],
            governance=result["governance"],
            guardian=result["guardian"],
            rewards=result["rewards"],
        )
