"""Transaction submission with gas parameter fallback.

Some JSON-RPC nodes reject EIP-1559 fee fields with ``-32602 invalid params``.
:py:class:`TransactionSubmitter` sends every transaction at most twice:

1. Without legacy ``gasPrice``: EIP-1559 fees if the caller gave them, otherwise the node or signer default
2. Only if 1. failed with ``-32602``: EIP-1559 fields removed, legacy ``gasPrice`` set to the caller's price,
   the zap quote's price or the node's suggestion, in this order

Any other failure, and any failure of the second attempt, is raised as :py:class:`TransactionSendError`.
"""

import logging
from pprint import pformat
from typing import Callable, Protocol

from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3

from vault_router.allowlist import AllowListValidator
from vault_router.errors import AllowListViolation, NodeCompatibilityError, TransactionSendError
from vault_router.gas import LEGACY_GAS_FIELD, LONDON_GAS_FIELDS, GasPriceMethod, GasPricing, LegacyGasPricing, LondonGasPricing, apply_gas, estimate_gas_price, format_gas_pricing, get_gas_method, strip_gas


logger = logging.getLogger(__name__)


#: JSON-RPC ``invalid params``, given by nodes not accepting EIP-1559 fee fields
NODE_COMPATIBILITY_ERROR_CODE = -32602


def get_rpc_error_code(exc: Exception) -> int | None:
    """Dig the JSON-RPC error code out of a provider exception.

    - web3.py v7 raises ``Web3RPCError`` with ``rpc_response``
    - web3.py v6 raises ``ValueError({'code': -32602, 'message': ...})``
    - Some signers set ``code`` attribute directly

    :return:
        ``None`` if the exception does not carry a code
    """
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict):
        error = rpc_response.get("error")
        if isinstance(error, dict) and type(error.get("code")) == int:
            return error["code"]

    code = getattr(exc, "code", None)
    if type(code) == int:
        return code

    # ValueError: {'message': 'invalid params', 'code': -32602}
    if len(exc.args) > 0 and type(exc.args[0]) == dict:
        code = exc.args[0].get("code")
        if type(code) == int:
            return code

    return None


class TransactionSender(Protocol):
    """Signs and broadcasts transactions.

    Nonce management is up to the sender.
    """

    def send_transaction(self, tx: dict) -> HexBytes:
        """Broadcast a transaction.

        :return:
            Transaction hash
        """

    def get_legacy_gas_price(self) -> int:
        """Node's suggested legacy gas price in wei."""


class Web3TransactionSender:
    """Send transactions through a node-managed account.

    Uses ``eth_sendTransaction``, so the node or a signing middleware must hold the key.
    """

    def __init__(self, web3: Web3, default_from: HexAddress | str | None = None):
        self.web3 = web3
        self.default_from = default_from

    def send_transaction(self, tx: dict) -> HexBytes:
        tx = dict(tx)
        if not tx.get("from") and self.default_from:
            tx["from"] = self.default_from
        for key in ("from", "to"):
            if tx.get(key):
                tx[key] = Web3.to_checksum_address(tx[key])
        return HexBytes(self.web3.eth.send_transaction(tx))

    def get_legacy_gas_price(self) -> int:
        return estimate_gas_price(self.web3, method=GasPriceMethod.legacy).gas_price


class TransactionSubmitter:
    """Validate and send transactions with one-shot legacy gas fallback."""

    def __init__(
        self,
        sender: TransactionSender,
        allowlist: AllowListValidator | None = None,
        enforce_allowlist: bool = False,
    ):
        """
        :param allowlist:
            Validate destination and calldata before sending

        :param enforce_allowlist:
            Refuse to send transactions the allow-list rejects.
            By default rejections are only logged.
        """
        self.sender = sender
        self.allowlist = allowlist
        self.enforce_allowlist = enforce_allowlist

    def validate(self, tx: dict):
        """Run the allow-list check.

        :raise AllowListViolation:
            Rejected and enforcement is on
        """
        if self.allowlist is None:
            return

        result = self.allowlist.validate_calldata(tx.get("to"), tx.get("data"))
        if result.success:
            return

        if self.enforce_allowlist:
            raise AllowListViolation(result.error or "transaction is not valid")

        logger.warning("Allow-list rejected transaction to %s, sending anyway: %s", tx.get("to"), result.error)

    def _send(self, tx: dict, attempt: int) -> HexBytes:
        logger.info("Sending transaction to %s, attempt %d", tx.get("to"), attempt)
        logger.debug("Transaction: %s", pformat(tx))
        assert get_gas_method(tx) in (None, GasPriceMethod.legacy, GasPriceMethod.london)
        return self.sender.send_transaction(tx)

    def submit(
        self,
        make_transaction: Callable[[], dict],
        gas_pricing: GasPricing | None = None,
        fallback_gas_price: int | None = None,
        overrides: dict | None = None,
    ) -> HexBytes:
        """Build, validate and send a transaction.

        :param make_transaction:
            Returns the draft transaction dict, called once.
            Encodes a vault call locally or returns a zap quote.

        :param gas_pricing:
            Caller's gas pricing.
            London fees are used on the first attempt, legacy price only on the fallback attempt.

        :param fallback_gas_price:
            Legacy gas price from the zap quote, used if the caller gave none

        :param overrides:
            Other transaction fields to force, e.g. ``gas`` or ``nonce``

        :return:
            Transaction hash

        :raise TransactionSendError:
            Send failed
        """
        overrides = overrides or {}
        assert not any(k in overrides for k in (LEGACY_GAS_FIELD, *LONDON_GAS_FIELDS)), f"Pass gas pricing as GasPricing, not in overrides: {overrides}"

        draft = {**make_transaction(), **overrides}
        self.validate(draft)

        logger.info("Submitting with gas %s", format_gas_pricing(gas_pricing))

        tx = strip_gas(draft, GasPriceMethod.legacy)
        if isinstance(gas_pricing, LondonGasPricing):
            apply_gas(tx, gas_pricing)

        try:
            return self._send(tx, attempt=1)
        except Exception as e:
            code = get_rpc_error_code(e)
            if code != NODE_COMPATIBILITY_ERROR_CODE:
                raise TransactionSendError(f"Transaction to {tx.get('to')} failed: {e}", code=code) from e
            logger.warning("Node rejected gas parameters (%d), retrying with legacy gas price: %s", code, e)

        if isinstance(gas_pricing, LegacyGasPricing):
            gas_price = gas_pricing.gas_price
        elif fallback_gas_price is not None:
            gas_price = fallback_gas_price
        else:
            gas_price = self.sender.get_legacy_gas_price()

        tx = apply_gas(strip_gas(draft, GasPriceMethod.london), LegacyGasPricing(gas_price=int(gas_price)))

        try:
            return self._send(tx, attempt=2)
        except Exception as e:
            code = get_rpc_error_code(e)
            error_class = NodeCompatibilityError if code == NODE_COMPATIBILITY_ERROR_CODE else TransactionSendError
            raise error_class(f"Transaction to {tx.get('to')} failed with legacy gas price {gas_price}: {e}", code=code) from e
