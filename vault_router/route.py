"""Deposit and withdraw route resolution.

Decide which contract or zap service executes a vault deposit or withdraw.

Deposit, first matching rule wins:

1. Native asset: the vault contract, vaults accept the native asset directly
2. Vault is a Pickle jar: Pickle zap-in, slippage required
3. Underlying token, partner eligible account: partner tracker contract
4. Underlying token: the vault contract
5. Any other token on a router aggregator chain: the fixed router contract, slippage required
6. Any other token: the Zapper zap-in contract from the address provider, slippage required

Withdraw:

1. Underlying token: the vault contract
2. Any other token on a router aggregator chain: the fixed router contract, slippage required
3. Any other token: the Zapper zap-out contract from the address provider, slippage required

Routes are computed per call and never cached: partner eligibility and the token
vary per account and call.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from eth_typing import HexAddress

from vault_router.address_dict import AddressDict
from vault_router.chain import ZapSolution, get_zap_solution, is_native_token
from vault_router.errors import MissingSlippageError, RouteConfigurationError
from vault_router.utils import is_same_address
from vault_router.vault.base import VaultStatic


logger = logging.getLogger(__name__)


class ContractAddressId(str, enum.Enum):
    """Contract identifiers understood by the address provider."""

    zapper_zap_in = "ZAPPER_ZAP_IN"
    zapper_zap_out = "ZAPPER_ZAP_OUT"
    pickle_zap_in = "PICKLE_ZAP_IN"
    partner_tracker = "PARTNER_TRACKER"
    allowlist = "ALLOW_LIST_REGISTRY"


class ZapProtocol(str, enum.Enum):
    """Which protocol's vault the zap quote is for."""

    yearn = "yearn"
    pickle = "pickle"


class ZapService(str, enum.Enum):
    """Which quote collaborator builds the zap transaction."""

    #: Zapper API, also serves Pickle zaps
    zapper = "zapper"

    #: Routing aggregator (Wido)
    router_aggregator = "router_aggregator"


class RouteKind(str, enum.Enum):
    """Execution path of a deposit or withdraw."""

    #: Call the vault contract
    vault = "vault"

    #: Call the partner tracker which forwards to the vault
    partner = "partner"

    #: Zap through a quote service
    zap = "zap"


class AddressProvider(Protocol):
    """Contract address registry."""

    def address_by_id(self, contract_id: ContractAddressId) -> HexAddress | str:
        """Resolve a contract address.

        :raise KeyError:
            Contract not registered
        """


@dataclass(slots=True, frozen=True)
class RouteDecision:
    """Where a deposit or withdraw goes."""

    kind: RouteKind

    #: Contract the transaction is sent to, also the ERC-20 spender to approve
    target: HexAddress | str

    #: Zap routes need slippage tolerance from the caller
    requires_slippage: bool = False

    #: Set for zap routes
    zap_protocol: ZapProtocol | None = None

    #: Set for zap routes
    zap_service: ZapService | None = None

    def __post_init__(self):
        if self.kind == RouteKind.zap:
            assert self.zap_service is not None, "Zap route needs a zap service"
            assert self.requires_slippage, "Zap routes always require slippage"

    def is_zap(self) -> bool:
        return self.kind == RouteKind.zap


class RouteResolver:
    """Pure route decision logic.

    - No I/O besides address provider lookups
    - Never caches decisions
    """

    def __init__(
        self,
        chain_id: int,
        address_provider: AddressProvider,
        pickle_jars: Iterable[HexAddress | str] = (),
        router_aggregator_address: HexAddress | str | None = None,
        partner_tracker_address: HexAddress | str | None = None,
    ):
        """
        :param pickle_jars:
            Vaults zapped through the Pickle zap

        :param router_aggregator_address:
            Fixed router contract, must be given on router aggregator chains

        :raise RouteConfigurationError:
            Router aggregator chain without a router address

        :param partner_tracker_address:
            Partner tracker contract, must be given if any account is partner eligible
        """
        self.chain_id = chain_id
        self.address_provider = address_provider
        self.pickle_jars = AddressDict({a: True for a in pickle_jars})
        self.zap_solution = get_zap_solution(chain_id)
        self.router_aggregator_address = router_aggregator_address
        self.partner_tracker_address = partner_tracker_address

        if self.zap_solution == ZapSolution.router_aggregator and not router_aggregator_address:
            raise RouteConfigurationError(f"Chain {chain_id} routes zaps through an aggregator, but no router address given")

    def __repr__(self):
        return f"<RouteResolver chain:{self.chain_id} zap:{self.zap_solution.value}>"

    def is_pickle_jar(self, vault: HexAddress | str) -> bool:
        return vault in self.pickle_jars

    def _lookup_zap_contract(self, contract_id: ContractAddressId) -> HexAddress | str:
        try:
            return self.address_provider.address_by_id(contract_id)
        except KeyError as e:
            raise RouteConfigurationError(f"Zap contract {contract_id.value} not configured on chain {self.chain_id}") from e

    def _zap_route(
        self,
        contract_id: ContractAddressId,
        zap_protocol: ZapProtocol,
        check_slippage: bool,
        slippage: float | None,
    ) -> RouteDecision:
        # Fail before any address lookup
        if check_slippage and slippage is None:
            raise MissingSlippageError("zap operations should have a slippage set")

        if self.zap_solution == ZapSolution.router_aggregator:
            return RouteDecision(
                kind=RouteKind.zap,
                target=self.router_aggregator_address,
                requires_slippage=True,
                zap_protocol=zap_protocol,
                zap_service=ZapService.router_aggregator,
            )

        return RouteDecision(
            kind=RouteKind.zap,
            target=self._lookup_zap_contract(contract_id),
            requires_slippage=True,
            zap_protocol=zap_protocol,
            zap_service=ZapService.zapper,
        )

    def resolve_deposit_route(
        self,
        vault: VaultStatic,
        token: HexAddress | str,
        is_partner_eligible: bool = False,
        check_slippage: bool = False,
        slippage: float | None = None,
    ) -> RouteDecision:
        """Decide where a deposit goes.

        :param vault:
            Static record of the vault, for its underlying token

        :param token:
            Token the account deposits

        :param is_partner_eligible:
            Deposits of this account into this vault are partner tracked

        :param check_slippage:
            Fail a zap route without ``slippage`` before looking up the zap contract

        :param slippage:
            Slippage tolerance of the caller

        :raise RouteConfigurationError:
            Partner eligible deposit, but the partner tracker address is not configured
            or the zap contract is not registered

        :raise MissingSlippageError:
            Zap route, ``check_slippage`` set and no slippage given
        """
        if is_native_token(token):
            route = RouteDecision(kind=RouteKind.vault, target=vault.address)
        elif self.is_pickle_jar(vault.address):
            route = self._zap_route(ContractAddressId.pickle_zap_in, ZapProtocol.pickle, check_slippage, slippage)
        elif is_same_address(vault.token, token):
            if is_partner_eligible:
                if not self.partner_tracker_address:
                    raise RouteConfigurationError("Partner Tracking Contract Address not defined")
                route = RouteDecision(kind=RouteKind.partner, target=self.partner_tracker_address)
            else:
                route = RouteDecision(kind=RouteKind.vault, target=vault.address)
        else:
            route = self._zap_route(ContractAddressId.zapper_zap_in, ZapProtocol.yearn, check_slippage, slippage)

        logger.info("Deposit %s -> %s routed %s to %s", token, vault.address, route.kind.value, route.target)
        return route

    def resolve_withdraw_route(
        self,
        vault: VaultStatic,
        token: HexAddress | str,
        check_slippage: bool = False,
        slippage: float | None = None,
    ) -> RouteDecision:
        """Decide where a withdraw goes.

        :param token:
            Token the account wants to receive

        :raise RouteConfigurationError:
            The zap contract is not registered

        :raise MissingSlippageError:
            Zap route, ``check_slippage`` set and no slippage given
        """
        if is_same_address(vault.token, token):
            route = RouteDecision(kind=RouteKind.vault, target=vault.address)
        else:
            route = self._zap_route(ContractAddressId.zapper_zap_out, ZapProtocol.yearn, check_slippage, slippage)

        logger.info("Withdraw %s -> %s routed %s to %s", vault.address, token, route.kind.value, route.target)
        return route
