"""Vault listing and deposit/withdraw entry points.

:py:class:`VaultService` wires the aggregation, merge, routing and submission layers together.
All collaborators are passed in explicitly. Use :py:func:`create_vault_service` for the
default web3.py and HTTP based wiring.

Example:

.. code-block:: python

    config = read_router_config_env(chain_id=1)
    web3 = Web3(HTTPProvider(read_json_rpc_url(1)))

    service = create_vault_service(
        web3,
        config,
        adapters=[ERC4626RegistryAdapter(web3, vault_addresses)],
        assets=asset_lookup,
        address_provider=Web3AddressProvider(web3, address_provider_address),
    )

    vaults = service.list_vaults()
    tx_hash = service.deposit(
        vault=vaults[0].address,
        token=vaults[0].token,
        amount=10**18,
        account=account,
    )
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Iterable, Protocol, TypeVar

import cachetools
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3

from vault_router.abi import MAX_UINT256, encode_erc20_approve, encode_vault_deposit, encode_vault_withdraw
from vault_router.adapter import AdapterAggregator, ApySource, RegistryAdapter
from vault_router.allowlist import AllowListValidator
from vault_router.cache import DEFAULT_SNAPSHOT_CACHE, CachedFetcher, NoCache, SnapshotCache
from vault_router.chain import ROUTER_AGGREGATOR_ADDRESSES, is_ethereum, is_native_token
from vault_router.config import RouterConfig
from vault_router.errors import RouteConfigurationError, UnknownVaultError
from vault_router.gas import GasPricing
from vault_router.meta import MetadataSource, MetaService
from vault_router.partner import PartnerService, PartnerTracker
from vault_router.route import AddressProvider, ContractAddressId, RouteDecision, RouteKind, RouteResolver, ZapService
from vault_router.submit import TransactionSender, TransactionSubmitter, Web3TransactionSender
from vault_router.token import PriceOracle, TokenHelper, Web3TokenHelper
from vault_router.utils import filter_by_addresses, is_same_address, run_parallel
from vault_router.vault.base import (
    AccountAssetsData,
    AssetHistoricEarnings,
    Balance,
    Position,
    StrategiesMetadata,
    Token,
    TokenAllowance,
    Vault,
    VaultDynamic,
    VaultInfo,
    VaultStatic,
    VaultsUserSummary,
    VaultUserMetadata,
)
from vault_router.vault.merge import AssetLookup, fill_token_metadata_overrides, merge_vaults
from vault_router.vault.override import MetadataOverride
from vault_router.yearn.vault import VaultInfoReader, YearnV2VaultInfoReader
from vault_router.zap.base import ZapQuoteClient
from vault_router.zap.wido import WidoClient
from vault_router.zap.zapper import ZapperClient


logger = logging.getLogger(__name__)


T = TypeVar("T")


class StrategiesMetadataSource(Protocol):
    """Human readable strategy descriptions."""

    def vaults_strategies_metadata(self, vault_addresses: list[HexAddress | str]) -> list[StrategiesMetadata]:
        """Strategies of each vault."""


class EarningsSource(Protocol):
    """Earnings data from the subgraph."""

    def assets_historic_earnings(self) -> list[AssetHistoricEarnings]:
        """Daily earnings of all vaults."""

    def account_assets_data(self, account: HexAddress | str) -> AccountAssetsData:
        """Earnings and holdings of an account."""


@dataclass(slots=True, frozen=True)
class DepositOptions:
    #: Max slippage in percent. Required for zap deposits.
    slippage: float | None = None


@dataclass(slots=True, frozen=True)
class WithdrawOptions:
    #: Max slippage in percent. Required for zap withdraws.
    slippage: float | None = None

    #: Permit signature passed to the zap service
    signature: str | None = None


def recover_enrichment(func: Callable[[], T], label: str, default: T) -> T:
    """Run a non-critical lookup, log and return ``default`` if it fails."""
    try:
        return func()
    except Exception as e:
        logger.warning("%s unavailable, continuing without: %s", label, e)
        return default


class VaultService:
    """Vault listing, positions and deposit/withdraw.

    - Listing goes through the snapshot caches first
    - Deposit and withdraw routes are resolved per call
    - Every transaction goes through :py:class:`TransactionSubmitter`
    """

    def __init__(
        self,
        chain_id: int,
        aggregator: AdapterAggregator,
        route_resolver: RouteResolver,
        submitter: TransactionSubmitter,
        token_helper: TokenHelper,
        zap_clients: dict[ZapService, ZapQuoteClient] | None = None,
        meta: MetadataSource | None = None,
        strategies: StrategiesMetadataSource | None = None,
        earnings: EarningsSource | None = None,
        partner: PartnerService | None = None,
        price_oracle: PriceOracle | None = None,
        info_reader: VaultInfoReader | None = None,
        vaults_cache: SnapshotCache | None = None,
        dynamic_cache: SnapshotCache | None = None,
        tokens_cache: SnapshotCache | None = None,
        max_workers: int = 8,
    ):
        """
        :param zap_clients:
            Quote client per zap service.
            Zap routes fail with :py:class:`RouteConfigurationError` if the client is missing.

        :param partner:
            Partner attribution, ``None`` if deposits are not partner tracked

        :param vaults_cache:
            Snapshot of :py:meth:`list_vaults`

        :param dynamic_cache:
            Snapshot of :py:meth:`list_vaults_dynamic`

        :param tokens_cache:
            Snapshot of :py:meth:`list_underlying_tokens`
        """
        self.chain_id = chain_id
        self.aggregator = aggregator
        self.route_resolver = route_resolver
        self.submitter = submitter
        self.token_helper = token_helper
        self.zap_clients = zap_clients or {}
        self.meta = meta
        self.strategies = strategies
        self.earnings = earnings
        self.partner = partner
        self.price_oracle = price_oracle
        self.info_reader = info_reader
        self.vaults_cache = vaults_cache or NoCache()
        self.dynamic_cache = dynamic_cache or NoCache()
        self.tokens_cache = tokens_cache or NoCache()
        self.max_workers = max_workers

    def __repr__(self):
        return f"<VaultService chain:{self.chain_id}>"

    #
    # Listing
    #

    def fetch_vault_overrides(self) -> list[MetadataOverride]:
        if self.meta is None:
            return []
        return recover_enrichment(self.meta.vaults_metadata, "Vault metadata overrides", [])

    def fetch_strategies_metadata(self, vault_addresses: list[HexAddress | str]) -> list[StrategiesMetadata]:
        if self.strategies is None:
            return []
        return recover_enrichment(partial(self.strategies.vaults_strategies_metadata, vault_addresses), "Strategies metadata", [])

    def fetch_historic_earnings(self) -> list[AssetHistoricEarnings]:
        if self.earnings is None:
            return []
        return recover_enrichment(self.earnings.assets_historic_earnings, "Historic earnings", [])

    def list_vaults(self, addresses: list[HexAddress | str] | None = None) -> list[Vault]:
        """All vaults, merged and sorted for display.

        :param addresses:
            Filter, if not provided all vaults are returned

        :raise AggregationConsistencyError:
            A vault has static data but no dynamic data
        """
        cached = self.vaults_cache.fetch()
        if cached is not None:
            return filter_by_addresses(cached, addresses)

        overrides, statics = run_parallel(
            [self.fetch_vault_overrides, partial(self.aggregator.list_static, addresses)],
            max_workers=self.max_workers,
        )

        dynamics = self.list_vaults_dynamic(addresses, overrides=overrides)

        strategies, historic_earnings = run_parallel(
            [partial(self.fetch_strategies_metadata, [d.address for d in dynamics]), self.fetch_historic_earnings],
            max_workers=self.max_workers,
        )

        return merge_vaults(statics, dynamics, overrides, strategies, historic_earnings)

    def list_vaults_static(self, addresses: list[HexAddress | str] | None = None) -> list[VaultStatic]:
        """Static vault records across adapters."""
        return self.aggregator.list_static(addresses)

    def list_vaults_dynamic(
        self,
        addresses: list[HexAddress | str] | None = None,
        overrides: Iterable[MetadataOverride] | None = None,
    ) -> list[VaultDynamic]:
        """Enriched dynamic vault records across adapters.

        :param overrides:
            Curated overrides, fetched from the metadata source if not given
        """
        cached = self.dynamic_cache.fetch()
        if cached is not None:
            return filter_by_addresses(cached, addresses)

        if overrides is None:
            overrides = self.fetch_vault_overrides()

        return self.aggregator.list_dynamic(addresses, overrides=overrides)

    def positions_of(self, account: HexAddress | str, addresses: list[HexAddress | str] | None = None) -> list[Position]:
        """Account positions in all vaults.

        :param addresses:
            Filter, if not provided all positions are returned
        """
        return self.aggregator.positions_of(account, addresses)

    def _build_tokens(self, token_addresses: list[HexAddress | str]) -> list[Token]:
        details = run_parallel([partial(self.token_helper.details, a) for a in token_addresses], max_workers=self.max_workers)

        if self.price_oracle is not None:
            prices = run_parallel([partial(self.price_oracle.price_usdc, a) for a in token_addresses], max_workers=self.max_workers)
        else:
            prices = [0] * len(token_addresses)

        metadata_by_address = {}
        if self.meta is not None:
            token_metadata = recover_enrichment(partial(self.meta.tokens_metadata, token_addresses), "Token metadata", [])
            metadata_by_address = {m.address.lower(): m for m in token_metadata}

        assets = self.aggregator.assets
        tokens = []
        for detail, price in zip(details, prices):
            alias = assets.alias(detail.address)
            metadata = metadata_by_address.get(detail.address.lower())
            token = Token(
                address=detail.address,
                name=detail.name,
                symbol=alias.symbol if alias and alias.symbol else detail.symbol,
                decimals=detail.decimals,
                price_usdc=price,
                icon=assets.icon(detail.address),
                data_source="vaults",
                supported={"vaults": True},
            )
            if metadata is not None:
                token = fill_token_metadata_overrides(token, metadata)
            tokens.append(token)
        return tokens

    def list_underlying_tokens(self) -> list[Token]:
        """Underlying tokens of all vaults, with prices and display metadata."""
        cached = self.tokens_cache.fetch()
        if cached is not None:
            return cached

        per_adapter = self.aggregator.list_token_addresses()
        return [token for token_addresses in per_adapter for token in self._build_tokens(token_addresses)]

    def balances_of(self, account: HexAddress | str) -> list[Balance]:
        """Account balances of all vault underlying tokens."""
        tokens = self.list_underlying_tokens()
        amounts = run_parallel([partial(self.token_helper.balance_of, t.address, account) for t in tokens], max_workers=self.max_workers)
        return [
            Balance(
                address=token.address,
                token=token,
                balance=amount,
                balance_usdc=amount * token.price_usdc // 10**token.decimals,
                price_usdc=token.price_usdc,
            )
            for token, amount in zip(tokens, amounts)
        ]

    def summary_of(self, account: HexAddress | str) -> VaultsUserSummary:
        """Account totals across vaults."""
        assert self.earnings is not None, "No earnings source configured"
        data = self.earnings.account_assets_data(account)
        return VaultsUserSummary(
            earnings=data.earnings,
            holdings=data.holdings,
            estimated_yearly_yield=data.estimated_yearly_yield,
            gross_apy=data.gross_apy,
        )

    def metadata_of(self, account: HexAddress | str, addresses: list[HexAddress | str] | None = None) -> list[VaultUserMetadata]:
        """Per-vault earnings of an account.

        :param addresses:
            Filter, if not provided all vaults are returned
        """
        assert self.earnings is not None, "No earnings source configured"
        data = self.earnings.account_assets_data(account)
        return filter_by_addresses(list(data.earnings_asset_data), addresses, attr="asset_address")

    def get_info(self, vault: HexAddress | str) -> VaultInfo:
        """Read vault properties."""
        assert self.info_reader is not None, "No vault info reader configured"
        return self.info_reader.get_info(vault)

    def get_static(self, vault: HexAddress | str) -> VaultStatic:
        """Static record of a single vault.

        :raise UnknownVaultError:
            No adapter knows the vault
        """
        statics = self.aggregator.list_static([vault])
        for static in statics:
            if is_same_address(static.address, vault):
                return static
        raise UnknownVaultError(f"Vault {vault} not found on chain {self.chain_id}")

    def is_underlying_token(self, vault: HexAddress | str, token: HexAddress | str) -> bool:
        return is_same_address(self.get_static(vault).token, token)

    #
    # Routing
    #

    def is_partner_eligible(self, vault: HexAddress | str) -> bool:
        return self.partner is not None and self.partner.is_allowed(vault)

    def resolve_deposit_route(
        self,
        vault: HexAddress | str,
        token: HexAddress | str,
        check_slippage: bool = False,
        slippage: float | None = None,
    ) -> RouteDecision:
        static = self.get_static(vault)
        return self.route_resolver.resolve_deposit_route(
            static,
            token,
            is_partner_eligible=self.is_partner_eligible(vault),
            check_slippage=check_slippage,
            slippage=slippage,
        )

    def resolve_withdraw_route(
        self,
        vault: HexAddress | str,
        token: HexAddress | str,
        check_slippage: bool = False,
        slippage: float | None = None,
    ) -> RouteDecision:
        return self.route_resolver.resolve_withdraw_route(self.get_static(vault), token, check_slippage=check_slippage, slippage=slippage)

    def get_zap_client(self, route: RouteDecision) -> ZapQuoteClient:
        client = self.zap_clients.get(route.zap_service)
        if client is None:
            raise RouteConfigurationError(f"No zap client configured for {route.zap_service.value} on chain {self.chain_id}")
        return client

    #
    # Transactions
    #

    def deposit(
        self,
        vault: HexAddress | str,
        token: HexAddress | str,
        amount: int,
        account: HexAddress | str,
        options: DepositOptions | None = None,
        gas_pricing: GasPricing | None = None,
        overrides: dict | None = None,
    ) -> HexBytes:
        """Deposit into a vault.

        :param token:
            Token to deposit. The vault underlying, the native asset or any token the zap service can swap.

        :return:
            Transaction hash

        :raise MissingSlippageError:
            The deposit needs a zap and no slippage was given
        """
        options = options or DepositOptions()
        route = self.resolve_deposit_route(vault, token, check_slippage=True, slippage=options.slippage)

        if route.is_zap():
            zap = self.get_zap_client(route).zap_in(
                account,
                token,
                amount,
                vault,
                options.slippage,
                zap_protocol=route.zap_protocol,
                partner_id=self.partner.partner_id if self.partner else None,
            )
            return self.submitter.submit(zap.as_transaction, gas_pricing, fallback_gas_price=zap.gas_price, overrides=overrides)

        def make_transaction() -> dict:
            if route.kind == RouteKind.partner:
                return {**self.partner.populate_deposit_transaction(vault, amount), "from": account}
            return {
                "to": route.target,
                "from": account,
                "data": encode_vault_deposit(amount),
                # Native asset deposits send the amount along
                "value": amount if is_native_token(token) else 0,
            }

        return self.submitter.submit(make_transaction, gas_pricing, overrides=overrides)

    def withdraw(
        self,
        vault: HexAddress | str,
        token: HexAddress | str,
        amount: int,
        account: HexAddress | str,
        options: WithdrawOptions | None = None,
        gas_pricing: GasPricing | None = None,
        overrides: dict | None = None,
    ) -> HexBytes:
        """Withdraw from a vault.

        :param amount:
            Vault shares to withdraw

        :param token:
            Token to receive

        :return:
            Transaction hash
        """
        options = options or WithdrawOptions()
        route = self.resolve_withdraw_route(vault, token, check_slippage=True, slippage=options.slippage)

        if route.is_zap():
            zap = self.get_zap_client(route).zap_out(account, token, amount, vault, options.slippage, signature=options.signature)
            return self.submitter.submit(zap.as_transaction, gas_pricing, fallback_gas_price=zap.gas_price, overrides=overrides)

        def make_transaction() -> dict:
            return {"to": route.target, "from": account, "data": encode_vault_withdraw(amount), "value": 0}

        return self.submitter.submit(make_transaction, gas_pricing, overrides=overrides)

    def get_deposit_allowance(self, account: HexAddress | str, vault: HexAddress | str, token: HexAddress | str) -> TokenAllowance:
        """How much of ``token`` the deposit route may spend.

        The native asset needs no approval and is reported as unlimited.
        """
        if is_native_token(token):
            return TokenAllowance(owner=account, spender=vault, token=token, amount=MAX_UINT256)
        route = self.resolve_deposit_route(vault, token)
        return self.token_helper.allowance(token, account, route.target)

    def get_withdraw_allowance(self, account: HexAddress | str, vault: HexAddress | str, token: HexAddress | str) -> TokenAllowance:
        """How many vault shares the withdraw route may spend."""
        route = self.resolve_withdraw_route(vault, token)
        return self.token_helper.allowance(vault, account, route.target)

    def _approve(
        self,
        account: HexAddress | str,
        token: HexAddress | str,
        spender: HexAddress | str,
        amount: int | None,
        gas_pricing: GasPricing | None,
        overrides: dict | None,
    ) -> HexBytes:
        amount = MAX_UINT256 if amount is None else amount
        logger.info("Approving %s to spend %d of %s for %s", spender, amount, token, account)

        def make_transaction() -> dict:
            return {"to": token, "from": account, "data": encode_erc20_approve(spender, amount), "value": 0}

        return self.submitter.submit(make_transaction, gas_pricing, overrides=overrides)

    def approve_deposit(
        self,
        account: HexAddress | str,
        vault: HexAddress | str,
        token: HexAddress | str,
        amount: int | None = None,
        gas_pricing: GasPricing | None = None,
        overrides: dict | None = None,
    ) -> HexBytes:
        """Approve the deposit route to spend ``token``.

        :param amount:
            Defaults to unlimited
        """
        if is_native_token(token):
            raise ValueError("Native asset deposits need no approval")
        route = self.resolve_deposit_route(vault, token)
        return self._approve(account, token, route.target, amount, gas_pricing, overrides)

    def approve_withdraw(
        self,
        account: HexAddress | str,
        vault: HexAddress | str,
        token: HexAddress | str,
        amount: int | None = None,
        gas_pricing: GasPricing | None = None,
        overrides: dict | None = None,
    ) -> HexBytes:
        """Approve the withdraw route to spend vault shares."""
        route = self.resolve_withdraw_route(vault, token)
        return self._approve(account, vault, route.target, amount, gas_pricing, overrides)


def _lookup_partner_tracker(address_provider: AddressProvider) -> HexAddress | str | None:
    try:
        return address_provider.address_by_id(ContractAddressId.partner_tracker)
    except KeyError as e:
        logger.warning("Partner tracker not registered: %s", e)
        return None


def create_vault_service(
    web3: Web3,
    config: RouterConfig,
    adapters: Iterable[RegistryAdapter],
    assets: AssetLookup,
    address_provider: AddressProvider,
    apy_source: ApySource | None = None,
    strategies: StrategiesMetadataSource | None = None,
    earnings: EarningsSource | None = None,
    price_oracle: PriceOracle | None = None,
    allowlist: AllowListValidator | None = None,
    sender: TransactionSender | None = None,
    cache: cachetools.Cache = DEFAULT_SNAPSHOT_CACHE,
) -> VaultService:
    """Wire a vault service with the web3.py and HTTP collaborators.

    :param sender:
        Defaults to sending through the node with ``eth_sendTransaction``

    :param cache:
        Storage for the listing snapshots
    """
    chain_id = config.chain_id

    zapper = ZapperClient(chain_id, api_key=config.zapper_api_key)
    zap_clients = {
        ZapService.zapper: zapper,
        ZapService.router_aggregator: WidoClient(chain_id),
    }

    partner = None
    if config.partner_id:
        tracker_address = config.partner_tracker_address or _lookup_partner_tracker(address_provider)
        partner = PartnerTracker(tracker_address, config.partner_id)

    aggregator = AdapterAggregator(
        chain_id=chain_id,
        adapters=adapters,
        assets=assets,
        apy_source=apy_source,
        zap_support=zapper if is_ethereum(chain_id) else None,
        ftm_ape_zappable_vaults=config.ftm_ape_zappable_vaults,
        max_workers=config.max_workers,
    )

    route_resolver = RouteResolver(
        chain_id,
        address_provider,
        pickle_jars=config.pickle_jars,
        router_aggregator_address=config.router_aggregator_address or ROUTER_AGGREGATOR_ADDRESSES.get(chain_id),
        partner_tracker_address=partner.address if partner else None,
    )

    submitter = TransactionSubmitter(
        sender or Web3TransactionSender(web3),
        allowlist=allowlist,
        enforce_allowlist=config.enforce_allowlist,
    )

    return VaultService(
        chain_id=chain_id,
        aggregator=aggregator,
        route_resolver=route_resolver,
        submitter=submitter,
        token_helper=Web3TokenHelper(web3),
        zap_clients=zap_clients,
        meta=MetaService(chain_id, config.meta_url),
        strategies=strategies,
        earnings=earnings,
        partner=partner,
        price_oracle=price_oracle,
        info_reader=YearnV2VaultInfoReader(web3, max_workers=config.max_workers),
        vaults_cache=CachedFetcher("vaults/get", chain_id, cache),
        dynamic_cache=CachedFetcher("vaults/getDynamic", chain_id, cache),
        tokens_cache=CachedFetcher("vaults/tokens", chain_id, cache),
        max_workers=config.max_workers,
    )
