"""Vault service listing, routing and transactions."""

from unittest.mock import Mock

import pytest
from hexbytes import HexBytes

from conftest import DAI, USDC, WETH, FakeRegistryAdapter, make_address, upper_address
from vault_router.abi import MAX_UINT256, encode_erc20_approve, encode_vault_deposit, encode_vault_withdraw, get_function_selector
from vault_router.adapter import AdapterAggregator
from vault_router.address_provider import StaticAddressProvider
from vault_router.cache import CachedFetcher, NoCache
from vault_router.chain import NATIVE_TOKEN_ADDRESS
from vault_router.config import RouterConfig
from vault_router.errors import MissingSlippageError, RouteConfigurationError, UnknownVaultError
from vault_router.gas import LondonGasPricing
from vault_router.partner import PartnerTracker
from vault_router.route import ContractAddressId, RouteResolver, ZapProtocol, ZapService
from vault_router.submit import TransactionSubmitter
from vault_router.vault.base import AccountAssetsData, TokenAllowance, TokenDetails, VaultUserMetadata
from vault_router.vault.override import MetadataOverride, TokenMetadata
from vault_router.vaults import DepositOptions, VaultService, WithdrawOptions, create_vault_service
from vault_router.zap.base import ZapTransaction


ACCOUNT = make_address(0xACC)
ZAP_IN = make_address(0x2A1)
ZAP_OUT = make_address(0x2A2)
PARTNER_TRACKER = make_address(0x2A4)
PARTNER_ID = make_address(0x9A)
TX_HASH = HexBytes("0x" + "cd" * 32)


class RPCError(Exception):
    def __init__(self, code: int):
        super().__init__("invalid params")
        self.rpc_response = {"error": {"code": code, "message": "invalid params"}}


@pytest.fixture()
def address_provider() -> StaticAddressProvider:
    return StaticAddressProvider(
        {
            ContractAddressId.zapper_zap_in: ZAP_IN,
            ContractAddressId.zapper_zap_out: ZAP_OUT,
        }
    )


@pytest.fixture()
def sender() -> Mock:
    sender = Mock()
    sender.send_transaction.return_value = TX_HASH
    sender.get_legacy_gas_price.return_value = 10**9
    return sender


@pytest.fixture()
def token_helper() -> Mock:
    helper = Mock()

    def details(address):
        symbols = {DAI.lower(): "DAI", WETH.lower(): "WETH"}
        return TokenDetails(address=address, name=f"Token {symbols[address.lower()]}", symbol=symbols[address.lower()], decimals=18)

    helper.details.side_effect = details
    helper.balance_of.return_value = 2 * 10**18
    helper.allowance.side_effect = lambda token, owner, spender: TokenAllowance(owner=owner, spender=spender, token=token, amount=5)
    return helper


@pytest.fixture()
def zapper() -> Mock:
    client = Mock()
    client.zap_in.return_value = ZapTransaction(to=ZAP_IN, from_=ACCOUNT, data=HexBytes("0x1234"), value=0, gas=600_000, gas_price=33 * 10**9)
    client.zap_out.return_value = ZapTransaction(to=ZAP_OUT, from_=ACCOUNT, data=HexBytes("0x5678"))
    return client


@pytest.fixture()
def meta() -> Mock:
    meta = Mock()
    meta.vaults_metadata.return_value = []
    meta.tokens_metadata.return_value = []
    return meta


def make_service(
    adapter,
    assets,
    address_provider,
    sender,
    token_helper,
    zap_clients=None,
    partner=None,
    **kwargs,
) -> VaultService:
    aggregator = AdapterAggregator(chain_id=1, adapters=[adapter], assets=assets)
    resolver = RouteResolver(1, address_provider, partner_tracker_address=partner.address if partner else None)
    return VaultService(
        chain_id=1,
        aggregator=aggregator,
        route_resolver=resolver,
        submitter=TransactionSubmitter(sender),
        token_helper=token_helper,
        zap_clients=zap_clients,
        partner=partner,
        **kwargs,
    )


@pytest.fixture()
def service(adapter, assets, address_provider, sender, token_helper, zapper, meta) -> VaultService:
    return make_service(adapter, assets, address_provider, sender, token_helper, zap_clients={ZapService.zapper: zapper}, meta=meta)


def sent(sender: Mock) -> dict:
    return sender.send_transaction.call_args.args[0]


def test_list_vaults(service, meta, vault_statics):
    a, b, c = vault_statics
    meta.vaults_metadata.return_value = [
        MetadataOverride(address=upper_address(b.address), hide_always=True),
        MetadataOverride(address=c.address, order=0),
    ]
    vaults = service.list_vaults()
    assert [v.address for v in vaults] == [c.address, a.address]
    assert vaults[0].metadata.display_name == "ETH"
    assert vaults[1].metadata.display_name == "DAI"


def test_list_vaults_filter(service, vault_statics):
    vaults = service.list_vaults([vault_statics[2].address])
    assert [v.address for v in vaults] == [vault_statics[2].address]


def test_list_vaults_overrides_unavailable(service, meta):
    """Metadata service down, vaults still listed."""
    meta.vaults_metadata.side_effect = ConnectionError("meta down")
    assert len(service.list_vaults()) == 3


def test_list_vaults_enrichment_unavailable(adapter, assets, address_provider, sender, token_helper):
    strategies = Mock()
    strategies.vaults_strategies_metadata.side_effect = ConnectionError("down")
    earnings = Mock()
    earnings.assets_historic_earnings.side_effect = ConnectionError("down")
    service = make_service(adapter, assets, address_provider, sender, token_helper, strategies=strategies, earnings=earnings)

    vaults = service.list_vaults()
    assert len(vaults) == 3
    assert all(v.metadata.strategies is None for v in vaults)


def test_list_vaults_cache_hit(adapter, assets, address_provider, sender, token_helper, vault_statics):
    """A cached snapshot is returned without touching the adapters."""
    cache = {}
    vaults_cache = CachedFetcher("vaults/get", 1, cache)
    service = make_service(adapter, assets, address_provider, sender, token_helper, vaults_cache=vaults_cache)

    snapshot = service.list_vaults()
    vaults_cache.store(snapshot)
    adapter.static_calls.clear()
    adapter.dynamic_calls.clear()

    assert service.list_vaults() == snapshot
    assert service.list_vaults([upper_address(vault_statics[0].address)]) == snapshot[0:1]
    assert adapter.static_calls == []
    assert adapter.dynamic_calls == []

    vaults_cache.invalidate()
    service.list_vaults()
    assert len(adapter.static_calls) == 1


def test_list_vaults_dynamic_cache_hit(adapter, assets, address_provider, sender, token_helper, vault_statics):
    dynamic_cache = Mock()
    dynamic_cache.fetch.return_value = ["cached"]
    service = make_service(adapter, assets, address_provider, sender, token_helper, dynamic_cache=dynamic_cache)
    assert service.list_vaults_dynamic() == ["cached"]
    assert adapter.dynamic_calls == []


def test_caches_default_to_no_cache(service):
    assert isinstance(service.vaults_cache, NoCache)
    assert isinstance(service.tokens_cache, NoCache)


def test_get_static_unknown(service):
    with pytest.raises(UnknownVaultError):
        service.get_static(make_address(0xDEAD))


def test_is_underlying_token(service, vault_statics):
    assert service.is_underlying_token(vault_statics[0].address, DAI.lower())
    assert not service.is_underlying_token(vault_statics[0].address, USDC)


def test_deposit_direct(service, sender, vault_statics):
    vault = vault_statics[0].address
    pricing = LondonGasPricing(max_fee_per_gas=20, max_priority_fee_per_gas=1)

    assert service.deposit(vault, DAI, 100, ACCOUNT, gas_pricing=pricing) == TX_HASH

    tx = sent(sender)
    assert tx["to"] == vault
    assert tx["from"] == ACCOUNT
    assert tx["data"] == encode_vault_deposit(100)
    assert tx["value"] == 0
    assert tx["maxFeePerGas"] == 20


def test_deposit_native(service, sender, vault_statics):
    vault = vault_statics[2].address
    service.deposit(vault, NATIVE_TOKEN_ADDRESS, 10**18, ACCOUNT)
    tx = sent(sender)
    assert tx["to"] == vault
    assert tx["value"] == 10**18


def test_deposit_partner(adapter, assets, address_provider, sender, token_helper, vault_statics):
    partner = PartnerTracker(PARTNER_TRACKER, PARTNER_ID)
    service = make_service(adapter, assets, address_provider, sender, token_helper, partner=partner)

    service.deposit(vault_statics[0].address, DAI, 100, ACCOUNT)

    tx = sent(sender)
    assert tx["to"] == PARTNER_TRACKER
    assert tx["from"] == ACCOUNT
    assert tx["data"][0:4] == get_function_selector("deposit(address,address,uint256)")


def test_deposit_partner_not_allowed(adapter, assets, address_provider, sender, token_helper, vault_statics):
    """Vaults outside the partner program are deposited directly."""
    partner = PartnerTracker(PARTNER_TRACKER, PARTNER_ID, allowed_vaults=[vault_statics[1].address])
    service = make_service(adapter, assets, address_provider, sender, token_helper, partner=partner)

    service.deposit(vault_statics[0].address, DAI, 100, ACCOUNT)
    assert sent(sender)["to"] == vault_statics[0].address


def test_deposit_partner_tracker_missing(adapter, assets, address_provider, sender, token_helper, vault_statics):
    partner = PartnerTracker(None, PARTNER_ID)
    service = make_service(adapter, assets, address_provider, sender, token_helper, partner=partner)

    with pytest.raises(RouteConfigurationError):
        service.deposit(vault_statics[0].address, DAI, 100, ACCOUNT)
    sender.send_transaction.assert_not_called()


def test_deposit_zap(service, sender, zapper, vault_statics):
    vault = vault_statics[0].address
    service.deposit(vault, USDC, 100, ACCOUNT, DepositOptions(slippage=0.5))

    zapper.zap_in.assert_called_once_with(ACCOUNT, USDC, 100, vault, 0.5, zap_protocol=ZapProtocol.yearn, partner_id=None)
    tx = sent(sender)
    assert tx["to"] == ZAP_IN
    assert tx["data"] == HexBytes("0x1234")
    assert tx["gas"] == 600_000
    assert "gasPrice" not in tx


def test_deposit_zap_legacy_gas_fallback(service, sender, zapper, vault_statics):
    """Node rejects EIP-1559 params, the quote's gas price is used on the retry."""
    sender.send_transaction.side_effect = [RPCError(-32602), TX_HASH]
    pricing = LondonGasPricing(max_fee_per_gas=20, max_priority_fee_per_gas=1)

    assert service.deposit(vault_statics[0].address, USDC, 100, ACCOUNT, DepositOptions(slippage=0.5), gas_pricing=pricing) == TX_HASH

    retry = sent(sender)
    assert retry["gasPrice"] == 33 * 10**9
    assert "maxFeePerGas" not in retry
    zapper.zap_in.assert_called_once()


def test_deposit_zap_missing_slippage(service, sender, zapper, vault_statics):
    with pytest.raises(MissingSlippageError):
        service.deposit(vault_statics[0].address, USDC, 100, ACCOUNT)
    zapper.zap_in.assert_not_called()
    sender.send_transaction.assert_not_called()


def test_deposit_zap_client_missing(adapter, assets, address_provider, sender, token_helper, vault_statics):
    service = make_service(adapter, assets, address_provider, sender, token_helper)
    with pytest.raises(RouteConfigurationError):
        service.deposit(vault_statics[0].address, USDC, 100, ACCOUNT, DepositOptions(slippage=0.5))


def test_withdraw_direct(service, sender, vault_statics):
    service.withdraw(vault_statics[0].address, DAI, 50, ACCOUNT)
    tx = sent(sender)
    assert tx["to"] == vault_statics[0].address
    assert tx["data"] == encode_vault_withdraw(50)


def test_withdraw_zap(service, sender, zapper, vault_statics):
    vault = vault_statics[0].address
    service.withdraw(vault, USDC, 50, ACCOUNT, WithdrawOptions(slippage=1, signature="0xsig"))
    zapper.zap_out.assert_called_once_with(ACCOUNT, USDC, 50, vault, 1, signature="0xsig")
    assert sent(sender)["to"] == ZAP_OUT


def test_withdraw_zap_missing_slippage(service, zapper, vault_statics):
    with pytest.raises(MissingSlippageError):
        service.withdraw(vault_statics[0].address, USDC, 50, ACCOUNT)
    zapper.zap_out.assert_not_called()


def test_zap_missing_slippage_no_address_lookup(adapter, assets, address_provider, sender, token_helper, zapper, vault_statics):
    wrapped = Mock(wraps=address_provider)
    service = make_service(adapter, assets, wrapped, sender, token_helper, zap_clients={ZapService.zapper: zapper})
    vault = vault_statics[0].address

    with pytest.raises(MissingSlippageError):
        service.withdraw(vault, USDC, 50, ACCOUNT)
    with pytest.raises(MissingSlippageError):
        service.deposit(vault, USDC, 100, ACCOUNT)

    assert wrapped.address_by_id.call_count == 0
    zapper.zap_in.assert_not_called()
    zapper.zap_out.assert_not_called()
    sender.send_transaction.assert_not_called()


def test_zap_missing_slippage_unregistered_zap_contract(adapter, assets, sender, token_helper, zapper, vault_statics):
    service = make_service(adapter, assets, StaticAddressProvider({}), sender, token_helper, zap_clients={ZapService.zapper: zapper})
    vault = vault_statics[0].address

    with pytest.raises(MissingSlippageError):
        service.withdraw(vault, USDC, 50, ACCOUNT)
    with pytest.raises(RouteConfigurationError, match="ZAPPER_ZAP_OUT"):
        service.withdraw(vault, USDC, 50, ACCOUNT, WithdrawOptions(slippage=1))


def test_deposit_allowance(service, token_helper, vault_statics):
    vault = vault_statics[0].address

    allowance = service.get_deposit_allowance(ACCOUNT, vault, DAI)
    assert allowance.spender == vault
    token_helper.allowance.assert_called_with(DAI, ACCOUNT, vault)

    allowance = service.get_deposit_allowance(ACCOUNT, vault, USDC)
    assert allowance.spender == ZAP_IN

    allowance = service.get_deposit_allowance(ACCOUNT, vault, NATIVE_TOKEN_ADDRESS)
    assert allowance.amount == MAX_UINT256


def test_withdraw_allowance(service, token_helper, vault_statics):
    vault = vault_statics[0].address
    allowance = service.get_withdraw_allowance(ACCOUNT, vault, USDC)
    assert allowance.token == vault
    assert allowance.spender == ZAP_OUT


def test_approve_deposit(service, sender, vault_statics):
    vault = vault_statics[0].address
    service.approve_deposit(ACCOUNT, vault, USDC)
    tx = sent(sender)
    assert tx["to"] == USDC
    assert tx["data"] == encode_erc20_approve(ZAP_IN, MAX_UINT256)

    service.approve_deposit(ACCOUNT, vault, DAI, amount=100)
    assert sent(sender)["data"] == encode_erc20_approve(vault, 100)


def test_approve_deposit_native(service, vault_statics):
    with pytest.raises(ValueError):
        service.approve_deposit(ACCOUNT, vault_statics[2].address, NATIVE_TOKEN_ADDRESS)


def test_approve_withdraw(service, sender, vault_statics):
    vault = vault_statics[0].address
    service.approve_withdraw(ACCOUNT, vault, USDC)
    tx = sent(sender)
    assert tx["to"] == vault
    assert tx["data"] == encode_erc20_approve(ZAP_OUT, MAX_UINT256)


def test_underlying_tokens(adapter, assets, address_provider, sender, token_helper, meta):
    price_oracle = Mock()
    price_oracle.price_usdc.return_value = 1_000_000
    meta.tokens_metadata.return_value = [TokenMetadata(address=DAI.lower(), token_icon_override="https://dai")]
    service = make_service(adapter, assets, address_provider, sender, token_helper, meta=meta, price_oracle=price_oracle)

    tokens = service.list_underlying_tokens()
    assert [t.symbol for t in tokens] == ["DAI", "WETH"]
    assert tokens[0].icon == "https://dai"
    assert tokens[0].name == "Token DAI"
    assert tokens[1].icon == assets.icon(WETH)
    assert tokens[1].price_usdc == 1_000_000


def test_underlying_tokens_metadata_unavailable(service, meta):
    meta.tokens_metadata.side_effect = ConnectionError("down")
    tokens = service.list_underlying_tokens()
    assert len(tokens) == 2
    assert tokens[0].price_usdc == 0


def test_balances(adapter, assets, address_provider, sender, token_helper):
    price_oracle = Mock()
    price_oracle.price_usdc.return_value = 1_500_000
    service = make_service(adapter, assets, address_provider, sender, token_helper, price_oracle=price_oracle)

    balances = service.balances_of(ACCOUNT)
    assert len(balances) == 2
    assert balances[0].balance == 2 * 10**18
    assert balances[0].balance_usdc == 3_000_000
    token_helper.balance_of.assert_any_call(DAI, ACCOUNT)


def test_positions(service, vault_statics):
    positions = service.positions_of(ACCOUNT, [vault_statics[1].address])
    assert [p.asset_address for p in positions] == [vault_statics[1].address]


def test_summary_and_metadata(adapter, assets, address_provider, sender, token_helper, vault_statics):
    a, b, _ = vault_statics
    earnings = Mock()
    earnings.account_assets_data.return_value = AccountAssetsData(
        earnings=10,
        holdings=1000,
        gross_apy=0.05,
        estimated_yearly_yield=50,
        earnings_asset_data=(VaultUserMetadata(asset_address=a.address, earned=4), VaultUserMetadata(asset_address=b.address, earned=6)),
    )
    service = make_service(adapter, assets, address_provider, sender, token_helper, earnings=earnings)

    summary = service.summary_of(ACCOUNT)
    assert summary.holdings == 1000
    assert summary.estimated_yearly_yield == 50

    metadata = service.metadata_of(ACCOUNT, [upper_address(b.address)])
    assert [m.earned for m in metadata] == [6]


def test_get_info(adapter, assets, address_provider, sender, token_helper, vault_statics):
    info_reader = Mock()
    service = make_service(adapter, assets, address_provider, sender, token_helper, info_reader=info_reader)
    service.get_info(vault_statics[0].address)
    info_reader.get_info.assert_called_once_with(vault_statics[0].address)


def test_create_vault_service(adapter, assets, sender):
    address_provider = StaticAddressProvider({ContractAddressId.partner_tracker: PARTNER_TRACKER})
    config = RouterConfig.for_chain(1, partner_id=PARTNER_ID)

    service = create_vault_service(Mock(), config, [adapter], assets, address_provider, sender=sender, cache={})

    assert service.partner.address == PARTNER_TRACKER
    assert service.route_resolver.partner_tracker_address == PARTNER_TRACKER
    assert set(service.zap_clients) == {ZapService.zapper, ZapService.router_aggregator}
    assert service.aggregator.zap_support is service.zap_clients[ZapService.zapper]
    assert service.submitter.sender is sender
    assert service.vaults_cache.fetch() is None


def test_create_vault_service_fantom(assets, sender):
    adapter = FakeRegistryAdapter([])
    config = RouterConfig.for_chain(250)

    service = create_vault_service(Mock(), config, [adapter], assets, StaticAddressProvider({}), sender=sender)

    assert service.partner is None
    assert service.aggregator.zap_support is None
    assert service.route_resolver.router_aggregator_address == "0x7Bbd6348db83C2fb3633Eebb70367E1AEc258764"
    assert service.is_partner_eligible(make_address(1)) is False


def test_create_vault_service_default_router_address(assets, sender):
    config = RouterConfig(chain_id=250)
    assert config.router_aggregator_address is None

    service = create_vault_service(Mock(), config, [FakeRegistryAdapter([])], assets, StaticAddressProvider({}), sender=sender)
    assert service.route_resolver.router_aggregator_address == "0x7Bbd6348db83C2fb3633Eebb70367E1AEc258764"
