"""Merge static and dynamic vault records with curated overrides.

- Derive display fields (icon, name, default token) from the underlying token
- Layer curated overrides on top of on-chain and derived values
- Join static and dynamic records into display-ready :py:class:`Vault` records, sorted by display order

All functions here are pure. They return new records and never mutate their inputs,
so that listing the same snapshot twice gives identical output.
"""

import dataclasses
import logging
import math
from typing import Iterable, Protocol

from eth_typing import HexAddress

from vault_router.address_dict import AddressDict
from vault_router.chain import NATIVE_TOKEN_ADDRESS, WRAPPED_NATIVE_DISPLAY
from vault_router.errors import AggregationConsistencyError
from vault_router.utils import is_same_address
from vault_router.vault.base import Apy, AssetHistoricEarnings, StrategiesMetadata, Token, Vault, VaultDynamic, VaultStatic
from vault_router.vault.override import MetadataOverride, TokenMetadata


logger = logging.getLogger(__name__)


#: Sort key of vaults without explicit display order.
#:
#: Unordered vaults go to the end of the list.
UNORDERED = math.inf


class TokenAlias(Protocol):
    """Display alias of a token, e.g. ``yvCurve-3pool`` -> ``3CRV``."""

    symbol: str
    name: str


class AssetLookup(Protocol):
    """Icon and alias lookups for token addresses."""

    def icon(self, address: HexAddress | str) -> str | None:
        """Icon URL for a token, ``None`` if we do not have one."""

    def alias(self, address: HexAddress | str) -> TokenAlias | None:
        """Display alias for a token, ``None`` if we do not have one."""


def derive_display_metadata(
    dynamic: VaultDynamic,
    chain_id: int,
    assets: AssetLookup,
    apy: Apy | None = None,
) -> VaultDynamic:
    """Fill in APY and display icon/name/default token derived from the underlying token.

    - A vault with wrapped native underlying is displayed as the native asset,
      and the native asset is the default display token
    """
    wrapped_native = WRAPPED_NATIVE_DISPLAY.get(chain_id)
    if wrapped_native and is_same_address(dynamic.token_id, wrapped_native[0]):
        display_icon = assets.icon(NATIVE_TOKEN_ADDRESS) or ""
        display_name = wrapped_native[1]
        default_display_token = NATIVE_TOKEN_ADDRESS
    else:
        display_icon = assets.icon(dynamic.token_id) or ""
        alias = assets.alias(dynamic.token_id)
        display_name = alias.symbol if alias else ""
        default_display_token = dynamic.token_id

    metadata = dataclasses.replace(
        dynamic.metadata,
        apy=apy,
        display_icon=display_icon,
        display_name=display_name,
        default_display_token=default_display_token,
    )
    return dataclasses.replace(dynamic, metadata=metadata)


def fill_metadata_overrides(dynamic: VaultDynamic, override: MetadataOverride) -> VaultDynamic:
    """Apply curated overrides on a dynamic record.

    - Override fields that are set always win over on-chain and derived values
    - Override fields that are not set leave the current value alone
    - ``hide_if_no_deposits`` is forced on by emergency shutdown, retirement or an available migration
    - ``migration_available`` stays on once either the chain or the override says so
    """
    assert is_same_address(dynamic.address, override.address), f"Override {override.address} does not match vault {dynamic.address}"

    metadata = dynamic.metadata
    changes = {}

    if override.display_name:
        changes["display_name"] = override.display_name
    if override.vault_symbol_override:
        changes["symbol"] = override.vault_symbol_override
    if override.vault_icon_override:
        changes["display_icon"] = override.vault_icon_override

    if override.apy_type_override or override.apy_override:
        apy = metadata.apy or Apy.empty()
        if override.apy_type_override:
            apy = dataclasses.replace(apy, type=override.apy_type_override)
        if override.apy_override:
            apy = dataclasses.replace(apy, net_apy=override.apy_override, type="override")
        changes["apy"] = apy

    for name in (
        "deposits_disabled",
        "withdrawals_disabled",
        "allow_zap_in",
        "allow_zap_out",
        "zap_in_with",
        "zap_out_with",
        "migration_contract",
        "migration_target_vault",
        "vault_name_override",
        "vault_detail_page_assets",
    ):
        value = getattr(override, name)
        if value is not None:
            changes[name] = value

    changes["hide_if_no_deposits"] = bool(metadata.emergency_shutdown or override.retired or override.migration_available)
    changes["migration_available"] = bool(metadata.migration_available or override.migration_available)

    return dataclasses.replace(dynamic, metadata=dataclasses.replace(metadata, **changes))


def fill_token_metadata_overrides(token: Token, metadata: TokenMetadata) -> Token:
    """Apply curated icon/symbol/name overrides on a listed token."""
    changes = {"metadata": metadata}
    if metadata.token_icon_override:
        changes["icon"] = metadata.token_icon_override
    if metadata.token_symbol_override:
        changes["symbol"] = metadata.token_symbol_override
    if metadata.token_name_override:
        changes["name"] = metadata.token_name_override
    return dataclasses.replace(token, **changes)


def merge_vault(
    static: VaultStatic,
    dynamic: VaultDynamic,
    override: MetadataOverride | None = None,
    strategies: StrategiesMetadata | None = None,
    historic_earnings: AssetHistoricEarnings | None = None,
) -> Vault:
    """Join one static and one dynamic record.

    - The on-chain vault name is used as display name only if the adapter did not supply one
    """
    assert is_same_address(static.address, dynamic.address), f"Static {static.address} and dynamic {dynamic.address} records are for different vaults"

    metadata = dataclasses.replace(
        dynamic.metadata,
        display_name=dynamic.metadata.display_name or static.name,
        strategies=strategies,
        historic_earnings=historic_earnings.day_data if historic_earnings else None,
    )
    dynamic = dataclasses.replace(dynamic, metadata=metadata)
    order = override.order if override else None
    return Vault.from_records(static, dynamic, order=order)


def merge_vaults(
    statics: Iterable[VaultStatic],
    dynamics: Iterable[VaultDynamic],
    overrides: Iterable[MetadataOverride] = (),
    strategies: Iterable[StrategiesMetadata] = (),
    historic_earnings: Iterable[AssetHistoricEarnings] = (),
) -> list[Vault]:
    """Join static and dynamic vault records to a sorted vault list.

    - Vaults with ``hide_always`` override are dropped
    - Output is sorted by override ``order``, vaults without order come last

    :raise AggregationConsistencyError:
        A static record has no dynamic counterpart
    """
    dynamic_by_address = AddressDict.index(dynamics)
    override_by_address = AddressDict.index(overrides)
    strategies_by_address = AddressDict.index(strategies, attr="vault_address")
    earnings_by_address = AddressDict.index(historic_earnings, attr="asset_address")

    vaults = []
    hidden = 0
    for static in statics:
        dynamic = dynamic_by_address.get(static.address)
        if dynamic is None:
            raise AggregationConsistencyError(f"Dynamic asset does not exist for {static.address}")

        override = override_by_address.get(static.address)
        if override and override.hide_always:
            hidden += 1
            continue

        vaults.append(
            merge_vault(
                static,
                dynamic,
                override=override,
                strategies=strategies_by_address.get(static.address),
                historic_earnings=earnings_by_address.get(static.address),
            )
        )

    logger.info("Merged %d vaults, %d hidden", len(vaults), hidden)

    # Python sort is stable, unordered vaults keep their adapter order
    return sorted(vaults, key=lambda v: UNORDERED if v.order is None else v.order)
