"""Curated vault and token metadata overrides.

Overrides are maintained outside this package, keyed by address.
We only read and apply them.

Example override JSON entry as served by the metadata service:

.. code-block:: json

    {
        "address": "0xa258C4606Ca8206D8aA700cE2143D7db854D168c",
        "comment": "WETH yVault",
        "hideAlways": false,
        "depositsDisabled": false,
        "withdrawalsDisabled": false,
        "order": 1,
        "migrationAvailable": false,
        "allowZapIn": true,
        "allowZapOut": true,
        "retired": false
    }
"""

import dataclasses
import enum
import logging
from dataclasses import dataclass
from typing import Iterable

from eth_typing import HexAddress

from vault_router.address_dict import AddressDict


logger = logging.getLogger(__name__)


class ZapType(str, enum.Enum):
    """Which zap integration a vault can be zapped with."""

    zapper_zap_in = "zapperZapIn"
    zapper_zap_out = "zapperZapOut"
    ftm_ape_zap = "ftmApeZap"
    wido_zap_in = "widoZapIn"
    wido_zap_out = "widoZapOut"


#: camelCase JSON key -> dataclass field
_OVERRIDE_JSON_FIELDS = {
    "address": "address",
    "comment": "comment",
    "hideAlways": "hide_always",
    "order": "order",
    "displayName": "display_name",
    "vaultSymbolOverride": "vault_symbol_override",
    "vaultIconOverride": "vault_icon_override",
    "vaultNameOverride": "vault_name_override",
    "apyOverride": "apy_override",
    "apyTypeOverride": "apy_type_override",
    "depositsDisabled": "deposits_disabled",
    "withdrawalsDisabled": "withdrawals_disabled",
    "allowZapIn": "allow_zap_in",
    "allowZapOut": "allow_zap_out",
    "zapInWith": "zap_in_with",
    "zapOutWith": "zap_out_with",
    "migrationAvailable": "migration_available",
    "migrationContract": "migration_contract",
    "migrationTargetVault": "migration_target_vault",
    "retired": "retired",
    "vaultDetailPageAssets": "vault_detail_page_assets",
}


@dataclass(slots=True, frozen=True)
class MetadataOverride:
    """Curated overrides for a single vault.

    - Every field except the address is optional
    - ``None`` means "not set", the derived value is kept
    """

    address: HexAddress | str
    comment: str | None = None

    #: Never list this vault
    hide_always: bool | None = None

    #: Display order, lower first
    order: float | None = None

    display_name: str | None = None
    vault_symbol_override: str | None = None
    vault_icon_override: str | None = None
    vault_name_override: str | None = None
    apy_override: float | None = None
    apy_type_override: str | None = None
    deposits_disabled: bool | None = None
    withdrawals_disabled: bool | None = None
    allow_zap_in: bool | None = None
    allow_zap_out: bool | None = None
    zap_in_with: str | None = None
    zap_out_with: str | None = None
    migration_available: bool | None = None
    migration_contract: HexAddress | str | None = None
    migration_target_vault: HexAddress | str | None = None
    retired: bool | None = None
    vault_detail_page_assets: tuple[HexAddress | str, ...] | None = None

    @classmethod
    def from_json(cls, data: dict) -> "MetadataOverride":
        """Parse a metadata service JSON entry.

        - Unknown keys are ignored
        """
        assert "address" in data, f"Override entry without address: {data}"
        kwargs = {field: data[key] for key, field in _OVERRIDE_JSON_FIELDS.items() if key in data}
        if kwargs.get("vault_detail_page_assets") is not None:
            kwargs["vault_detail_page_assets"] = tuple(kwargs["vault_detail_page_assets"])
        return cls(**kwargs)


@dataclass(slots=True, frozen=True)
class TokenMetadata:
    """Curated overrides for a single token."""

    address: HexAddress | str
    description: str | None = None
    website: str | None = None
    token_icon_override: str | None = None
    token_symbol_override: str | None = None
    token_name_override: str | None = None

    @classmethod
    def from_json(cls, data: dict) -> "TokenMetadata":
        return cls(
            address=data["address"],
            description=data.get("description"),
            website=data.get("website"),
            token_icon_override=data.get("tokenIconOverride"),
            token_symbol_override=data.get("tokenSymbolOverride"),
            token_name_override=data.get("tokenNameOverride"),
        )


def merge_zap_props_with_addressables(
    addressables: Iterable[MetadataOverride],
    supported_vault_addresses: Iterable[HexAddress | str],
    zap_in_type: ZapType,
    zap_out_type: ZapType,
) -> list[MetadataOverride]:
    """Mark vaults supported by a zap integration as zappable.

    - Existing overrides for supported vaults get ``allow_zap_in``/``allow_zap_out`` and the zap types,
      all their other fields are kept
    - Supported vaults without an override get a new override entry
    - Overrides of unsupported vaults are returned as is

    :return:
        New list of overrides, input is not modified
    """
    supported = AddressDict({a: a for a in supported_vault_addresses})
    result = []
    for override in addressables:
        if override.address in supported:
            override = dataclasses.replace(
                override,
                allow_zap_in=True,
                allow_zap_out=True,
                zap_in_with=zap_in_type.value,
                zap_out_with=zap_out_type.value,
            )
            supported.pop(override.address)
        result.append(override)

    for address in supported.values():
        result.append(
            MetadataOverride(
                address=address,
                allow_zap_in=True,
                allow_zap_out=True,
                zap_in_with=zap_in_type.value,
                zap_out_with=zap_out_type.value,
            )
        )

    logger.debug("Zap support %s/%s applied, %d overrides total", zap_in_type.value, zap_out_type.value, len(result))
    return result
