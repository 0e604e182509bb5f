"""Vault, token and position records.

- Static vault records are the immutable identity of a vault, read once per snapshot
- Dynamic vault records are refreshed on each fetch and superseded, not mutated
- :py:class:`Vault` is the merged, display-ready presentation of both

All raw token amounts are integers in token units.
All USDC values are integers with 6 decimals.
"""

import datetime
from dataclasses import dataclass, field
from typing import Any

from eth_typing import HexAddress


@dataclass(slots=True, frozen=True)
class TokenAmount:
    """Raw amount of tokens and its USDC value."""

    #: Raw token units
    amount: int = 0

    #: USDC value, 6 decimals
    amount_usdc: int = 0


@dataclass(slots=True, frozen=True)
class ApyFees:
    """Fee breakdown attached to an APY record."""

    performance: float | None = None
    withdrawal: float | None = None
    management: float | None = None
    keep_crv: float | None = None
    cvx_keep_crv: float | None = None


@dataclass(slots=True, frozen=True)
class Apy:
    """Vault yield as reported by the APY service.

    ``type`` tells how the value was computed, e.g. ``"v2:averaged"``,
    or ``"override"`` when curated metadata forced a value.
    """

    type: str
    gross_apr: float
    net_apy: float
    fees: ApyFees = field(default_factory=ApyFees)
    points: dict | None = None
    composite: dict | None = None

    @classmethod
    def empty(cls) -> "Apy":
        """Placeholder used when an override touches a vault without APY data."""
        return cls(type="manual_override", gross_apr=0, net_apy=0)


@dataclass(slots=True, frozen=True)
class StrategyMetadata:
    """Human readable description of a single strategy."""

    address: HexAddress | str
    name: str
    description: str = ""
    protocols: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class StrategiesMetadata:
    """Strategies a vault currently allocates to."""

    vault_address: HexAddress | str
    strategies_metadata: tuple[StrategyMetadata, ...] = ()


@dataclass(slots=True, frozen=True)
class EarningsDayData:
    """One day of historic vault earnings."""

    date: datetime.date
    earnings: TokenAmount


@dataclass(slots=True, frozen=True)
class AssetHistoricEarnings:
    """Historic earnings of a vault."""

    asset_address: HexAddress | str
    day_data: tuple[EarningsDayData, ...] = ()


@dataclass(slots=True, frozen=True)
class VaultMetadata:
    """Metadata bag of a dynamic vault record.

    Partly read on-chain by the adapter, partly derived for display,
    partly copied from curated overrides.
    """

    symbol: str = ""
    price_per_share: int = 0
    migration_available: bool = False
    latest_vault_address: HexAddress | str | None = None
    deposit_limit: int = 0
    emergency_shutdown: bool = False
    total_assets: int = 0
    total_supply: int = 0

    display_name: str = ""
    display_icon: str = ""
    default_display_token: HexAddress | str | None = None
    hide_if_no_deposits: bool = False

    apy: Apy | None = None
    strategies: StrategiesMetadata | None = None
    historic_earnings: tuple[EarningsDayData, ...] | None = None

    deposits_disabled: bool | None = None
    withdrawals_disabled: bool | None = None
    allow_zap_in: bool | None = None
    allow_zap_out: bool | None = None
    zap_in_with: str | None = None
    zap_out_with: str | None = None
    migration_contract: HexAddress | str | None = None
    migration_target_vault: HexAddress | str | None = None
    vault_name_override: str | None = None
    vault_detail_page_assets: tuple[HexAddress | str, ...] | None = None


@dataclass(slots=True, frozen=True)
class VaultStatic:
    """Identity of a vault.

    Created once per chain snapshot, never mutated.
    """

    #: Vault contract address
    address: HexAddress | str

    #: Which adapter produced this record, e.g. ``"VAULT_V2"``
    type_id: str

    #: Underlying token address
    token: HexAddress | str

    name: str
    version: str
    symbol: str
    decimals: int


@dataclass(slots=True, frozen=True)
class VaultDynamic:
    """Refreshable state of a vault.

    One per vault per fetch cycle.
    Enrichment produces new records with :py:func:`dataclasses.replace`.
    """

    #: Vault contract address
    address: HexAddress | str

    type_id: str

    #: Underlying token address
    token_id: HexAddress | str

    #: Total assets held by the vault
    underlying_token_balance: TokenAmount

    metadata: VaultMetadata


@dataclass(slots=True, frozen=True)
class Vault:
    """Static and dynamic vault data merged for presentation."""

    address: HexAddress | str
    type_id: str
    token: HexAddress | str
    name: str
    version: str
    symbol: str
    decimals: int
    token_id: HexAddress | str
    underlying_token_balance: TokenAmount
    metadata: VaultMetadata

    #: Display order from curated overrides, ``None`` if not ordered
    order: float | None = None

    @classmethod
    def from_records(cls, static: VaultStatic, dynamic: VaultDynamic, order: float | None = None) -> "Vault":
        return cls(
            address=static.address,
            type_id=static.type_id,
            token=static.token,
            name=static.name,
            version=static.version,
            symbol=static.symbol,
            decimals=static.decimals,
            token_id=dynamic.token_id,
            underlying_token_balance=dynamic.underlying_token_balance,
            metadata=dynamic.metadata,
            order=order,
        )


@dataclass(slots=True, frozen=True)
class TokenAllowance:
    """How much a spender may move on behalf of an owner."""

    owner: HexAddress | str
    spender: HexAddress | str
    token: HexAddress | str
    amount: int


@dataclass(slots=True, frozen=True)
class Position:
    """Account holdings in a vault."""

    #: Vault address
    asset_address: HexAddress | str

    #: Underlying token address
    token_address: HexAddress | str

    type_id: str

    #: Share balance
    balance: TokenAmount

    #: Share balance converted to the underlying token
    underlying_token_balance: TokenAmount

    asset_allowances: tuple[TokenAllowance, ...] = ()
    token_allowances: tuple[TokenAllowance, ...] = ()


@dataclass(slots=True, frozen=True)
class TokenDetails:
    """ERC-20 details as read on-chain."""

    address: HexAddress | str
    name: str
    symbol: str
    decimals: int


@dataclass(slots=True, frozen=True)
class Token:
    """Token as listed to the users, with display metadata."""

    address: HexAddress | str
    name: str
    symbol: str
    decimals: int

    #: USDC price, 6 decimals
    price_usdc: int = 0

    icon: str | None = None

    #: Which listing this token came from, e.g. ``"vaults"``
    data_source: str = "vaults"

    #: Flags what the token is supported for, e.g. ``{"vaults": True}``
    supported: dict[str, bool] = field(default_factory=dict)

    metadata: Any = None


@dataclass(slots=True, frozen=True)
class Balance:
    """Account token balance."""

    address: HexAddress | str
    token: Token | TokenDetails
    balance: int
    balance_usdc: int = 0
    price_usdc: int = 0


@dataclass(slots=True, frozen=True)
class VaultInfo:
    """Vault properties read in one go."""

    name: str
    symbol: str
    api_version: str
    emergency_shutdown: bool
    last_report: datetime.datetime
    management_fee: int
    performance_fee: int
    total_assets: int
    deposit_limit: int
    debt_ratio: int
    management: HexAddress | str
    governance: HexAddress | str
    guardian: HexAddress | str
    rewards: HexAddress | str


@dataclass(slots=True, frozen=True)
class VaultUserMetadata:
    """Per-vault earnings data of an account."""

    asset_address: HexAddress | str
    earned: int = 0
    earned_usdc: int = 0


@dataclass(slots=True, frozen=True)
class VaultsUserSummary:
    """Account totals across all vaults."""

    #: USDC, 6 decimals
    earnings: int
    holdings: int
    estimated_yearly_yield: int

    gross_apy: float = 0.0


@dataclass(slots=True, frozen=True)
class AccountAssetsData:
    """What the earnings service knows about an account."""

    earnings: int
    holdings: int
    gross_apy: float
    estimated_yearly_yield: int
    earnings_asset_data: tuple[VaultUserMetadata, ...] = ()
