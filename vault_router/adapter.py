"""Fan-out over registry adapters.

Each registry adapter (v1 vaults, v2 vaults, ERC-4626 vaults, ...) owns a disjoint set of vaults.
:py:class:`AdapterAggregator` queries all of them in parallel and flattens the results.

- Bulk multi-address queries may fail on large address sets, e.g. because of node call size limits.
  Failed dynamic and position queries are re-issued in chunks of :py:data:`DEFAULT_CHUNK_SIZE` addresses.
- Dynamic records are enriched with APY, display fields and curated overrides.
  A failed APY lookup leaves the APY empty instead of failing the listing.
"""

import logging
from functools import partial
from typing import Callable, Iterable, Protocol

from eth_typing import HexAddress

from vault_router.address_dict import AddressDict
from vault_router.chain import is_ethereum, is_fantom
from vault_router.errors import BulkQueryTooLarge
from vault_router.utils import chunked, run_parallel
from vault_router.vault.base import Apy, Position, VaultDynamic, VaultStatic
from vault_router.vault.merge import AssetLookup, derive_display_metadata, fill_metadata_overrides
from vault_router.vault.override import MetadataOverride, ZapType, merge_zap_props_with_addressables


logger = logging.getLogger(__name__)


#: How many addresses go to a single adapter call when the unchunked call failed
DEFAULT_CHUNK_SIZE = 30


class RegistryAdapter(Protocol):
    """Vault registry adapter interface.

    - ``addresses=None`` means all vaults the adapter knows
    """

    def assets_static(self, addresses: list[HexAddress | str] | None = None) -> list[VaultStatic]:
        """Static records of vaults."""

    def assets_dynamic(self, addresses: list[HexAddress | str] | None = None) -> list[VaultDynamic]:
        """Dynamic records of vaults."""

    def positions_of(self, account: HexAddress | str, addresses: list[HexAddress | str] | None = None) -> list[Position]:
        """Account positions in vaults."""

    def tokens(self) -> list[HexAddress | str]:
        """Underlying token addresses of all vaults."""


class ApySource(Protocol):
    """Batch APY lookup."""

    def apy(self, addresses: list[HexAddress | str]) -> dict[HexAddress | str, Apy]:
        """APY per vault address. Vaults without data are missing from the result."""


class ZapSupportSource(Protocol):
    """Which vaults a zap integration supports."""

    def supported_vault_addresses(self) -> list[HexAddress | str]:
        """Vault addresses the zap integration can zap in and out of."""


class AdapterAggregator:
    """Query all registry adapters and flatten the results.

    Example:

    .. code-block:: python

        aggregator = AdapterAggregator(
            chain_id=1,
            adapters=[v1_adapter, v2_adapter],
            assets=asset_service,
            apy_source=vision,
            zap_support=zapper,
        )
        statics = aggregator.list_static()
        dynamics = aggregator.list_dynamic(overrides=overrides)
    """

    def __init__(
        self,
        chain_id: int,
        adapters: Iterable[RegistryAdapter],
        assets: AssetLookup,
        apy_source: ApySource | None = None,
        zap_support: ZapSupportSource | None = None,
        ftm_ape_zappable_vaults: Iterable[HexAddress | str] = (),
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_workers: int = 8,
    ):
        """
        :param adapters:
            Registered adapters, each with its own vault universe

        :param zap_support:
            Zapper supported vault list, used on Ethereum

        :param ftm_ape_zappable_vaults:
            Vaults marked as ape-zappable on Fantom
        """
        self.chain_id = chain_id
        self.adapters = list(adapters)
        self.assets = assets
        self.apy_source = apy_source
        self.zap_support = zap_support
        self.ftm_ape_zappable_vaults = list(ftm_ape_zappable_vaults)
        self.chunk_size = chunk_size
        self.max_workers = max_workers

        assert self.adapters, "No registry adapters given"

    def __repr__(self):
        return f"<AdapterAggregator chain:{self.chain_id} adapters:{len(self.adapters)}>"

    def _fan_out(self, func: Callable[[RegistryAdapter], list]) -> list:
        results = run_parallel([partial(func, a) for a in self.adapters], max_workers=self.max_workers)
        return [item for adapter_result in results for item in adapter_result]

    def _query_unchunked(self, adapter: RegistryAdapter, query: Callable[[list | None], list], addresses: list | None, label: str) -> list:
        try:
            return query(addresses)
        except Exception as e:
            count = len(addresses) if addresses is not None else "all"
            raise BulkQueryTooLarge(f"{label} failed for {count} addresses on {adapter}") from e

    def _query_with_chunked_fallback(
        self,
        adapter: RegistryAdapter,
        query: Callable[[list | None], list],
        addresses: list | None,
        label: str,
    ) -> list:
        """Run a multi-address adapter query, falling back to chunked queries on failure.

        - The unchunked query is always tried first
        - If a chunked query fails, its exception propagates
        """
        try:
            return self._query_unchunked(adapter, query, addresses, label)
        except BulkQueryTooLarge as e:
            if addresses is None:
                addresses = [s.address for s in adapter.assets_static(None)]
            chunks = list(chunked(addresses, self.chunk_size))
            logger.warning("%s: %s, re-issuing as %d chunks of max %d addresses", e, e.__cause__, len(chunks), self.chunk_size)
            results = run_parallel([partial(query, c) for c in chunks], max_workers=self.max_workers)
            return [item for chunk_result in results for item in chunk_result]

    def list_static(self, addresses: list[HexAddress | str] | None = None) -> list[VaultStatic]:
        """Static records of all vaults across adapters.

        :param addresses:
            Filter, if not provided all vaults are returned
        """
        return self._fan_out(lambda adapter: adapter.assets_static(addresses))

    def augment_zap_overrides(self, overrides: Iterable[MetadataOverride]) -> list[MetadataOverride]:
        """Mark vaults supported by the chain zap integration as zappable.

        - On Ethereum, vaults on the Zapper supported vault list
        - On Fantom, the configured ape-zappable vaults
        """
        overrides = list(overrides)

        if is_ethereum(self.chain_id) and self.zap_support is not None:
            try:
                supported = self.zap_support.supported_vault_addresses()
            except Exception as e:
                logger.warning("Zap supported vault list unavailable, zap flags not updated: %s", e)
            else:
                overrides = merge_zap_props_with_addressables(overrides, supported, ZapType.zapper_zap_in, ZapType.zapper_zap_out)

        if is_fantom(self.chain_id) and self.ftm_ape_zappable_vaults:
            overrides = merge_zap_props_with_addressables(overrides, self.ftm_ape_zappable_vaults, ZapType.ftm_ape_zap, ZapType.ftm_ape_zap)

        return overrides

    def fetch_apy(self, addresses: list[HexAddress | str]) -> AddressDict:
        """Batch APY lookup.

        :return:
            Empty dict if the lookup failed
        """
        if self.apy_source is None or not addresses:
            return AddressDict()
        try:
            return AddressDict(self.apy_source.apy(addresses))
        except Exception as e:
            logger.warning("APY unavailable for %d vaults: %s", len(addresses), e)
            return AddressDict()

    def enrich_dynamic(self, records: list[VaultDynamic], overrides: AddressDict) -> list[VaultDynamic]:
        """Add APY, derived display fields and curated overrides to dynamic records."""
        apy_by_address = self.fetch_apy([r.address for r in records])
        enriched = []
        for record in records:
            record = derive_display_metadata(record, self.chain_id, self.assets, apy=apy_by_address.get(record.address))
            override = overrides.get(record.address)
            if override is not None:
                record = fill_metadata_overrides(record, override)
            enriched.append(record)
        return enriched

    def list_dynamic(
        self,
        addresses: list[HexAddress | str] | None = None,
        overrides: Iterable[MetadataOverride] = (),
    ) -> list[VaultDynamic]:
        """Enriched dynamic records of all vaults across adapters.

        :param addresses:
            Filter, if not provided all vaults are returned

        :param overrides:
            Curated overrides to apply
        """
        override_by_address = AddressDict.index(self.augment_zap_overrides(overrides))

        def _query_adapter(adapter: RegistryAdapter) -> list[VaultDynamic]:
            records = self._query_with_chunked_fallback(adapter, adapter.assets_dynamic, addresses, "assets_dynamic")
            return self.enrich_dynamic(records, override_by_address)

        return self._fan_out(_query_adapter)

    def positions_of(self, account: HexAddress | str, addresses: list[HexAddress | str] | None = None) -> list[Position]:
        """Account positions across adapters.

        :param addresses:
            Filter, if not provided all positions are returned
        """

        def _query_adapter(adapter: RegistryAdapter) -> list[Position]:
            return self._query_with_chunked_fallback(adapter, partial(adapter.positions_of, account), addresses, "positions_of")

        return self._fan_out(_query_adapter)

    def list_token_addresses(self) -> list[list[HexAddress | str]]:
        """Underlying token addresses, one list per adapter."""
        return run_parallel([a.tokens for a in self.adapters], max_workers=self.max_workers)
