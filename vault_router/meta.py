"""Curated vault and token metadata.

Yearn publishes hand-maintained display overrides as JSON, keyed by chain:

- ``{meta_url}/vaults/{chain_id}/all``
- ``{meta_url}/tokens/{chain_id}/all``

Metadata is enrichment: callers treat :py:class:`EnrichmentUnavailable` as "no overrides".
"""

import datetime
import logging
from pprint import pformat
from typing import Protocol

import requests
from eth_typing import HexAddress

from vault_router.config import DEFAULT_META_URL
from vault_router.errors import EnrichmentUnavailable
from vault_router.utils import filter_by_addresses
from vault_router.vault.override import MetadataOverride, TokenMetadata


logger = logging.getLogger(__name__)


class MetadataSource(Protocol):
    """Curated override lookup."""

    def vaults_metadata(self, addresses: list[HexAddress | str] | None = None) -> list[MetadataOverride]:
        """Vault overrides.

        :param addresses:
            Filter, if not provided all overrides are returned

        :raise EnrichmentUnavailable:
            Source not reachable
        """

    def tokens_metadata(self, addresses: list[HexAddress | str] | None = None) -> list[TokenMetadata]:
        """Token overrides.

        :raise EnrichmentUnavailable:
            Source not reachable
        """


class MetaService:
    """Read curated metadata over HTTP."""

    def __init__(
        self,
        chain_id: int,
        meta_url: str = DEFAULT_META_URL,
        api_timeout: datetime.timedelta = datetime.timedelta(seconds=10),
    ):
        self.chain_id = chain_id
        self.meta_url = meta_url.rstrip("/")
        self.api_timeout = api_timeout

    def __repr__(self):
        return f"<MetaService chain:{self.chain_id} {self.meta_url}>"

    def _fetch_all(self, kind: str) -> list[dict]:
        final_url = f"{self.meta_url}/{kind}/{self.chain_id}/all"
        logger.debug("Fetching metadata: %s", final_url)

        try:
            response = requests.get(final_url, timeout=self.api_timeout.total_seconds())
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise EnrichmentUnavailable(f"Could not read {kind} metadata from {final_url}: {e}") from e

        if type(data) != list:
            raise EnrichmentUnavailable(f"Unexpected {kind} metadata payload from {final_url}: {pformat(data)[0:500]}")

        logger.info("Read %d %s metadata entries for chain %d", len(data), kind, self.chain_id)
        return data

    def vaults_metadata(self, addresses: list[HexAddress | str] | None = None) -> list[MetadataOverride]:
        overrides = [MetadataOverride.from_json(entry) for entry in self._fetch_all("vaults") if entry.get("address")]
        return filter_by_addresses(overrides, addresses)

    def tokens_metadata(self, addresses: list[HexAddress | str] | None = None) -> list[TokenMetadata]:
        tokens = [TokenMetadata.from_json(entry) for entry in self._fetch_all("tokens") if entry.get("address")]
        return filter_by_addresses(tokens, addresses)
