"""Exceptions raised by the aggregation and routing engine.

- Enrichment class errors are recovered where they happen and turned to empty results
- Everything else propagates to the caller
"""


class VaultRouterError(Exception):
    """Base class for all errors raised by this package."""


class AggregationConsistencyError(VaultRouterError):
    """A static vault record has no matching dynamic record.

    The static and dynamic fetches diverged mid-flight. Aborts the listing.
    """


class EnrichmentUnavailable(VaultRouterError):
    """Non-critical lookup failed.

    APY batch, strategies metadata, historic earnings or metadata overrides.
    Recovered as an empty result.
    """


class BulkQueryTooLarge(VaultRouterError):
    """Adapter's unchunked multi-address query failed.

    Recovered by re-issuing the query in fixed-size chunks.
    """


class UnknownVaultError(VaultRouterError):
    """None of the registry adapters know this vault address."""


class RouteConfigurationError(VaultRouterError):
    """A downstream contract address the route needs is not configured."""


class MissingSlippageError(VaultRouterError):
    """Zap deposit or withdraw requested without a slippage tolerance."""


class AllowListViolation(VaultRouterError):
    """Allow-list rejected the transaction destination or calldata."""


class TransactionSendError(VaultRouterError):
    """Sending a transaction failed.

    The underlying provider or signer exception is chained as ``__cause__``.
    """

    def __init__(self, msg: str, code: int | None = None):
        super().__init__(msg)

        #: JSON-RPC error code if the node gave one
        self.code = code


class NodeCompatibilityError(TransactionSendError):
    """The node rejected the gas parameters we sent.

    Raised when the retry with legacy gas pricing fails with the same error code.
    """
