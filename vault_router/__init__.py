"""vault_router package root.

Aggregate vault state from registry adapters and route deposit/withdraw
transactions to the correct execution path.

- See :py:class:`vault_router.vaults.VaultService` to get started
"""
