"""Vault records, curated overrides and the merge logic between them."""
