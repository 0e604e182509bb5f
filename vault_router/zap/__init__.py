"""Zap quote service clients.

A zap swaps an arbitrary token to the vault's underlying token and deposits it
in the same transaction, or the reverse on withdraw.
The quote services build the transaction for us.
"""
