"""ERC-4626 vault registry adapter."""
