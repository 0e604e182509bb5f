"""Address keyed lookups.

Ethereum services mix lowercased and checksummed addresses.
Off-chain metadata (overrides, APY, icons) is keyed by whatever
casing the service felt like returning.
"""

from typing import Any, Iterable

from eth_typing import HexAddress


class AddressDict(dict):
    """A dictionary keyed by addresses, ignoring checksum casing.

    - All keys are stored lowercased
    - Lookups and membership tests lowercase the key first

    Example:

    .. code-block:: python

        apy = AddressDict({"0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2": 0.05})
        assert apy["0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"] == 0.05
    """

    def __init__(self, other=None, **kwargs):
        super().__init__()
        if other is not None:
            self.update(other)
        if kwargs:
            self.update(kwargs)

    @classmethod
    def index(cls, items: Iterable, attr: str = "address") -> "AddressDict":
        """Index a list of records by their address attribute.

        - If two records share an address, the first one wins
        """
        d = cls()
        for item in items:
            d.setdefault(getattr(item, attr), item)
        return d

    def __setitem__(self, key: HexAddress | str, value: Any):
        super().__setitem__(key.lower(), value)

    def __getitem__(self, key: HexAddress | str) -> Any:
        return super().__getitem__(key.lower())

    def __contains__(self, key) -> bool:
        if not isinstance(key, str):
            return False
        return super().__contains__(key.lower())

    def get(self, key: HexAddress | str, default=None):
        return super().get(key.lower(), default)

    def pop(self, key: HexAddress | str, *args):
        return super().pop(key.lower(), *args)

    def setdefault(self, key: HexAddress | str, default=None):
        return super().setdefault(key.lower(), default)

    def update(self, other=None, **kwargs):
        if other is not None:
            for k, v in other.items() if isinstance(other, dict) else other:
                self[k] = v
        for k, v in kwargs.items():
            self[k] = v
