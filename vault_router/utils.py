"""Bunch of random utilities."""

import logging
from itertools import islice
from typing import Any, Callable, Iterable

from eth_typing import HexAddress
from joblib import Parallel, delayed


logger = logging.getLogger(__name__)


def chunked(iterable, chunk_size):
    """Split an iterable to lists of at most ``chunk_size`` items."""
    assert chunk_size > 0, f"Bad chunk size: {chunk_size}"
    iterator = iter(iterable)  # Ensure we have an iterator
    while True:
        chunk = list(islice(iterator, chunk_size))
        if not chunk:  # Break if no more items
            break
        yield chunk


def is_same_address(a: HexAddress | str | None, b: HexAddress | str | None) -> bool:
    """Compare two addresses ignoring checksum casing.

    - ``None`` never matches anything
    """
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


def filter_by_addresses(items: list, addresses: Iterable[HexAddress | str] | None, attr: str = "address") -> list:
    """Keep items whose address attribute is in the filter.

    :param addresses:
        ``None`` means no filtering
    """
    if addresses is None:
        return items
    wanted = {a.lower() for a in addresses}
    return [i for i in items if getattr(i, attr).lower() in wanted]


def run_parallel(
    funcs: Iterable[Callable[[], Any]],
    max_workers: int = 8,
) -> list[Any]:
    """Fork-join a bunch of blocking callables using a thread pool.

    - Results are returned in the same order as the callables
    - Any exception raised by a callable is raised here

    :param max_workers:
        Upper bound for threads
    """
    funcs = list(funcs)
    if not funcs:
        return []
    n_jobs = max(1, min(max_workers, len(funcs)))
    return Parallel(n_jobs=n_jobs, backend="threading")(delayed(f)() for f in funcs)
