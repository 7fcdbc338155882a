"""Top-N ranking of aggregated rows."""

from collections.abc import Callable, Iterable
from operator import attrgetter
from typing import Any

_by_count = attrgetter("count")


def rank[T](
    rows: Iterable[T],
    limit: int,
    key: Callable[[T], Any] = _by_count,
) -> list[T]:
    """Return the ``limit`` largest rows by ``key``, descending.

    The sort is stable, so rows with equal keys keep their server order.
    """
    if limit <= 0:
        return []
    return sorted(rows, key=key, reverse=True)[:limit]
