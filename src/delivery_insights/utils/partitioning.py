from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def partition_by_key(items: Iterable[T], key: Callable[[T], int], partitions: int) -> List[List[T]]:
    """Split `items` into `partitions` lists by `key(item) % partitions`."""
    if partitions < 1:
        raise ValueError(f"partitions must be >= 1, got {partitions}")
    buckets: List[List[T]] = [[] for _ in range(partitions)]
    for item in items:
        buckets[key(item) % partitions].append(item)
    return buckets


def parallel_map(
    func: Callable[[T], R],
    partitions: Sequence[T],
    max_workers: Optional[int] = None,
) -> List[R]:
    """
    Apply `func` to every partition and return results in partition order.

    Each call owns its partition's output; results are only collected after
    every partition has finished.
    """
    if len(partitions) <= 1:
        return [func(p) for p in partitions]
    with ThreadPoolExecutor(max_workers=max_workers or len(partitions)) as pool:
        return list(pool.map(func, partitions))
