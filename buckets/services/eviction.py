from __future__ import annotations

from typing import Iterable


def plan_eviction(
    sizes: Iterable[int],
    *,
    count: int,
    total_size: int,
    incoming: int,
    max_buckets: int,
    max_storage_bytes: int,
) -> int:
    """Number of oldest entries to drop so that ``incoming`` bytes fit.

    ``sizes`` lists the stored entries oldest first. The caller guarantees
    ``incoming <= max_storage_bytes``.
    """
    del_count = 0
    del_size = 0
    sizes = iter(sizes)
    while total_size - del_size + incoming > max_storage_bytes:
        del_size += next(sizes)
        del_count += 1

    # Size pressure freed nothing but one more entry would break the count cap.
    if del_count == 0 and count >= max_buckets:
        del_count = 1
    return del_count
