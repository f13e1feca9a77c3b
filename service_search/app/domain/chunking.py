"""
Bulk order chunking.

Order services accept a limited number of granules per order, so large
requests are split into several sub-orders.
"""

import math
from typing import Any, Mapping, Optional

DEFAULT_CHUNK_SIZE = 2000


def added_granule_ids(project_collection: Optional[Mapping[str, Any]]):
    return list((project_collection or {}).get("added_granule_ids") or [])


def chunk_count(
    project_collection: Optional[Mapping[str, Any]],
    collection_granule_hits: int,
    chunk_threshold: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Number of sub-orders needed to fulfil an order.

    Granules added one by one replace the collection hit count entirely.
    The result is never below 1.
    """
    if chunk_threshold <= 0:
        raise ValueError("chunk_threshold must be positive")

    added = added_granule_ids(project_collection)
    effective_count = len(added) if added else int(collection_granule_hits or 0)

    return max(1, math.ceil(effective_count / chunk_threshold))


def should_attach_order_count(
    project_collection: Optional[Mapping[str, Any]],
    collection_granule_hits: int,
    chunk_threshold: int = DEFAULT_CHUNK_SIZE,
) -> bool:
    """An order count matters once the order spans chunks or granules were picked by hand."""
    if added_granule_ids(project_collection):
        return True
    return int(collection_granule_hits or 0) > chunk_threshold
