"""
Helpers for namespaced collection capability tags.
"""

from typing import Any, Mapping, Optional

TAG_PREFIX = "edsc.extra.serverless"
CWIC_TAG = "org.ceos.wgiss.cwic.granules.prod"

COLLECTION_CAPABILITIES = "collection_capabilities"
ECHO_ORDERS = "subset_service.echo_orders"
ESI = "subset_service.esi"
OPENDAP = "subset_service.opendap"
GIBS = "gibs"

ORDER_SERVICE_TAGS = (ECHO_ORDERS, ESI, OPENDAP)


def tag_name(tag: str, prefix: Optional[str] = TAG_PREFIX) -> str:
    """Return the fully qualified tag namespace."""
    return ".".join(part for part in (prefix, tag) if part)


def has_tag(collection: Mapping[str, Any], tag: str, prefix: Optional[str] = TAG_PREFIX) -> bool:
    tags = collection.get("tags") or {}
    return tag_name(tag, prefix) in tags


def get_value_for_tag(tags: Mapping[str, Any], tag: str, prefix: Optional[str] = TAG_PREFIX) -> Optional[Any]:
    """Return the ``data`` payload stored under a tag, if any."""
    value = (tags or {}).get(tag_name(tag, prefix))
    if not isinstance(value, Mapping):
        return None
    return value.get("data")


def is_cwic_collection(metadata: Mapping[str, Any]) -> bool:
    """CWIC collections have the CWIC tag and no granules of their own."""
    return has_tag(metadata, CWIC_TAG, prefix=None) and not metadata.get("has_granules")
