"""
Collection search response handling.

The catalog answers collection searches in two shapes: the JSON feed
(``{"feed": {"entry": [...]}}``) and the UMM/API shape (``{"items": [...]}``).
The presence of ``items`` decides which one a payload is.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Union

from .tags import GIBS, has_tag, is_cwic_collection


@dataclass
class FeedPayload:
    data: Dict[str, Any]

    @property
    def entries(self) -> List[Dict[str, Any]]:
        return (self.data.get("feed") or {}).get("entry") or []


@dataclass
class ItemsPayload:
    data: Dict[str, Any]

    @property
    def entries(self) -> List[Dict[str, Any]]:
        return self.data.get("items") or []


CollectionPayload = Union[FeedPayload, ItemsPayload]


def parse_collection_payload(data: Dict[str, Any]) -> CollectionPayload:
    if "items" in data:
        return ItemsPayload(data)
    return FeedPayload(data)


@dataclass(frozen=True)
class ThumbnailSettings:
    cmr_host: str
    height: int = 85
    width: int = 85
    unavailable_url: str = "/images/image-unavailable.svg"


def transform_collection(collection: Dict[str, Any], thumbnails: ThumbnailSettings) -> Dict[str, Any]:
    """Derive the display flags for one collection entry, in place."""
    if collection.get("tags"):
        collection["is_cwic"] = is_cwic_collection(collection) and collection.get("has_granules") is False
        collection["has_map_imagery"] = has_tag(collection, GIBS)

    if collection.get("collection_data_type"):
        collection["is_nrt"] = collection["collection_data_type"] == "NEAR_REAL_TIME"

    collection_id = collection.get("id")
    if collection_id:
        if collection.get("browse_flag"):
            collection["thumbnail"] = (
                f"{thumbnails.cmr_host.rstrip('/')}/browse-scaler/browse_images/datasets/"
                f"{collection_id}?h={thumbnails.height}&w={thumbnails.width}"
            )
        else:
            collection["thumbnail"] = thumbnails.unavailable_url

    return collection


def transform_collection_response(data: Dict[str, Any], thumbnails: ThumbnailSettings) -> Dict[str, Any]:
    """Decorate every collection in a search response.

    Error payloads (a ``statusCode`` other than 200) are returned unaltered.
    """
    if data.get("statusCode", 200) != 200:
        return data

    payload = parse_collection_payload(data)
    for collection in payload.entries:
        if collection:
            transform_collection(collection, thumbnails)

    return data


def strip_grid_coordinates(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of collection search params without grid coordinates.

    Collection searches filter on the grid name only.
    """
    stripped = dict(params)
    grid = stripped.get("two_d_coordinate_system")
    if isinstance(grid, Mapping) and "coordinates" in grid:
        stripped["two_d_coordinate_system"] = {key: value for key, value in grid.items() if key != "coordinates"}
    return stripped
