"""
Granule search parameter translation and result helpers.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from .encoders import encode_grid_coords, encode_temporal
from .tags import is_cwic_collection

GRANULE_PAGE_SIZE = 20
GRANULE_SORT_KEY = "-start_date"

CMR_METADATA_URL = "https://cmr.earthdata.nasa.gov/search/concepts"

METADATA_URL_TYPES = [
    ("atom", "ATOM"),
    ("echo10", "ECHO 10"),
    ("iso19115", "ISO 19115"),
    ("native", "Native"),
    ("umm_json", "UMM-G"),
]


@dataclass(frozen=True)
class GranuleQueryParams:
    """Snapshot of everything a granule search needs for one collection."""

    auth_token: Optional[str]
    bounding_box: Any
    collection_id: str
    grid_name: str
    grid_coords: str
    is_cwic_collection: bool
    page_num: Optional[int]
    point: Any
    polygon: Any
    temporal_string: Optional[str]


def get_collection_entry(collection_id: str, collections: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
    """Return the cached metadata entry for a collection, if loaded."""
    by_id = (collections or {}).get("by_id") or {}
    return by_id.get(collection_id)


def prepare_granule_params(state: Mapping[str, Any], collection_id: Optional[str] = None) -> Optional[GranuleQueryParams]:
    """Prepare granule search parameters for a collection.

    Args:
        state: Application state snapshot
        collection_id: Project collection id; defaults to the focused collection

    Returns:
        ``None`` when no collection id resolves or its metadata is not cached,
        so the caller skips the search.
    """
    collection_id = collection_id or state.get("focused_collection")
    if not collection_id:
        return None

    collections = (state.get("metadata") or {}).get("collections")
    entry = get_collection_entry(collection_id, collections)
    collection_metadata = (entry or {}).get("metadata")
    if not collection_metadata:
        return None

    query = state.get("query") or {}
    collection_query = query.get("collection") or {}
    granule_query = query.get("granule") or {}

    spatial = collection_query.get("spatial") or {}
    temporal = collection_query.get("temporal") or {}
    override_temporal = collection_query.get("override_temporal") or {}

    if override_temporal.get("start_date") and override_temporal.get("end_date"):
        temporal_string = encode_temporal(override_temporal)
    else:
        temporal_string = encode_temporal(temporal)

    return GranuleQueryParams(
        auth_token=state.get("auth_token"),
        bounding_box=spatial.get("bounding_box"),
        collection_id=collection_id,
        grid_name=collection_query.get("grid_name") or "",
        grid_coords=encode_grid_coords(granule_query.get("grid_coords")),
        is_cwic_collection=is_cwic_collection(collection_metadata),
        page_num=granule_query.get("page_num"),
        point=spatial.get("point"),
        polygon=spatial.get("polygon"),
        temporal_string=temporal_string,
    )


def build_granule_search_params(params: GranuleQueryParams, page_size: int = GRANULE_PAGE_SIZE) -> Dict[str, Any]:
    """Rename prepared parameters to the catalog's granule search vocabulary."""
    two_d_coordinate_system: Union[str, Dict[str, str]] = ""

    if params.grid_name:
        two_d_coordinate_system = {"name": params.grid_name}
        if params.grid_coords:
            two_d_coordinate_system["coordinates"] = params.grid_coords

    return {
        "boundingBox": params.bounding_box,
        "echoCollectionId": params.collection_id,
        "pageNum": params.page_num,
        "pageSize": page_size,
        "point": params.point,
        "polygon": params.polygon,
        "sortKey": GRANULE_SORT_KEY,
        "temporal": params.temporal_string,
        "twoDCoordinateSystem": two_d_coordinate_system,
    }


def populate_granule_results(collection_id: str, is_cwic: bool, data: Mapping[str, Any],
                             headers: Mapping[str, str]) -> Dict[str, Any]:
    """Build the project granules payload from a search response."""
    feed = data.get("feed") or {}

    if is_cwic:
        hits = int(feed.get("hits") or 0)
    else:
        hits = int(headers.get("cmr-hits") or 0)

    return {
        "collection_id": collection_id,
        "results": list(feed.get("entry") or []),
        "is_cwic": is_cwic,
        "hits": hits,
    }


def create_echo10_metadata_urls(granule_id: str) -> Dict[str, Dict[str, str]]:
    """Metadata URLs for each representation of a granule."""
    urls = {}
    for ext, title in METADATA_URL_TYPES:
        # 'native' is served without an extension
        suffix = "" if ext == "native" else f".{ext}"
        urls[ext] = {
            "title": title,
            "href": f"{CMR_METADATA_URL}/{granule_id}{suffix}",
        }
    return urls


def is_data_link(link: Mapping[str, Any], link_type: str) -> bool:
    """A data link points at data and is not inherited from the collection."""
    return (
        link_type in link.get("href", "")
        and "/data#" in link.get("rel", "")
        and link.get("inherited", False) is not True
    )


def _filename(href: str) -> str:
    return href[href.rfind("/") + 1:]


def create_data_links(links: Optional[List[Mapping[str, Any]]] = None) -> List[Mapping[str, Any]]:
    """Data links for a granule, preferring http over ftp for the same file."""
    links = links or []

    http_links = [link for link in links if is_data_link(link, "http")]
    http_filenames = {_filename(link["href"]).replace(".html", "") for link in http_links}

    ftp_links = [
        link for link in links
        if is_data_link(link, "ftp") and _filename(link["href"]) not in http_filenames
    ]

    return http_links + ftp_links


def get_download_urls(granules: List[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """First non-inherited data link of each granule."""
    urls = []
    for granule in granules:
        for link in granule.get("links") or []:
            if "/data#" in link.get("rel", "") and not link.get("inherited"):
                urls.append(link)
                break
    return urls
