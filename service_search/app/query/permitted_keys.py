"""
Per-resource allow-lists for catalog search parameters.
"""

from typing import List, Optional

COLLECTION_PERMITTED_KEYS = [
    "params",
    "bounding_box",
    "collection_data_type",
    "concept_id",
    "data_center_h",
    "format",
    "facets_size",
    "has_granules",
    "has_granules_or_cwic",
    "include_facets",
    "include_granule_counts",
    "include_has_granules",
    "include_tags",
    "instrument_h",
    "keyword",
    "line",
    "options",
    "page_num",
    "page_size",
    "platform_h",
    "point",
    "polygon",
    "processing_level_id_h",
    "project_h",
    "science_keywords_h",
    "sort_key",
    "tag_key",
    "temporal",
    "two_d_coordinate_system",
]

# Alternate metadata representations are only ever looked up by id
UMM_COLLECTION_PERMITTED_KEYS = [
    "concept_id",
]

COLLECTION_NON_INDEXED_KEYS = [
    "collection_data_type",
    "concept_id",
    "data_center_h",
    "instrument_h",
    "platform_h",
    "processing_level_id_h",
    "project_h",
    "sort_key",
    "tag_key",
]

GRANULE_PERMITTED_KEYS = [
    "bounding_box",
    "browse_only",
    "cloud_cover",
    "day_night_flag",
    "echo_collection_id",
    "equator_crossing_date",
    "equator_crossing_longitude",
    "exclude",
    "line",
    "online_only",
    "options",
    "orbit_number",
    "page_num",
    "page_size",
    "point",
    "polygon",
    "readable_granule_name",
    "sort_key",
    "temporal",
    "two_d_coordinate_system",
]

GRANULE_NON_INDEXED_KEYS = [
    "exclude",
    "readable_granule_name",
    "sort_key",
]


def collection_permitted_keys(ext: Optional[str] = None) -> List[str]:
    """Return the collection allow-list for a response format extension."""
    if ext == "umm_json":
        return list(UMM_COLLECTION_PERMITTED_KEYS)
    return list(COLLECTION_PERMITTED_KEYS)
