"""
Catalog search client.

Signed-in users search through the backing API, which attaches their
catalog credentials; anonymous searches go straight to the catalog.
"""

import re
from typing import Any, Dict, Mapping, Optional

from ..domain.collections import ThumbnailSettings, strip_grid_coordinates, transform_collection_response
from ..query.encoder import cmr_stringify
from ..query.params import pick
from ..query.permitted_keys import (
    COLLECTION_NON_INDEXED_KEYS,
    GRANULE_NON_INDEXED_KEYS,
    GRANULE_PERMITTED_KEYS,
    collection_permitted_keys,
)
from .api_client import ApiResponse, EarthdataApiClient

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def prepare_search_params(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Snake-case keys recursively and drop unset values.

    ``None`` and ``""`` both mean "not set" in the search vocabulary.
    """
    prepared = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, Mapping):
            value = prepare_search_params(value)
        prepared[to_snake_case(key)] = value
    return prepared


class CatalogClient:
    """Collection and granule searches for one application session."""

    def __init__(self, api_client: EarthdataApiClient, cmr_host: str,
                 thumbnails: Optional[ThumbnailSettings] = None):
        self.api_client = api_client
        self.cmr_host = cmr_host.rstrip("/")
        self.thumbnails = thumbnails or ThumbnailSettings(cmr_host=self.cmr_host)

    async def search_collections(self, params: Mapping[str, Any], auth_token: Optional[str] = None,
                                 ext: str = "json") -> ApiResponse:
        search_params = strip_grid_coordinates(prepare_search_params(params))

        if auth_token:
            response = await self.api_client.request(
                "collections", "POST", f"/collections/{ext}", auth_token,
                json={"params": search_params},
            )
        else:
            query = cmr_stringify(pick(search_params, collection_permitted_keys(ext)), COLLECTION_NON_INDEXED_KEYS)
            response = await self._anonymous_search("collections", f"/search/collections.{ext}", query)

        if isinstance(response.data, dict):
            response.data = transform_collection_response(response.data, self.thumbnails)
        return response

    async def search_granules(self, params: Mapping[str, Any], auth_token: Optional[str] = None,
                              is_cwic: bool = False) -> ApiResponse:
        search_params = prepare_search_params(params)

        if is_cwic:
            return await self.api_client.request(
                "cwic_granules", "POST", "/cwic/granules", auth_token,
                json={"params": search_params},
            )

        if auth_token:
            return await self.api_client.request(
                "granules", "POST", "/granules", auth_token,
                json={"params": search_params},
            )

        query = cmr_stringify(pick(search_params, GRANULE_PERMITTED_KEYS), GRANULE_NON_INDEXED_KEYS)
        return await self._anonymous_search("granules", "/search/granules.json", query)

    async def _anonymous_search(self, service: str, path: str, query: str) -> ApiResponse:
        url = f"{self.cmr_host}{path}"
        if query:
            url = f"{url}?{query}"
        return await self.api_client.request(service, "GET", url)
