"""
Batch operations over the collections in a user's project.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from shared.errors import ExternalServiceError
from shared.logging import get_logger

from .granules import (
    GRANULE_PAGE_SIZE,
    build_granule_search_params,
    populate_granule_results,
    prepare_granule_params,
)
from .state import (
    UPDATE_COLLECTION_METADATA,
    UPDATE_PROJECT_GRANULES,
    Action,
    StateStore,
    update_auth_token_from_headers,
)

if TYPE_CHECKING:
    from ..adapters.catalog_client import CatalogClient
    from .access_methods import AccessMethodResolver

SIZE_UNITS = ["MB", "GB", "TB", "PB", "EB"]

PROJECT_INCLUDE_TAGS = "edsc.*,org.ceos.wgiss.cwic.granules.prod"


def convert_size(megabytes: float) -> Dict[str, str]:
    """Human readable size for an amount in megabytes."""
    size = float(megabytes or 0)
    unit = 0
    while size >= 1024 and unit < len(SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    return {"size": f"{size:.1f}", "unit": SIZE_UNITS[unit]}


def estimate_total_size(results: List[Mapping[str, Any]], hits: int) -> float:
    """Extrapolate the size of every hit from the average of one page."""
    if not results:
        return 0.0
    page_size = sum(float(granule.get("granule_size") or 0) for granule in results)
    return page_size / len(results) * hits


class ProjectService:
    """Loads metadata, granules and access methods for project collections."""

    def __init__(self, store: StateStore, catalog_client: CatalogClient,
                 access_method_resolver: Optional[AccessMethodResolver] = None,
                 granule_page_size: int = GRANULE_PAGE_SIZE):
        self.store = store
        self.catalog_client = catalog_client
        self.access_method_resolver = access_method_resolver
        self.granule_page_size = granule_page_size
        self.logger = get_logger("search.project")

    def _project_ids(self) -> List[str]:
        project = self.store.get_state().get("project") or {}
        return list(project.get("collection_ids") or [])

    async def get_project_granules(self) -> List[Optional[Dict[str, Any]]]:
        """Search the first granule page of every project collection.

        Collections without cached metadata are skipped. A failed search is
        logged and leaves that collection untouched.
        """
        return list(await asyncio.gather(*(
            self._project_granules(collection_id) for collection_id in self._project_ids()
        )))

    async def _project_granules(self, collection_id: str) -> Optional[Dict[str, Any]]:
        params = prepare_granule_params(self.store.get_state(), collection_id)
        if params is None:
            return None

        try:
            response = await self.catalog_client.search_granules(
                build_granule_search_params(params, self.granule_page_size),
                auth_token=params.auth_token,
                is_cwic=params.is_cwic_collection,
            )
        except ExternalServiceError as exc:
            self.logger.error(
                "Granule search failed",
                collection_id=collection_id,
                error=exc.message,
                upstream_status=exc.upstream_status
            )
            return None

        payload = populate_granule_results(
            collection_id, params.is_cwic_collection, response.data or {}, response.headers
        )
        payload["total_size"] = convert_size(estimate_total_size(payload["results"], payload["hits"]))

        token_action = update_auth_token_from_headers(response.headers)
        if token_action:
            self.store.dispatch(token_action)
        self.store.dispatch(Action(UPDATE_PROJECT_GRANULES, payload))

        return payload

    async def get_project_collections(self) -> Optional[List[Dict[str, Any]]]:
        """Load metadata for every project collection, then its granules and access methods."""
        project_ids = self._project_ids()
        if not project_ids:
            return None

        auth_token = self.store.get_state().get("auth_token")
        params = {
            "concept_id": project_ids,
            "include_tags": PROJECT_INCLUDE_TAGS,
            "page_size": len(project_ids),
        }

        try:
            collection_json, collection_umm = await asyncio.gather(
                self.catalog_client.search_collections(params, auth_token, ext="json"),
                self.catalog_client.search_collections(params, auth_token, ext="umm_json"),
            )
        except ExternalServiceError as exc:
            self.logger.error("Project collection search failed", error=exc.message,
                              upstream_status=exc.upstream_status)
            return None

        umm_by_id = {
            (item.get("meta") or {}).get("concept-id"): item.get("umm")
            for item in (collection_umm.data or {}).get("items") or []
        }

        payload = []
        for collection in ((collection_json.data or {}).get("feed") or {}).get("entry") or []:
            collection_id = collection.get("id")
            payload.append({
                collection_id: {
                    "metadata": collection,
                    "umm_metadata": umm_by_id.get(collection_id) or {},
                }
            })

        token_action = update_auth_token_from_headers(collection_json.headers)
        if token_action:
            self.store.dispatch(token_action)
        self.store.dispatch(Action(UPDATE_COLLECTION_METADATA, payload))

        self.logger.info("Loaded project collections", count=len(payload))

        await self.get_project_granules()
        if self.access_method_resolver is not None:
            await self.access_method_resolver.fetch_access_methods(project_ids)

        return payload
