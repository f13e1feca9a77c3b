"""
Adapters package for the Search Service.

HTTP client wrappers for the backing API and the catalog. Adapters take an
injected ``httpx.AsyncClient`` and map failures to shared errors; timeouts
belong to that client.
"""

from .api_client import ApiResponse, EarthdataApiClient
from .catalog_client import CatalogClient, prepare_search_params, to_snake_case

__all__ = [
    "ApiResponse",
    "CatalogClient",
    "EarthdataApiClient",
    "prepare_search_params",
    "to_snake_case",
]
