"""
Search proxy service for the Earthdata Search Access Layer.

Forwards collection and granule searches to the catalog with the caller's
Earthdata credentials attached.
"""

from typing import Dict, Optional

import httpx
from fastapi import Request, Response

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import AuthenticationError

from .adapters import CatalogClient, EarthdataApiClient
from .auth import AuthBridge, CredentialsProvider, EnvironmentCredentialsProvider
from .domain import AccessMethodResolver, ProjectService, StateStore
from .domain.collections import ThumbnailSettings
from .proxy import ProxyExecutor, ProxyResponse
from .query import build_url
from .query.permitted_keys import (
    COLLECTION_NON_INDEXED_KEYS,
    GRANULE_NON_INDEXED_KEYS,
    GRANULE_PERMITTED_KEYS,
    collection_permitted_keys,
)

SERVICE_NAME = "search"
SERVICE_PORT = 3002

# Describe the upstream encoding, not the decoded body we send
HOP_BY_HOP_HEADERS = {"connection", "content-encoding", "content-length", "transfer-encoding"}


def _to_response(result: ProxyResponse) -> Response:
    headers = {
        key: value for key, value in result.headers.items()
        if key.lower() not in HOP_BY_HOP_HEADERS
    }
    media_type = headers.pop("content-type", "application/json")
    return Response(
        content=result.body,
        status_code=result.status_code,
        headers=headers,
        media_type=media_type,
    )


def _session_token(request: Request) -> str:
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Missing bearer token")
    return token.strip()


class SearchService(BaseService):
    """Search proxy service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        credentials_provider: Optional[CredentialsProvider] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)
        self.http_client = http_client or httpx.AsyncClient(timeout=self.config.http_timeout)
        self.auth_bridge = AuthBridge(credentials_provider or EnvironmentCredentialsProvider(self.config))
        self.executor = ProxyExecutor(self.auth_bridge, self.http_client, self.metrics)

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.http_client.aclose()

        self._setup_search_routes()

    def project_service(self, store: StateStore) -> ProjectService:
        """Project operations for one application session, configured from settings."""
        api_client = EarthdataApiClient(self.config.api_host, self.http_client)
        thumbnails = ThumbnailSettings(
            cmr_host=self.config.cmr_host,
            height=self.config.thumbnail_height,
            width=self.config.thumbnail_width,
            unavailable_url=self.config.thumbnail_unavailable_url,
        )
        return ProjectService(
            store,
            CatalogClient(api_client, self.config.cmr_host, thumbnails),
            AccessMethodResolver(store, api_client, chunk_size=self.config.order_chunk_size),
            granule_page_size=self.config.granule_page_size,
        )

    async def _check_dependencies(self) -> Dict[str, str]:
        # Raises ConfigurationError while credentials are unavailable
        await self.auth_bridge.secrets()
        return {"credentials": "ok"}

    async def _proxy(self, request: Request, path: str, permitted_keys, non_indexed_keys,
                     resource: str) -> Response:
        session_token = _session_token(request)
        body = await request.body()

        url = build_url(body, path, permitted_keys, non_indexed_keys, self.config.cmr_host)
        result = await self.executor.execute(session_token, url, resource=resource)

        return _to_response(result)

    def _setup_search_routes(self):
        """Set up search proxy routes."""

        @self.app.post("/collections")
        async def search_collections(request: Request):
            """Proxy a JSON collection search."""
            return await self._proxy(
                request,
                "/search/collections.json",
                collection_permitted_keys("json"),
                COLLECTION_NON_INDEXED_KEYS,
                "collections",
            )

        @self.app.post("/collections/{ext}")
        async def search_collections_format(ext: str, request: Request):
            """Proxy a collection search in the requested format."""
            return await self._proxy(
                request,
                f"/search/collections.{ext}",
                collection_permitted_keys(ext),
                COLLECTION_NON_INDEXED_KEYS,
                "collections",
            )

        @self.app.post("/granules")
        async def search_granules(request: Request):
            """Proxy a granule search."""
            return await self._proxy(
                request,
                "/search/granules.json",
                GRANULE_PERMITTED_KEYS,
                GRANULE_NON_INDEXED_KEYS,
                "granules",
            )


def create_app(
    config: Optional[ServiceConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    credentials_provider: Optional[CredentialsProvider] = None,
):
    """Create FastAPI application."""
    service = SearchService(config or get_config(SERVICE_NAME, SERVICE_PORT), http_client, credentials_provider)
    return service.app


if __name__ == "__main__":
    service = SearchService()
    service.run()
