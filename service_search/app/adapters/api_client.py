"""
Client for the Earthdata Search backing API.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from shared.errors import ExternalServiceError
from shared.logging import get_logger


@dataclass
class ApiResponse:
    status_code: int
    data: Any
    headers: Dict[str, str] = field(default_factory=dict)


class EarthdataApiClient:
    """Client for provider and access method lookups on the backing API."""

    def __init__(self, api_host: str, http_client: httpx.AsyncClient):
        self.base_url = api_host.rstrip('/')
        self.http_client = http_client
        self.logger = get_logger("search.api_client")

    def _auth_headers(self, auth_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {auth_token}"}

    async def request(self, service: str, method: str, path: str, auth_token: Optional[str] = None,
                      **kwargs) -> ApiResponse:
        """Execute a request and map failures to ``ExternalServiceError``.

        ``path`` is relative to the API host unless it is an absolute URL.
        """
        url = path if path.startswith(("http://", "https://")) else f"{self.base_url}{path}"
        headers = kwargs.pop("headers", {})
        if auth_token:
            headers.update(self._auth_headers(auth_token))

        try:
            response = await self.http_client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            self.logger.error("Backing API unreachable", service=service, url=url, error=str(exc))
            raise ExternalServiceError(
                service=service,
                message=str(exc) or exc.__class__.__name__,
                details={"url": url}
            ) from exc

        if not response.is_success:
            self.logger.error(
                "Backing API request failed",
                service=service,
                url=url,
                status_code=response.status_code,
                response=response.text
            )
            raise ExternalServiceError(
                service=service,
                message=f"Unexpected status {response.status_code}",
                details={"status_code": response.status_code, "body": response.text}
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ExternalServiceError(
                service=service,
                message="Response body is not valid JSON",
                details={"status_code": response.status_code}
            ) from exc

        self.logger.debug("Backing API request succeeded", service=service, url=url)
        return ApiResponse(
            status_code=response.status_code,
            data=data,
            headers=dict(response.headers.items()),
        )

    async def fetch_providers(self, auth_token: str) -> ApiResponse:
        """List the providers the user can order from."""
        return await self.request("providers", "GET", "/providers", auth_token)

    async def fetch_access_methods(self, auth_token: str, params: Dict[str, Any]) -> ApiResponse:
        """Ask the API which access methods a collection supports."""
        return await self.request(
            "access_methods",
            "POST",
            "/access_methods",
            auth_token,
            json={"params": params},
        )
