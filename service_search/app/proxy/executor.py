"""
Authenticated catalog request execution.
"""

import json
import time
from typing import Dict, Optional

import httpx
from pydantic import BaseModel

from shared.errors import ConfigurationError, InvalidTokenError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..auth.bridge import (
    AuthBridge,
    ECHO_TOKEN_HEADER,
    EXPOSE_HEADERS_HEADER,
    SESSION_TOKEN_HEADER,
    prepare_expose_headers,
)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred while contacting CMR"


class ProxyResponse(BaseModel):
    """Normalized envelope returned for every proxied request."""

    status_code: int
    headers: Dict[str, str] = {}
    body: str = ""


class ProxyExecutor:
    """Issues catalog requests on behalf of an Earthdata Search session."""

    def __init__(
        self,
        auth_bridge: AuthBridge,
        http_client: httpx.AsyncClient,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.auth_bridge = auth_bridge
        self.http_client = http_client
        self.metrics = metrics
        self.logger = get_logger("search.proxy")

    async def execute(self, session_token: str, url: str, resource: str = "search") -> ProxyResponse:
        """Perform the catalog request and return the normalized envelope.

        Never raises: token failures become 401 envelopes, upstream errors keep
        their status and body, and transport failures become a 500.
        """
        start = time.time()
        result = await self._execute(session_token, url)

        if self.metrics is not None:
            self.metrics.record_catalog_request(resource, result.status_code, time.time() - start)

        return result

    async def _execute(self, session_token: str, url: str) -> ProxyResponse:
        try:
            credential = await self.auth_bridge.resolve(session_token)
        except InvalidTokenError as exc:
            self.logger.warning("Rejected catalog request", url=url, error=exc.message)
            return ProxyResponse(
                status_code=401,
                body=json.dumps({"errors": [exc.message]}),
            )
        except ConfigurationError as exc:
            self.logger.error("Catalog credentials unavailable", url=url, error=exc.message)
            return ProxyResponse(
                status_code=500,
                body=json.dumps({"error": UNEXPECTED_ERROR_MESSAGE}),
            )

        try:
            response = await self.http_client.get(
                url,
                headers={ECHO_TOKEN_HEADER: credential.header_value},
            )
        except httpx.HTTPError as exc:
            self.logger.error("Catalog request failed without a response", url=url, error=str(exc))
            return ProxyResponse(
                status_code=500,
                body=json.dumps({"error": UNEXPECTED_ERROR_MESSAGE}),
            )

        if not response.is_success:
            self.logger.error(
                "Catalog returned an error",
                url=url,
                status_code=response.status_code,
                response=response.text
            )
            return ProxyResponse(status_code=response.status_code, body=response.text)

        headers = dict(response.headers.items())
        headers[EXPOSE_HEADERS_HEADER] = prepare_expose_headers(headers)
        headers[SESSION_TOKEN_HEADER] = session_token

        return ProxyResponse(
            status_code=response.status_code,
            headers=headers,
            body=response.text,
        )
