"""
Catalog URL construction for proxied search requests.
"""

import json
from typing import Iterable, Union

from shared.errors import RequestParseError
from shared.logging import get_logger

from .encoder import cmr_stringify
from .params import pick

logger = get_logger("search.request_builder")


def parse_request_params(body: Union[str, bytes, None]) -> dict:
    """Extract the ``params`` object from a JSON request body."""
    try:
        document = json.loads(body or "{}")
    except (TypeError, ValueError) as exc:
        raise RequestParseError(details={"error": str(exc)}) from exc

    if not isinstance(document, dict):
        raise RequestParseError("Request body must be a JSON object")

    params = document.get("params") or {}
    if not isinstance(params, dict):
        raise RequestParseError("Request params must be a JSON object")

    return params


def build_url(
    body: Union[str, bytes, None],
    path: str,
    permitted_keys: Iterable[str],
    non_indexed_keys: Iterable[str],
    cmr_host: str,
) -> str:
    """Build the catalog URL for a search request.

    Args:
        body: Raw JSON request body of the form ``{"params": {...}}``
        path: Catalog resource path, e.g. ``/search/collections.json``
        permitted_keys: Allow-list for the resource
        non_indexed_keys: Keys encoded without array indices
        cmr_host: Catalog base URL

    Raises:
        RequestParseError: If ``body`` is not a JSON object
    """
    params = parse_request_params(body)

    logger.info("Parameters received", keys=list(params.keys()))

    filtered = pick(params, permitted_keys)

    logger.info("Filtered parameters", keys=list(filtered.keys()))

    query = cmr_stringify(filtered, non_indexed_keys)
    url = f"{cmr_host.rstrip('/')}{path}?{query}"

    logger.info("CMR Query", url=url)

    return url
