"""
Access method resolution for project collections.

An access method is a way for a user to obtain a collection's data: direct
download, or one of the provider order services (ECHO orders, ESI, OPeNDAP).
Capability tags on the collection metadata decide which methods can exist;
the backing API returns the concrete method definitions.

Default selection, in priority order:

1. the ``selectedAccessMethod`` returned by the API;
2. the only method, when exactly one is returned (a lone ``download`` is
   marked valid);
3. nothing; the user picks among several methods.

An order count is attached when exactly one order method exists and either
the API selected it, the hit count spans more than one chunk, or granules
were added to the project one by one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Annotated,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Literal,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from shared.errors import ExternalServiceError
from shared.logging import get_logger

from .chunking import DEFAULT_CHUNK_SIZE, chunk_count, should_attach_order_count
from .state import (
    ADD_ACCESS_METHODS,
    SET_PROVIDERS,
    Action,
    StateStore,
    add_error,
    update_auth_token_from_headers,
)
from .tags import COLLECTION_CAPABILITIES, ORDER_SERVICE_TAGS, get_value_for_tag, tag_name

if TYPE_CHECKING:
    from ..adapters.api_client import EarthdataApiClient

PROVIDERS_ERROR_TITLE = "Error retrieving providers"
ACCESS_METHODS_ERROR_TITLE = "Error retrieving access methods"


class AccessMethodType(str, Enum):
    DOWNLOAD = "download"
    ECHO_ORDER = "ECHO ORDERS"
    ESI = "ESI"
    OPENDAP = "OPeNDAP"


class OptionDefinition(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str


ORDER_METHOD_TYPES = frozenset({
    AccessMethodType.ECHO_ORDER.value,
    AccessMethodType.ESI.value,
    AccessMethodType.OPENDAP.value,
})

KNOWN_METHOD_TYPES = frozenset(member.value for member in AccessMethodType)

# Discriminator tag for method types this module has no model for
OTHER_METHOD_TAG = "other"


class _AccessMethodBase(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @property
    def is_order_method(self) -> bool:
        return self.type in ORDER_METHOD_TYPES

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DownloadMethod(_AccessMethodBase):
    type: Literal["download"] = "download"
    is_valid: bool = Field(default=True, alias="isValid")


class EchoOrderMethod(_AccessMethodBase):
    type: Literal["ECHO ORDERS"]
    id: str
    url: Optional[str] = None
    option_definition: OptionDefinition
    form: Optional[Any] = None


class EsiMethod(_AccessMethodBase):
    type: Literal["ESI"]
    id: str
    url: Optional[str] = None
    service_option_definition: Optional[OptionDefinition] = None
    form: Optional[Any] = None


class OpendapMethod(_AccessMethodBase):
    type: Literal["OPeNDAP"]
    id: Optional[str] = None
    variables: Optional[Any] = None


class GenericMethod(_AccessMethodBase):
    """A method type added by a provider after this module was written.

    Kept as returned so the user can still choose it; never counted as an
    order method.
    """

    type: str


def _method_tag(value: Any) -> str:
    if isinstance(value, Mapping):
        method_type = value.get("type")
    else:
        method_type = getattr(value, "type", None)

    if isinstance(method_type, str) and method_type in KNOWN_METHOD_TYPES:
        return method_type
    return OTHER_METHOD_TAG


AccessMethod = Annotated[
    Union[
        Annotated[DownloadMethod, Tag(AccessMethodType.DOWNLOAD.value)],
        Annotated[EchoOrderMethod, Tag(AccessMethodType.ECHO_ORDER.value)],
        Annotated[EsiMethod, Tag(AccessMethodType.ESI.value)],
        Annotated[OpendapMethod, Tag(AccessMethodType.OPENDAP.value)],
        Annotated[GenericMethod, Tag(OTHER_METHOD_TAG)],
    ],
    Discriminator(_method_tag),
]

_access_method_adapter = TypeAdapter(AccessMethod)


def parse_access_method(payload: Mapping[str, Any]) -> AccessMethod:
    """Parse one method definition returned by the backing API."""
    return _access_method_adapter.validate_python(dict(payload))


@dataclass
class AccessMethodsResult:
    collection_id: str
    methods: Dict[str, AccessMethod]
    selected_access_method: Optional[str] = None
    order_count: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "collection_id": self.collection_id,
            "methods": {key: method.to_payload() for key, method in self.methods.items()},
        }
        if self.selected_access_method is not None:
            payload["selected_access_method"] = self.selected_access_method
        if self.order_count is not None:
            payload["order_count"] = self.order_count
        return payload


@dataclass
class CollectionOutcome:
    """Result of resolving one collection: methods, a scoped error, or deferral."""

    collection_id: str
    result: Optional[AccessMethodsResult] = None
    error_title: Optional[str] = None
    actions: List[Action] = field(default_factory=list)

    @property
    def deferred(self) -> bool:
        return self.result is None and self.error_title is None


def select_access_method(
    methods: Dict[str, AccessMethod],
    upstream_selection: Optional[str],
) -> Optional[str]:
    if upstream_selection and upstream_selection in methods:
        return upstream_selection

    if len(methods) == 1:
        return next(iter(methods))

    return None


def resolve_access_methods(
    collection_id: str,
    methods: Dict[str, AccessMethod],
    upstream_selection: Optional[str],
    project_collection: Optional[Mapping[str, Any]],
    granule_hits: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AccessMethodsResult:
    """Apply the selection and chunking policy to parsed methods."""
    methods = dict(methods)

    if len(methods) == 1:
        key, method = next(iter(methods.items()))
        if isinstance(method, DownloadMethod):
            methods[key] = method.model_copy(update={"is_valid": True})

    selected = select_access_method(methods, upstream_selection)

    order_count = None
    order_keys = [key for key, method in methods.items() if method.is_order_method]
    if len(order_keys) == 1:
        upstream_selected_order = upstream_selection == order_keys[0]
        if upstream_selected_order or should_attach_order_count(project_collection, granule_hits, chunk_size):
            order_count = chunk_count(project_collection, granule_hits, chunk_size)

    return AccessMethodsResult(
        collection_id=collection_id,
        methods=methods,
        selected_access_method=selected,
        order_count=order_count,
    )


def download_only_result(collection_id: str) -> AccessMethodsResult:
    return AccessMethodsResult(
        collection_id=collection_id,
        methods={"download": DownloadMethod(is_valid=True)},
        selected_access_method="download",
    )


def find_provider(providers: Sequence[Mapping[str, Any]], data_center: str) -> Optional[Mapping[str, Any]]:
    """Match a collection's data center against the provider list.

    Entries that are not provider records are skipped.
    """
    for entry in providers:
        if not isinstance(entry, Mapping):
            continue
        provider = entry.get("provider") or {}
        if not isinstance(provider, Mapping):
            continue
        if data_center in (provider.get("provider_id"), provider.get("organization_name")):
            return provider
    return None


ProvidersLoader = Callable[[], Awaitable[List[Dict[str, Any]]]]


class AccessMethodResolver:
    """Resolves access methods for a batch of project collections."""

    def __init__(self, store: StateStore, api_client: EarthdataApiClient,
                 chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.store = store
        self.api_client = api_client
        self.chunk_size = chunk_size
        self.logger = get_logger("search.access_methods")

    async def fetch_access_methods(self, collection_ids: Optional[Sequence[str]] = None) -> Optional[List[CollectionOutcome]]:
        """Resolve and store access methods for every collection.

        Returns ``None`` when there is nothing to do (no collections or no
        signed-in user). Each collection succeeds or fails on its own.
        """
        if not collection_ids:
            return None

        state = self.store.get_state()
        auth_token = state.get("auth_token")
        if not auth_token:
            return None

        providers = self._providers_loader(state, auth_token)
        outcomes = await asyncio.gather(*(
            self._resolve_or_fail(state, collection_id, auth_token, providers)
            for collection_id in collection_ids
        ))

        for outcome in outcomes:
            for action in outcome.actions:
                self.store.dispatch(action)

        return list(outcomes)

    async def _load_providers(self, auth_token: str) -> List[Dict[str, Any]]:
        response = await self.api_client.fetch_providers(auth_token)
        if response.data is not None and not isinstance(response.data, list):
            raise ExternalServiceError(
                service="providers",
                message="Expected a list of providers",
                details={"status_code": response.status_code}
            )

        self.store.dispatch(Action(SET_PROVIDERS, response.data))
        token_action = update_auth_token_from_headers(response.headers)
        if token_action:
            self.store.dispatch(token_action)
        return list(response.data or [])

    def _providers_loader(self, state: Mapping[str, Any], auth_token: str) -> ProvidersLoader:
        """Providers from state, fetched at most once per batch when missing."""
        task: Optional[asyncio.Future] = None

        async def providers() -> List[Dict[str, Any]]:
            nonlocal task
            cached = state.get("providers") or []
            if cached:
                return list(cached)

            if task is None:
                task = asyncio.ensure_future(self._load_providers(auth_token))
            return await asyncio.shield(task)

        return providers

    async def _resolve_or_fail(self, state: Mapping[str, Any], collection_id: str, auth_token: str,
                               providers: ProvidersLoader) -> CollectionOutcome:
        try:
            return await self._resolve_collection(state, collection_id, auth_token, providers)
        except Exception as exc:
            # Scoped to this collection; the rest of the batch still resolves
            return self._fail(CollectionOutcome(collection_id=collection_id), ACCESS_METHODS_ERROR_TITLE, exc)

    async def _resolve_collection(self, state: Mapping[str, Any], collection_id: str,
                                  auth_token: str, providers: ProvidersLoader) -> CollectionOutcome:
        outcome = CollectionOutcome(collection_id=collection_id)

        by_id = ((state.get("metadata") or {}).get("collections") or {}).get("by_id") or {}
        entry = by_id.get(collection_id) or {}
        metadata = entry.get("metadata") or {}
        if not metadata:
            self.logger.debug("Collection metadata not loaded, deferring", collection_id=collection_id)
            return outcome

        tags = metadata.get("tags") or {}
        capabilities = get_value_for_tag(tags, COLLECTION_CAPABILITIES) or {}
        online_access_flag = bool(capabilities.get("granule_online_access_flag"))
        has_order_services = any(tag_name(tag) in tags for tag in ORDER_SERVICE_TAGS)

        if not has_order_services:
            if online_access_flag:
                outcome.result = download_only_result(collection_id)
                outcome.actions.append(Action(ADD_ACCESS_METHODS, outcome.result.to_payload()))
            return outcome

        try:
            provider_list = await providers()
        except ExternalServiceError as exc:
            return self._fail(outcome, PROVIDERS_ERROR_TITLE, exc)

        provider = None
        data_center = metadata.get("data_center")
        if data_center:
            provider = find_provider(provider_list, data_center)
            if provider is None:
                self.logger.error("No provider matches collection", collection_id=collection_id,
                                  data_center=data_center)
                outcome.error_title = PROVIDERS_ERROR_TITLE
                outcome.actions.append(add_error(PROVIDERS_ERROR_TITLE))
                return outcome

        params = {
            "collection_id": collection_id,
            "collection_provider": provider.get("id") if provider else None,
            "tags": tags,
            "online_access_flag": online_access_flag,
        }

        try:
            response = await self.api_client.fetch_access_methods(auth_token, params)
            data = response.data or {}
            methods = {
                key: parse_access_method(value)
                for key, value in (data.get("accessMethods") or {}).items()
            }
        except ExternalServiceError as exc:
            return self._fail(outcome, ACCESS_METHODS_ERROR_TITLE, exc)
        except (PydanticValidationError, AttributeError, TypeError) as exc:
            return self._fail(outcome, ACCESS_METHODS_ERROR_TITLE, exc)

        token_action = update_auth_token_from_headers(response.headers)
        if token_action:
            outcome.actions.append(token_action)

        project_collection = ((state.get("project") or {}).get("by_id") or {}).get(collection_id)
        granule_hits = (entry.get("granules") or {}).get("hits") or 0

        outcome.result = resolve_access_methods(
            collection_id,
            methods,
            data.get("selectedAccessMethod"),
            project_collection,
            granule_hits,
            self.chunk_size,
        )
        outcome.actions.append(Action(ADD_ACCESS_METHODS, outcome.result.to_payload()))

        self.logger.info(
            "Resolved access methods",
            collection_id=collection_id,
            methods=list(outcome.result.methods.keys()),
            selected=outcome.result.selected_access_method,
            order_count=outcome.result.order_count
        )
        return outcome

    def _fail(self, outcome: CollectionOutcome, title: str, exc: Exception) -> CollectionOutcome:
        self.logger.error(title, collection_id=outcome.collection_id, error=str(exc))
        outcome.error_title = title
        outcome.actions.append(add_error(title))
        return outcome
