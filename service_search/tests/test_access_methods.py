"""
Unit tests for access method resolution.
"""

import asyncio
import json

import httpx
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_search.app.adapters.api_client import EarthdataApiClient
from service_search.app.domain.access_methods import (
    AccessMethodResolver,
    DownloadMethod,
    EchoOrderMethod,
    GenericMethod,
    OpendapMethod,
    find_provider,
    parse_access_method,
    resolve_access_methods,
)
from service_search.app.domain.state import (
    ADD_ACCESS_METHODS,
    ADD_ERROR,
    SET_PROVIDERS,
    UPDATE_AUTH_TOKEN,
    InMemoryStateStore,
)

COLLECTION_ID = "collectionId"

CAPABILITIES_TAG = {
    "edsc.extra.serverless.collection_capabilities": {"data": {"granule_online_access_flag": True}},
}
ECHO_ORDERS_TAG = {
    "edsc.extra.serverless.subset_service.echo_orders": {
        "data": {"option_definitions": [{"id": "option_definition_guid", "name": "Delivery Option"}]},
    },
}

PROVIDERS = [
    {"provider": {"id": "abcd-1234-efgh-5678", "organization_name": "EDSC-TEST", "provider_id": "EDSC-TEST"}},
    {"provider": {"id": "ijkl-9012-mnop-3456", "organization_name": "NON-EDSC-TEST",
                  "provider_id": "NON-EDSC-TEST"}},
]

DOWNLOAD = {"isValid": True, "type": "download"}
ECHO_ORDER = {
    "id": "service_id",
    "type": "ECHO ORDERS",
    "url": "mock url",
    "option_definition": {"id": "option_definition_guid", "name": "Delivery Option"},
    "form": "mock form here",
}
HARMONY = {"id": "harmony_service", "type": "Harmony", "url": "https://harmony.example.com"}


def collection_entry(tags, hits=100, **metadata):
    return {"granules": {"hits": hits}, "metadata": {"tags": tags, **metadata}}


def make_state(entries, providers=PROVIDERS, project_by_id=None, auth_token="123"):
    return {
        "auth_token": auth_token,
        "metadata": {"collections": {"all_ids": list(entries), "by_id": entries}},
        "project": {"collection_ids": list(entries), "by_id": project_by_id or {key: {} for key in entries}},
        "providers": providers,
    }


class RecordingApi:
    """Handler for httpx.MockTransport that records requests per path."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        for path, response in self.routes.items():
            if request.url.path.endswith(path):
                if callable(response):
                    return response(request)
                return httpx.Response(response.status_code, content=response.content, headers=response.headers)
        return httpx.Response(404, json={"errors": ["Not found"]})

    def calls_to(self, path):
        return [request for request in self.requests if request.url.path.endswith(path)]


def resolver_for(state, api):
    store = InMemoryStateStore(state)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    resolver = AccessMethodResolver(store, EarthdataApiClient("http://localhost:3001", http_client))
    return store, resolver


class TestParseAccessMethod:
    """Test cases for the access method union."""

    def test_download(self):
        method = parse_access_method(DOWNLOAD)

        assert isinstance(method, DownloadMethod)
        assert method.is_valid is True
        assert method.is_order_method is False

    def test_echo_order_round_trips(self):
        method = parse_access_method(ECHO_ORDER)

        assert isinstance(method, EchoOrderMethod)
        assert method.is_order_method is True
        assert method.to_payload() == ECHO_ORDER

    def test_unknown_fields_retained(self):
        method = parse_access_method({**ECHO_ORDER, "extra": {"a": 1}})

        assert method.to_payload()["extra"] == {"a": 1}

    def test_unknown_type_kept(self):
        method = parse_access_method(HARMONY)

        assert isinstance(method, GenericMethod)
        assert method.is_order_method is False
        assert method.to_payload() == HARMONY

    def test_opendap_is_order_method(self):
        method = parse_access_method({"type": "OPeNDAP", "id": "opendap_id"})

        assert isinstance(method, OpendapMethod)
        assert method.is_order_method is True

    def test_missing_type_rejected(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            parse_access_method({"id": "service_id"})


class TestResolveAccessMethods:
    """Test cases for the selection and chunking policy."""

    def test_lone_download_selected_and_valid(self):
        result = resolve_access_methods(
            COLLECTION_ID, {"download": DownloadMethod(is_valid=False)}, None, {}, 100
        )

        assert result.selected_access_method == "download"
        assert result.methods["download"].is_valid is True
        assert result.order_count is None

    def test_lone_order_method_selected(self):
        result = resolve_access_methods(COLLECTION_ID, {"echoOrder0": parse_access_method(ECHO_ORDER)}, None, {}, 25)

        assert result.selected_access_method == "echoOrder0"
        assert result.order_count is None

    def test_unknown_upstream_selection_ignored(self):
        methods = {"download": parse_access_method(DOWNLOAD), "echoOrder0": parse_access_method(ECHO_ORDER)}

        result = resolve_access_methods(COLLECTION_ID, methods, "missing", {}, 25)

        assert result.selected_access_method is None

    def test_order_count_for_large_unselected_order(self):
        methods = {"download": parse_access_method(DOWNLOAD), "echoOrder0": parse_access_method(ECHO_ORDER)}

        result = resolve_access_methods(COLLECTION_ID, methods, None, {}, 4001)

        assert result.selected_access_method is None
        assert result.order_count == 3

    def test_to_payload_omits_unset_fields(self):
        result = resolve_access_methods(COLLECTION_ID, {"download": parse_access_method(DOWNLOAD)}, None, {}, 1)

        assert result.to_payload() == {
            "collection_id": COLLECTION_ID,
            "methods": {"download": DOWNLOAD},
            "selected_access_method": "download",
        }


class TestAccessMethodResolver:
    """Test cases for AccessMethodResolver."""

    @pytest.mark.asyncio
    async def test_not_logged_in(self):
        api = RecordingApi({})
        store, resolver = resolver_for(make_state({COLLECTION_ID: collection_entry(CAPABILITIES_TAG)},
                                                  auth_token=""), api)

        assert await resolver.fetch_access_methods([COLLECTION_ID]) is None
        assert store.actions == []
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_no_collections(self):
        api = RecordingApi({})
        store, resolver = resolver_for(make_state({}), api)

        assert await resolver.fetch_access_methods() is None
        assert await resolver.fetch_access_methods([]) is None
        assert store.actions == []

    @pytest.mark.asyncio
    async def test_download_only_without_api_call(self):
        api = RecordingApi({})
        store, resolver = resolver_for(make_state({COLLECTION_ID: collection_entry(CAPABILITIES_TAG)}), api)

        await resolver.fetch_access_methods([COLLECTION_ID])

        assert api.requests == []
        assert store.actions[0].type == ADD_ACCESS_METHODS
        assert store.actions[0].payload == {
            "collection_id": COLLECTION_ID,
            "methods": {"download": {"isValid": True, "type": "download"}},
            "selected_access_method": "download",
        }

    @pytest.mark.asyncio
    async def test_download_only_ignores_provider_failure(self):
        api = RecordingApi({"/providers": httpx.Response(500, json={"errors": ["HTTP Request Error"]})})
        store, resolver = resolver_for(
            make_state({COLLECTION_ID: collection_entry(CAPABILITIES_TAG)}, providers=[]), api
        )

        await resolver.fetch_access_methods([COLLECTION_ID])

        assert api.calls_to("/providers") == []
        assert [action.type for action in store.actions] == [ADD_ACCESS_METHODS]

    @pytest.mark.asyncio
    async def test_no_tags_and_no_online_access(self):
        api = RecordingApi({})
        store, resolver = resolver_for(make_state({COLLECTION_ID: collection_entry({})}), api)

        outcomes = await resolver.fetch_access_methods([COLLECTION_ID])

        assert outcomes[0].result is None
        assert store.actions == []

    @pytest.mark.asyncio
    async def test_providers_failure(self):
        api = RecordingApi({
            "/providers": httpx.Response(500, json={"errors": ["HTTP Request Error"]}, headers={"jwt-token": "token"}),
        })
        store, resolver = resolver_for(
            make_state({COLLECTION_ID: collection_entry({**ECHO_ORDERS_TAG, **CAPABILITIES_TAG})}, providers=[]),
            api,
        )

        await resolver.fetch_access_methods([COLLECTION_ID])

        assert store.actions[0].type == ADD_ERROR
        assert store.actions[0].payload["title"] == "Error retrieving providers"
        assert store.actions[0].payload["message"] == "There was a problem completing the request"
        assert api.calls_to("/access_methods") == []

    @pytest.mark.asyncio
    async def test_access_methods_failure(self):
        api = RecordingApi({
            "/access_methods": httpx.Response(500, json={"errors": ["HTTP Request Error"]},
                                              headers={"jwt-token": "token"}),
        })
        store, resolver = resolver_for(
            make_state({COLLECTION_ID: collection_entry({**ECHO_ORDERS_TAG, **CAPABILITIES_TAG}, hits=5000)}),
            api,
        )

        await resolver.fetch_access_methods([COLLECTION_ID])

        assert store.actions[0].type == ADD_ERROR
        assert store.actions[0].payload["title"] == "Error retrieving access methods"

    @pytest.mark.asyncio
    async def test_malformed_access_methods(self):
        api = RecordingApi({
            "/access_methods": httpx.Response(200, json={"accessMethods": {"bad": {"type": "ECHO ORDERS"}}}),
        })
        store, resolver = resolver_for(
            make_state({COLLECTION_ID: collection_entry({**ECHO_ORDERS_TAG, **CAPABILITIES_TAG})}), api
        )

        await resolver.fetch_access_methods([COLLECTION_ID])

        assert [action.type for action in store.actions] == [ADD_ERROR]
        assert store.actions[0].payload["title"] == "Error retrieving access methods"

    @pytest.mark.asyncio
    async def test_fetches_access_methods_from_api(self):
        api = RecordingApi({
            "/access_methods": httpx.Response(200, json={
                "accessMethods": {"download": DOWNLOAD, "echoOrder0": ECHO_ORDER},
            }),
        })
        tags = {**ECHO_ORDERS_TAG, **CAPABILITIES_TAG}
        store, resolver = resolver_for(make_state({COLLECTION_ID: collection_entry(tags)}), api)

        await resolver.fetch_access_methods([COLLECTION_ID])

        assert store.actions[0].type == ADD_ACCESS_METHODS
        assert store.actions[0].payload == {
            "collection_id": COLLECTION_ID,
            "methods": {"download": DOWNLOAD, "echoOrder0": ECHO_ORDER},
        }

        request = api.calls_to("/access_methods")[0]
        assert request.headers["Authorization"] == "Bearer 123"
        assert json.loads(request.content) == {"params": {
            "collection_id": COLLECTION_ID,
            "collection_provider": None,
            "tags": tags,
            "online_access_flag": True,
        }}

    @pytest.mark.asyncio
    async def test_provider_resolved_from_data_center(self):
        api = RecordingApi({
            "/access_methods": httpx.Response(200, json={"accessMethods": {"echoOrder0": ECHO_ORDER}}),
        })
        entry = collection_entry({**ECHO_ORDERS_TAG}, data_center="NON-EDSC-TEST")
        store, resolver = resolver_for(make_state({COLLECTION_ID: entry}), api)

        await resolver.fetch_access_methods([COLLECTION_ID])

        body = json.loads(api.calls_to("/access_methods")[0].content)
        assert body["params"]["collection_provider"] == "ijkl-9012-mnop-3456"
        assert body["params"]["online_access_flag"] is False

    @pytest.mark.asyncio
    async def test_renewed_token_dispatched(self):
        api = RecordingApi({
            "/access_methods": httpx.Response(200, json={"accessMethods": {"echoOrder0": ECHO_ORDER}},
                                              headers={"jwt-token": "renewed"}),
        })
        store, resolver = resolver_for(make_state({COLLECTION_ID: collection_entry(ECHO_ORDERS_TAG)}), api)

        await resolver.fetch_access_methods([COLLECTION_ID])

        token_actions = store.actions_of_type(UPDATE_AUTH_TOKEN)
        assert [action.payload for action in token_actions] == ["renewed"]
        assert store.get_state()["auth_token"] == "renewed"

    @pytest.mark.asyncio
    async def test_providers_fetched_once_per_batch(self):
        api = RecordingApi({
            "/providers": httpx.Response(200, json=PROVIDERS),
            "/access_methods": httpx.Response(200, json={"accessMethods": {"echoOrder0": ECHO_ORDER}}),
        })
        entries = {
            "C1-EDSC-TEST": collection_entry(ECHO_ORDERS_TAG, data_center="EDSC-TEST"),
            "C2-EDSC-TEST": collection_entry(ECHO_ORDERS_TAG, data_center="EDSC-TEST"),
        }
        store, resolver = resolver_for(make_state(entries, providers=[]), api)

        await resolver.fetch_access_methods(list(entries))

        assert len(api.calls_to("/providers")) == 1
        assert len(api.calls_to("/access_methods")) == 2
        assert store.get_state()["providers"] == PROVIDERS
        assert len(store.actions_of_type(SET_PROVIDERS)) == 1

    @pytest.mark.asyncio
    async def test_failure_is_scoped_to_one_collection(self):
        def access_methods(request):
            params = json.loads(request.content)["params"]
            if params["collection_id"] == "C1-BROKEN":
                return httpx.Response(500, json={"errors": ["boom"]})
            return httpx.Response(200, json={"accessMethods": {"echoOrder0": ECHO_ORDER}})

        api = RecordingApi({"/access_methods": access_methods})
        entries = {
            "C1-BROKEN": collection_entry(ECHO_ORDERS_TAG),
            "C2-WORKS": collection_entry(ECHO_ORDERS_TAG),
        }
        store, resolver = resolver_for(make_state(entries), api)

        outcomes = await resolver.fetch_access_methods(list(entries))

        assert outcomes[0].error_title == "Error retrieving access methods"
        assert outcomes[1].result.selected_access_method == "echoOrder0"
        assert [action.type for action in store.actions] == [ADD_ERROR, ADD_ACCESS_METHODS]
        assert store.get_state()["project"]["by_id"]["C2-WORKS"]["selected_access_method"] == "echoOrder0"

    @pytest.mark.asyncio
    async def test_unmatched_data_center(self):
        api = RecordingApi({})
        entry = collection_entry(ECHO_ORDERS_TAG, data_center="UNKNOWN")
        store, resolver = resolver_for(make_state({COLLECTION_ID: entry}), api)

        await resolver.fetch_access_methods([COLLECTION_ID])

        assert store.actions[0].payload["title"] == "Error retrieving providers"
        assert api.calls_to("/access_methods") == []

    @pytest.mark.asyncio
    async def test_metadata_not_loaded(self):
        api = RecordingApi({})
        store, resolver = resolver_for(make_state({}), api)

        outcomes = await resolver.fetch_access_methods([COLLECTION_ID])

        assert outcomes[0].deferred is True
        assert store.actions == []

    @pytest.mark.asyncio
    async def test_unknown_method_type_kept_with_download(self):
        api = RecordingApi({
            "/access_methods": httpx.Response(200, json={
                "accessMethods": {"download": DOWNLOAD, "harmony0": HARMONY},
            }),
        })
        store, resolver = resolver_for(
            make_state({COLLECTION_ID: collection_entry({**ECHO_ORDERS_TAG, **CAPABILITIES_TAG})}), api
        )

        await resolver.fetch_access_methods([COLLECTION_ID])

        assert store.actions_of_type(ADD_ERROR) == []
        payload = store.actions_of_type(ADD_ACCESS_METHODS)[0].payload
        assert payload["methods"] == {"download": DOWNLOAD, "harmony0": HARMONY}
        assert "order_count" not in payload

    @pytest.mark.asyncio
    async def test_malformed_metadata_is_scoped_to_one_collection(self):
        api = RecordingApi({
            "/access_methods": httpx.Response(200, json={"accessMethods": {"echoOrder0": ECHO_ORDER}}),
        })
        malformed_capabilities = {"edsc.extra.serverless.collection_capabilities": {"data": "malformed"}}
        entries = {
            "C1-WORKS": collection_entry(ECHO_ORDERS_TAG, data_center="EDSC-TEST"),
            "C2-MALFORMED": collection_entry({**ECHO_ORDERS_TAG, **malformed_capabilities}),
        }
        store, resolver = resolver_for(make_state(entries), api)

        outcomes = await resolver.fetch_access_methods(list(entries))

        assert outcomes[0].result.selected_access_method == "echoOrder0"
        assert outcomes[1].error_title == "Error retrieving access methods"
        assert [action.type for action in store.actions] == [ADD_ACCESS_METHODS, ADD_ERROR]

    @pytest.mark.asyncio
    async def test_malformed_provider_entry_skipped(self):
        api = RecordingApi({
            "/access_methods": httpx.Response(200, json={"accessMethods": {"echoOrder0": ECHO_ORDER}}),
        })
        entries = {
            "C1-EDSC-TEST": collection_entry(ECHO_ORDERS_TAG, data_center="EDSC-TEST"),
            "C2-OTHER": collection_entry(ECHO_ORDERS_TAG, data_center="OTHER"),
        }
        store, resolver = resolver_for(make_state(entries, providers=[PROVIDERS[0], "malformed-entry"]), api)

        outcomes = await resolver.fetch_access_methods(list(entries))

        assert outcomes[0].result.selected_access_method == "echoOrder0"
        assert outcomes[1].error_title == "Error retrieving providers"
        assert len(store.actions_of_type(ADD_ACCESS_METHODS)) == 1

    @pytest.mark.asyncio
    async def test_providers_payload_not_a_list(self):
        api = RecordingApi({"/providers": httpx.Response(200, json={"errors": ["unexpected"]})})
        store, resolver = resolver_for(
            make_state({COLLECTION_ID: collection_entry(ECHO_ORDERS_TAG)}, providers=[]), api
        )

        outcomes = await resolver.fetch_access_methods([COLLECTION_ID])

        assert outcomes[0].error_title == "Error retrieving providers"
        assert store.actions_of_type(SET_PROVIDERS) == []

    @pytest.mark.asyncio
    async def test_overlapping_batches_each_fetch_providers(self):
        api = RecordingApi({
            "/providers": httpx.Response(200, json=PROVIDERS),
            "/access_methods": httpx.Response(200, json={"accessMethods": {"echoOrder0": ECHO_ORDER}}),
        })
        entries = {
            "C1-EDSC-TEST": collection_entry(ECHO_ORDERS_TAG, data_center="EDSC-TEST"),
            "C2-EDSC-TEST": collection_entry(ECHO_ORDERS_TAG, data_center="EDSC-TEST"),
            "C3-EDSC-TEST": collection_entry(ECHO_ORDERS_TAG, data_center="EDSC-TEST"),
        }
        store, resolver = resolver_for(make_state(entries, providers=[]), api)

        first, second = await asyncio.gather(
            resolver.fetch_access_methods(["C1-EDSC-TEST", "C2-EDSC-TEST"]),
            resolver.fetch_access_methods(["C3-EDSC-TEST"]),
        )

        assert len(api.calls_to("/providers")) == 2
        assert all(outcome.result is not None for outcome in first + second)


class TestFindProvider:
    """Test cases for find_provider."""

    def test_matches_provider_id_or_organization(self):
        assert find_provider(PROVIDERS, "EDSC-TEST")["id"] == "abcd-1234-efgh-5678"

    def test_skips_malformed_entries(self):
        providers = ["malformed-entry", {"provider": "also-malformed"}, PROVIDERS[1]]

        assert find_provider(providers, "NON-EDSC-TEST")["id"] == "ijkl-9012-mnop-3456"
        assert find_provider(providers, "OTHER") is None


class TestOrderChunking:
    """Test cases for order counts attached by the resolver."""

    async def resolve(self, hits, project_collection=None):
        api = RecordingApi({
            "/access_methods": httpx.Response(200, json={
                "accessMethods": {"echoOrder0": ECHO_ORDER},
                "selectedAccessMethod": "echoOrder0",
            }),
        })
        state = make_state(
            {COLLECTION_ID: collection_entry({**ECHO_ORDERS_TAG, **CAPABILITIES_TAG}, hits=hits)},
            project_by_id={COLLECTION_ID: project_collection or {}},
        )
        store, resolver = resolver_for(state, api)
        await resolver.fetch_access_methods([COLLECTION_ID])
        return store.actions_of_type(ADD_ACCESS_METHODS)[0].payload

    @pytest.mark.asyncio
    async def test_chunks_large_orders(self):
        payload = await self.resolve(5000)

        assert payload == {
            "collection_id": COLLECTION_ID,
            "methods": {"echoOrder0": ECHO_ORDER},
            "order_count": 3,
            "selected_access_method": "echoOrder0",
        }

    @pytest.mark.asyncio
    async def test_small_orders_single_chunk(self):
        payload = await self.resolve(25)

        assert payload["order_count"] == 1

    @pytest.mark.asyncio
    async def test_added_granules_replace_hits(self):
        payload = await self.resolve(5000, {"added_granule_ids": ["GRAN-1", "GRAN-2"]})

        assert payload["order_count"] == 1
