"""
Application state contract.

Domain operations read a snapshot of the client application's state and hand
every change back as a discrete ``Action``. The store applies each action
atomically; readers holding an earlier snapshot never observe the change.

State layout (all keys optional)::

    {
        "auth_token": "...",
        "focused_collection": "C100-PROV",
        "metadata": {"collections": {"all_ids": [...], "by_id": {
            "C100-PROV": {"metadata": {...}, "granules": {"hits": 42}}}}},
        "query": {"collection": {...}, "granule": {...}},
        "project": {"collection_ids": [...], "by_id": {
            "C100-PROV": {"added_granule_ids": [...]}}},
        "providers": [{"provider": {"id": ..., "provider_id": ...}}],
        "errors": [{"id": ..., "title": ..., "message": ...}],
    }
"""

import copy
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

ADD_ACCESS_METHODS = "ADD_ACCESS_METHODS"
ADD_ERROR = "ADD_ERROR"
SET_PROVIDERS = "SET_PROVIDERS"
UPDATE_AUTH_TOKEN = "UPDATE_AUTH_TOKEN"
UPDATE_COLLECTION_METADATA = "UPDATE_COLLECTION_METADATA"
UPDATE_PROJECT_GRANULES = "UPDATE_PROJECT_GRANULES"


@dataclass(frozen=True)
class Action:
    type: str
    payload: Any = None


class StateStore(Protocol):
    def get_state(self) -> Mapping[str, Any]:
        ...

    def dispatch(self, action: Action) -> None:
        ...


def _project_collection(state: Dict[str, Any], collection_id: str) -> Dict[str, Any]:
    project = state.setdefault("project", {})
    by_id = project.setdefault("by_id", {})
    return by_id.setdefault(collection_id, {})


def _add_access_methods(state: Dict[str, Any], payload: Dict[str, Any]) -> None:
    project_collection = _project_collection(state, payload["collection_id"])
    project_collection["access_methods"] = payload.get("methods", {})
    for key in ("selected_access_method", "order_count"):
        if key in payload:
            project_collection[key] = payload[key]


def _add_error(state: Dict[str, Any], payload: Dict[str, Any]) -> None:
    state.setdefault("errors", []).append(payload)


def _set_providers(state: Dict[str, Any], payload: List[Dict[str, Any]]) -> None:
    state["providers"] = payload


def _update_auth_token(state: Dict[str, Any], payload: str) -> None:
    state["auth_token"] = payload


def _update_collection_metadata(state: Dict[str, Any], payload: List[Dict[str, Any]]) -> None:
    collections = state.setdefault("metadata", {}).setdefault("collections", {})
    by_id = collections.setdefault("by_id", {})
    all_ids = collections.setdefault("all_ids", [])

    for entry in payload:
        for collection_id, values in entry.items():
            by_id.setdefault(collection_id, {}).update(values)
            if collection_id not in all_ids:
                all_ids.append(collection_id)


def _update_project_granules(state: Dict[str, Any], payload: Dict[str, Any]) -> None:
    granules = dict(payload)
    collection_id = granules.pop("collection_id")
    _project_collection(state, collection_id)["granules"] = granules


REDUCERS: Dict[str, Callable[[Dict[str, Any], Any], None]] = {
    ADD_ACCESS_METHODS: _add_access_methods,
    ADD_ERROR: _add_error,
    SET_PROVIDERS: _set_providers,
    UPDATE_AUTH_TOKEN: _update_auth_token,
    UPDATE_COLLECTION_METADATA: _update_collection_metadata,
    UPDATE_PROJECT_GRANULES: _update_project_granules,
}


class InMemoryStateStore:
    """Copy-on-write state store that records every dispatched action."""

    def __init__(self, initial_state: Optional[Mapping[str, Any]] = None):
        self._state: Dict[str, Any] = copy.deepcopy(dict(initial_state or {}))
        self.actions: List[Action] = []

    def get_state(self) -> Mapping[str, Any]:
        return self._state

    def dispatch(self, action: Action) -> None:
        self.actions.append(action)

        reducer = REDUCERS.get(action.type)
        if reducer is None:
            return

        next_state = copy.deepcopy(self._state)
        reducer(next_state, copy.deepcopy(action.payload))
        self._state = next_state

    def actions_of_type(self, action_type: str) -> List[Action]:
        return [action for action in self.actions if action.type == action_type]


DEFAULT_ERROR_MESSAGE = "There was a problem completing the request"


def add_error(title: str, message: str = DEFAULT_ERROR_MESSAGE) -> Action:
    """Build the action that surfaces a titled error to the user."""
    return Action(ADD_ERROR, {"id": str(uuid.uuid4()), "title": title, "message": message})


def update_auth_token_from_headers(headers: Mapping[str, str]) -> Optional[Action]:
    """Action storing a renewed session token, if the response carried one."""
    token = headers.get("jwt-token")
    if not token:
        return None
    return Action(UPDATE_AUTH_TOKEN, token)
