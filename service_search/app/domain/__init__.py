"""
Domain logic for project collections: granule parameters, collection
responses, access methods and order chunking.
"""

from .access_methods import (
    AccessMethodResolver,
    AccessMethodsResult,
    CollectionOutcome,
    parse_access_method,
    resolve_access_methods,
)
from .chunking import chunk_count
from .project import ProjectService, convert_size
from .state import Action, InMemoryStateStore, StateStore

__all__ = [
    "AccessMethodResolver",
    "AccessMethodsResult",
    "Action",
    "CollectionOutcome",
    "InMemoryStateStore",
    "ProjectService",
    "StateStore",
    "chunk_count",
    "convert_size",
    "parse_access_method",
    "resolve_access_methods",
]
