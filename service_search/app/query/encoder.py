"""
Catalog query string encoding.

The catalog accepts most array parameters with explicit indices
(``key[0]=a&key[1]=b``) but a handful of keys must be sent without them
(``key[]=a&key[]=b``). ``cmr_stringify`` produces both fragments and joins
them; ``cmr_parse`` reads either form back.
"""

import re
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Tuple
from urllib.parse import quote, unquote

INDICES = "indices"
BRACKETS = "brackets"

_KEY_PATTERN = re.compile(r"^([^\[]*)((?:\[[^\]]*\])*)$")
_SEGMENT_PATTERN = re.compile(r"\[([^\]]*)\]")


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _flatten(prefix: str, value: Any, array_format: str) -> Iterator[Tuple[str, str]]:
    """Yield (key, value) pairs for one top level parameter."""
    if value is None:
        return

    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from _flatten(f"{prefix}[{key}]", item, array_format)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            suffix = f"[{index}]" if array_format == INDICES else "[]"
            yield from _flatten(f"{prefix}{suffix}", item, array_format)
    else:
        yield prefix, _format_scalar(value)


def stringify(params: Mapping[str, Any], array_format: str = INDICES) -> str:
    """Encode a parameter mapping as an RFC 3986 query string."""
    pairs: List[str] = []
    for key, value in params.items():
        for name, scalar in _flatten(str(key), value, array_format):
            pairs.append(f"{quote(name, safe='')}={quote(scalar, safe='')}")

    return "&".join(pairs)


def cmr_stringify(query_params: Mapping[str, Any], non_indexed_keys: Iterable[str] = ()) -> str:
    """Create a query string containing both indexed and non-indexed keys.

    Args:
        query_params: Parameters already filtered against the resource allow-list
        non_indexed_keys: Keys whose arrays are encoded without indices

    Returns:
        The indexed fragment followed by the non-indexed fragment, joined with
        ``&``. Empty fragments are dropped.
    """
    non_indexed = set(non_indexed_keys)

    indexed_attrs = {key: value for key, value in query_params.items() if key not in non_indexed}
    non_indexed_attrs = {key: value for key, value in query_params.items() if key in non_indexed}

    fragments = [
        stringify(indexed_attrs, INDICES),
        stringify(non_indexed_attrs, BRACKETS),
    ]

    return "&".join(fragment for fragment in fragments if fragment)


def _put(container: Any, key: Any, value: Any) -> None:
    if isinstance(container, list):
        while len(container) <= key:
            container.append(None)
    container[key] = value


def _slot(container: Any, key: Any, factory) -> Any:
    if isinstance(container, list):
        while len(container) <= key:
            container.append(None)
        if container[key] is None:
            container[key] = factory()
        return container[key]

    if not isinstance(container.get(key), (list, dict)):
        container[key] = factory()
    return container[key]


def _assign(container: Any, key: Any, segments: List[str], value: str) -> None:
    if not segments:
        _put(container, key, value)
        return

    head, rest = segments[0], segments[1:]
    if head == "":
        items = _slot(container, key, list)
        items.append(None)
        _assign(items, len(items) - 1, rest, value)
    elif head.isdigit():
        items = _slot(container, key, list)
        _assign(items, int(head), rest, value)
    else:
        _assign(_slot(container, key, dict), head, rest, value)


def cmr_parse(query_string: str) -> Dict[str, Any]:
    """Decode a query string produced by ``cmr_stringify``.

    Values come back as strings; bracketed keys rebuild lists and nested dicts.
    """
    result: Dict[str, Any] = {}

    for part in query_string.lstrip("?").split("&"):
        if not part:
            continue

        raw_key, _, raw_value = part.partition("=")
        key = unquote(raw_key)
        value = unquote(raw_value)

        match = _KEY_PATTERN.match(key)
        if match is None or not match.group(1):
            result[key] = value
            continue

        segments = _SEGMENT_PATTERN.findall(match.group(2))
        _assign(result, match.group(1), segments, value)

    return result
