"""
Allow-list filtering for catalog request parameters.
"""

from typing import Any, Dict, Iterable, Mapping, Optional


def pick(provided: Optional[Mapping[str, Any]], keys: Iterable[str]) -> Dict[str, Any]:
    """Select only the permitted keys from a parameter object.

    Args:
        provided: Parameters received from the client, ``None`` is treated as empty
        keys: Keys allowed through to the catalog

    Returns:
        A new dict holding the permitted keys in their original order. The
        caller's mapping is left untouched.
    """
    if provided is None:
        return {}

    permitted = set(keys)
    return {key: value for key, value in provided.items() if key in permitted}
