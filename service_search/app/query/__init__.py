"""
Query translation for catalog requests: allow-listing, encoding and URL building.
"""

from .encoder import cmr_parse, cmr_stringify, stringify
from .params import pick
from .request_builder import build_url, parse_request_params

__all__ = [
    "build_url",
    "cmr_parse",
    "cmr_stringify",
    "parse_request_params",
    "pick",
    "stringify",
]
