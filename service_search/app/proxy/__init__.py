"""
Catalog proxy: credential attachment and response normalization.
"""

from .executor import ProxyExecutor, ProxyResponse

__all__ = ["ProxyExecutor", "ProxyResponse"]
