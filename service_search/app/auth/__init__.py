"""
Session token verification and catalog credential handling.
"""

from .bridge import (
    AuthBridge,
    EchoCredential,
    ECHO_TOKEN_HEADER,
    SESSION_TOKEN_HEADER,
    prepare_expose_headers,
    resolve_credential,
)
from .credentials import (
    CredentialsProvider,
    EarthdataSecrets,
    EnvironmentCredentialsProvider,
    StaticCredentialsProvider,
)

__all__ = [
    "AuthBridge",
    "CredentialsProvider",
    "EarthdataSecrets",
    "EchoCredential",
    "ECHO_TOKEN_HEADER",
    "EnvironmentCredentialsProvider",
    "SESSION_TOKEN_HEADER",
    "StaticCredentialsProvider",
    "prepare_expose_headers",
    "resolve_credential",
]
