"""
Bridges Earthdata Search session tokens to catalog credentials.

A session token is a JWT issued by the login authorizer. Its payload carries
the Earthdata Login access token, which the catalog expects in the
``Echo-Token`` header as ``<access_token>:<client_id>``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from shared.errors import InvalidTokenError
from shared.logging import get_logger

from .credentials import CredentialsProvider, EarthdataSecrets

ECHO_TOKEN_HEADER = "Echo-Token"
SESSION_TOKEN_HEADER = "jwt-token"
EXPOSE_HEADERS_HEADER = "access-control-expose-headers"


@dataclass(frozen=True)
class EchoCredential:
    """Upstream credential extracted from a verified session token."""

    access_token: str
    client_id: str

    @property
    def header_value(self) -> str:
        return f"{self.access_token}:{self.client_id}"


def resolve_credential(session_token: str, verification_secret: str, client_id: str) -> EchoCredential:
    """Verify a session token and extract the catalog credential it carries.

    The ``client_id`` claim, when present in the token, wins over the
    configured client id.

    Raises:
        InvalidTokenError: If the token is expired, tampered with, signed with
            another secret, or carries no access token
    """
    try:
        claims: Dict[str, Any] = jwt.decode(session_token, verification_secret, algorithms=["HS256"])
    except ExpiredSignatureError as exc:
        raise InvalidTokenError("Session token has expired") from exc
    except JWTError as exc:
        raise InvalidTokenError("Session token verification failed", details={"error": str(exc)}) from exc

    token = claims.get("token")
    access_token = token.get("access_token") if isinstance(token, dict) else None
    if not isinstance(access_token, str) or not access_token:
        raise InvalidTokenError("Session token does not carry an access token")

    return EchoCredential(
        access_token=access_token,
        client_id=claims.get("client_id") or client_id,
    )


def prepare_expose_headers(headers: Mapping[str, str]) -> str:
    """Add the session token header to the CORS expose list.

    Existing entries are kept in order; ``jwt-token`` is appended only when it
    is not already listed.
    """
    expose_headers = ""
    for name, value in headers.items():
        if name.lower() == EXPOSE_HEADERS_HEADER:
            expose_headers = value
            break

    expose_list = [entry.strip() for entry in expose_headers.split(",") if entry.strip()]
    if SESSION_TOKEN_HEADER not in (entry.lower() for entry in expose_list):
        expose_list.append(SESSION_TOKEN_HEADER)

    return ", ".join(expose_list)


class AuthBridge:
    """Resolves catalog credentials using secrets fetched once per process."""

    def __init__(self, credentials_provider: CredentialsProvider):
        self.credentials_provider = credentials_provider
        self.logger = get_logger("search.auth_bridge")

        self._secrets: Optional[EarthdataSecrets] = None
        self._lock = asyncio.Lock()

    async def secrets(self) -> EarthdataSecrets:
        """Fetch credentials on first use and reuse them afterwards."""
        if self._secrets is not None:
            return self._secrets

        async with self._lock:
            if self._secrets is None:
                self._secrets = await self.credentials_provider.fetch_credentials()

        return self._secrets

    async def resolve(self, session_token: str) -> EchoCredential:
        secrets = await self.secrets()
        try:
            return resolve_credential(session_token, secrets.secret, secrets.client_id)
        except InvalidTokenError as exc:
            self.logger.warning("Session token rejected", error=exc.message)
            raise
