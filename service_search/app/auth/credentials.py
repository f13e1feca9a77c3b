"""
Earthdata Login credentials for the search proxy.
"""

import base64
import json
import os
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from shared.config import BaseConfig
from shared.errors import ConfigurationError
from shared.logging import get_logger


@dataclass(frozen=True)
class EarthdataSecrets:
    """Client identity and the secret session tokens are signed with."""

    client_id: str
    secret: str


class CredentialsProvider(Protocol):
    async def fetch_credentials(self) -> EarthdataSecrets:
        ...


class StaticCredentialsProvider:
    """Credentials known up front, e.g. for local development."""

    def __init__(self, client_id: str, secret: str):
        self._secrets = EarthdataSecrets(client_id=client_id, secret=secret)

    async def fetch_credentials(self) -> EarthdataSecrets:
        return self._secrets


class EnvironmentCredentialsProvider:
    """
    Reads Earthdata Login credentials from configuration.

    Values set through ``SEARCH_EDL_CLIENT_ID`` and ``SEARCH_JWT_SECRET`` win;
    anything missing is looked up in an encrypted JSON secrets file
    (``SEARCH_SECRETS_FILE``) whose values were encrypted with a key derived
    from ``SEARCH_MASTER_KEY``.
    """

    def __init__(self, config: BaseConfig):
        self.config = config
        self.logger = get_logger("search.credentials")

    def _create_fernet(self) -> Fernet:
        """Derive the Fernet cipher from the master key."""
        if not self.config.master_key:
            raise ConfigurationError("Master key is required to read the secrets file")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b'earthdata_search_salt',
            iterations=100000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(self.config.master_key.encode()))
        return Fernet(key)

    def encrypt_secret(self, secret: str) -> str:
        """Encrypt a value for storage in the secrets file."""
        encrypted = self._create_fernet().encrypt(secret.encode())
        return base64.urlsafe_b64encode(encrypted).decode()

    def decrypt_secret(self, encrypted_secret: str) -> str:
        """Decrypt a value read from the secrets file."""
        if not isinstance(encrypted_secret, str):
            raise ConfigurationError("Secrets file entries must be strings")

        try:
            decoded = base64.urlsafe_b64decode(encrypted_secret.encode())
        except ValueError as exc:
            raise ConfigurationError("Secrets file entry is not valid base64") from exc

        try:
            return self._create_fernet().decrypt(decoded).decode()
        except InvalidToken as exc:
            raise ConfigurationError("Unable to decrypt secrets file entry") from exc

    def _read_secrets_file(self) -> Dict[str, str]:
        secrets_file = self.config.secrets_file
        if not secrets_file or not os.path.exists(secrets_file):
            return {}

        try:
            with open(secrets_file, 'r') as f:
                stored = json.load(f)
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Unable to read secrets file: {exc}") from exc

        if not isinstance(stored, dict):
            raise ConfigurationError("Secrets file must contain a JSON object")
        return stored

    def _lookup(self, configured: Optional[str], key: str, stored: Dict[str, str]) -> str:
        if configured:
            return configured

        if key in stored:
            return self.decrypt_secret(stored[key])

        raise ConfigurationError(f"Missing Earthdata Login secret '{key}'")

    async def fetch_credentials(self) -> EarthdataSecrets:
        stored = {}
        if not (self.config.edl_client_id and self.config.jwt_secret):
            stored = self._read_secrets_file()

        secrets = EarthdataSecrets(
            client_id=self._lookup(self.config.edl_client_id, "edl_client_id", stored),
            secret=self._lookup(self.config.jwt_secret, "jwt_secret", stored),
        )
        self.logger.info("Loaded Earthdata Login credentials", client_id=secrets.client_id)
        return secrets
