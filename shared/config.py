"""
Shared configuration management for the Earthdata Search Access Layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="SEARCH_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Catalog and backing API
    cmr_host: str = Field(default="https://cmr.earthdata.nasa.gov")
    api_host: str = Field(default="http://localhost:3001")
    http_timeout: float = Field(default=30.0)

    # Earthdata Login
    edl_client_id: Optional[str] = Field(default=None)
    jwt_secret: Optional[str] = Field(default=None)
    secrets_file: Optional[str] = Field(default=None)
    master_key: Optional[str] = Field(default=None)

    # Search behaviour
    granule_page_size: int = Field(default=20)
    order_chunk_size: int = Field(default=2000)

    # Collection thumbnails
    thumbnail_height: int = Field(default=85)
    thumbnail_width: int = Field(default=85)
    thumbnail_unavailable_url: str = Field(default="/images/image-unavailable.svg")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
