"""
Shared configuration management for the Product Catalog Service.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Persistence
    store_backend: Literal["memory", "postgres"] = Field(default="memory")
    postgres_dsn: str = Field(default="postgres://localhost:5432/catalog")
    postgres_min_pool: int = Field(default=2)
    postgres_max_pool: int = Field(default=10)

    # Cache namespace policy
    cache_initial_capacity: int = Field(default=100)
    cache_maximum_size: int = Field(default=10000)
    cache_expire_after_write_seconds: float = Field(default=300)
    cache_expire_after_access_seconds: float = Field(default=600)

    # Queries
    max_page_size: int = Field(default=1000)

    # Sample data (dev only)
    load_sample_data: bool = Field(default=True)
    sample_data_size: int = Field(default=10000)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
