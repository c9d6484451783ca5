"""
Shared configuration management for the Market Gateway.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_UPSTREAM_BASE_URL = "https://openapi.taptools.io/api/v1"
DEFAULT_CACHE_TTL_MS = 3_600_000


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="MARKET_",
        env_file=".env",
        case_sensitive=False,
        extra="allow",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Upstream market data API
    upstream_base_url: str = Field(default=DEFAULT_UPSTREAM_BASE_URL)
    upstream_api_key: Optional[str] = Field(default=None)
    upstream_timeout_seconds: Optional[float] = Field(default=None)

    # Cache store
    cache_enabled: bool = Field(default=True)
    cache_redis_url: Optional[str] = Field(default=None)
    cache_redis_token: Optional[str] = Field(default=None)
    default_cache_ttl_ms: int = Field(default=DEFAULT_CACHE_TTL_MS)
    cache_dedupe_inflight: bool = Field(default=True)

    @property
    def caching_active(self) -> bool:
        """Caching needs both the toggle and a reachable store URL."""
        return self.cache_enabled and bool(self.cache_redis_url)


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
