"""
Shared configuration management for the token cache harness.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="TOKEN_CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External store
    store_backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = Field(default="token_cache:")
    store_default_ttl_seconds: int = Field(default=300, ge=1)
    store_cleanup_interval_seconds: int = Field(default=600, ge=0)

    # Observability
    enable_metrics: bool = Field(default=False)
    metrics_port: Optional[int] = Field(default=None)


class BenchmarkConfig(BaseConfig):
    """Benchmark run configuration."""

    service_name: str = "token-cache-bench"

    # Test parameters
    tenant_count: int = Field(default=100, ge=1)
    token_count: int = Field(default=400, ge=0)

    # Fake authenticating client
    client_id: str = Field(default="fake_client_id")
    authority_host: str = Field(default="fake_authority")
    access_token_ttl_seconds: int = Field(default=3600, ge=1)
    token_signing_key: str = Field(default="token-cache-bench-synthetic-signing-key", min_length=32)


def get_config(**overrides) -> BenchmarkConfig:
    """Get configuration for a benchmark run."""
    return BenchmarkConfig(**overrides)
