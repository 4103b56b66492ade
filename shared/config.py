"""
Shared configuration management for the response cache layer.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class CacheConfig(BaseConfig):
    """Response cache configuration."""

    service_name: str = Field(default="response-cache")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Backend selection: "memory" or "redis"
    backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")
    key_prefix: str = Field(default="response-cache:")

    # Seconds; None leaves expiry to the store
    default_ttl: Optional[float] = Field(default=None, ge=0)

    allowed_methods: List[str] = Field(default_factory=lambda: ["GET"])

    @field_validator("allowed_methods")
    @classmethod
    def _upper_methods(cls, value: List[str]) -> List[str]:
        return [method.upper() for method in value]

    @field_validator("backend")
    @classmethod
    def _lower_backend(cls, value: str) -> str:
        return value.lower()


def get_config(**overrides) -> CacheConfig:
    """Get the response cache configuration."""
    return CacheConfig(**overrides)
