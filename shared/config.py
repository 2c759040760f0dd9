"""
Shared configuration management for the admin console data layer.
"""

from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CONSOLE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Backend API
    api_base_url: str = Field(default="http://localhost:5000/api/v1")
    api_token: Optional[str] = Field(default=None)
    request_timeout: float = Field(default=30.0)

    # Fetch retries (GET only)
    fetch_retry_attempts: int = Field(default=2, ge=1)
    fetch_retry_base_delay: float = Field(default=0.5, ge=0.0)


class ConsoleConfig(BaseConfig):
    """Cache and synchronization settings."""

    # Seconds an unsubscribed entry survives before eviction
    retention_seconds: float = Field(default=0.0, ge=0.0)

    # Keep last good data when a refetch fails
    keep_data_on_error: bool = Field(default=False)

    # Raise on reads of unregistered cache keys instead of logging them
    strict_cache: bool = Field(default=True)


def get_config(**overrides: Any) -> ConsoleConfig:
    """Get console configuration, applying explicit overrides over the environment."""
    return ConsoleConfig(**overrides)
