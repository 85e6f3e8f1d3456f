"""Configuration settings for the browser nodes."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NodeSettings(BaseSettings):
    """Settings loaded from ``BROWSER_NODES_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BROWSER_NODES_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Timeouts (milliseconds)
    default_timeout_ms: int = Field(default=30000, ge=0)
    connect_timeout_ms: int = Field(default=30000, ge=0)
    navigation_timeout_ms: int = Field(default=60000, ge=0)

    # Operation defaults
    screenshot_quality: int = Field(default=80, ge=0, le=100)
    enable_caching: bool = True

    # Page agent
    snapshot_max_elements: int = Field(default=400, ge=1)
    snapshot_max_chars: int = Field(default=30000, ge=1000)
    llm_max_tokens: int = Field(default=2048, ge=1)
    llm_cache_ttl_seconds: int = Field(default=3600, ge=0)

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    # MCP server
    host: str = "0.0.0.0"
    port: int = 4010


@lru_cache
def get_settings() -> NodeSettings:
    """Return the process-wide settings instance."""
    return NodeSettings()
