"""Central configuration management using pydantic-settings.

All configuration is loaded from environment variables with sensible defaults.
Create a .env file for local development.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedSettings(BaseSettings):
    """Feed assembly and caching configuration."""

    model_config = SettingsConfigDict(env_prefix="FEED_")

    default_limit: int = Field(default=50, gt=0, description="Items per feed when no limit is given")
    max_limit: int = Field(default=250, gt=0, description="Upper bound on requested item limits")
    cache_ttl_seconds: float = Field(default=86400, gt=0, description="Lifetime of cached upstream results")
    cache_sweep_interval_seconds: float = Field(
        default=3600, gt=0, description="Interval between expired cache entry sweeps"
    )
    resolve_concurrency: int = Field(
        default=4, gt=0, description="Enclosures resolved in parallel per feed"
    )


class MixcloudSettings(BaseSettings):
    """Mixcloud back-end configuration."""

    model_config = SettingsConfigDict(env_prefix="MIXCLOUD_")

    api_base_url: str = Field(default="https://api.mixcloud.com", description="Mixcloud API base URL")
    site_base_url: str = Field(default="https://www.mixcloud.com", description="Mixcloud website base URL")
    page_size: int = Field(default=50, gt=0, le=100, description="Cloudcasts requested per API call")
    timeout_seconds: float = Field(default=30, gt=0, description="HTTP request timeout")


class YouTubeSettings(BaseSettings):
    """YouTube back-end configuration."""

    model_config = SettingsConfigDict(env_prefix="YOUTUBE_")

    site_base_url: str = Field(default="https://www.youtube.com", description="YouTube website base URL")
    page_size: int = Field(default=50, gt=0, description="Videos listed per extraction")


class Settings(BaseSettings):
    """Main application settings aggregating all config sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    json_logs: bool = Field(default=False, description="Render logs as JSON")

    # The URL at which the application is hosted or proxied from
    public_url: str | None = Field(
        default=None, description="Public base URL used for enclosure download links"
    )

    # Sub-configurations
    feed: FeedSettings = Field(default_factory=FeedSettings)
    mixcloud: MixcloudSettings = Field(default_factory=MixcloudSettings)
    youtube: YouTubeSettings = Field(default_factory=YouTubeSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings loaded from environment.
    """
    return Settings()
