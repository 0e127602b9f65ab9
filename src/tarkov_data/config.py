"""
Configuration management for Tarkov quest data extraction.

Loads settings from environment variables and config file, with sensible defaults.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TARKOV_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_url: str = Field(
        default="https://api.tarkov.dev/graphql", description="tarkov.dev GraphQL endpoint"
    )
    api_timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")
    api_retries: int = Field(default=3, ge=1, description="GraphQL attempts before giving up")
    api_retry_delay: float = Field(
        default=1.0, ge=0, description="Initial GraphQL retry delay, doubled per attempt"
    )
    wiki_base_url: str = Field(
        default="https://escapefromtarkov.fandom.com", description="Wiki site origin"
    )
    request_delay: float = Field(
        default=2.0, ge=0, description="Delay between live wiki fetches in seconds"
    )
    cached_concurrency: int = Field(
        default=8, ge=1, description="Worker threads when scraping from cached pages"
    )
    cache_dir: Path = Field(
        default_factory=lambda: Path(".cache/tarkov"),
        description="Cache and document storage directory",
    )
    admin_users: list[str] = Field(
        default_factory=list, description="Caller ids allowed to run scraping jobs"
    )
    log_level: str = Field(default="INFO", description="Logging level")


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    global _settings
    _settings = Settings()
    return _settings
