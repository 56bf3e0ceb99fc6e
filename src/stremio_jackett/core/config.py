from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Runtime
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    debug: bool = Field(default=False, alias="DEBUG")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=80, alias="PORT")

    # Rate limit / security
    rate_limit_enabled: bool = Field(default=False, alias="RATE_LIMIT_ENABLED")
    rate_limit_rpm: int = Field(default=120, alias="RATE_LIMIT_RPM")
    allowed_hosts: list[str] = Field(default_factory=lambda: ["*"], alias="ALLOWED_HOSTS")

    # Jackett
    jackett_host: Optional[str] = Field(default=None, alias="JACKETT_HOST")
    jackett_api_key: Optional[str] = Field(default=None, alias="JACKETT_API_KEY")
    jackett_fetch_limit: int = Field(default=50, alias="JACKETT_FETCH_LIMIT")
    jackett_timeout_sec: float = Field(default=20.0, alias="JACKETT_TIMEOUT_SEC")

    # Metadata providers
    tmdb_api_key: Optional[str] = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_base: str = Field(default="https://api.themoviedb.org/3", alias="TMDB_API_BASE")
    omdb_api_key: Optional[str] = Field(default=None, alias="OMDB_API_KEY")
    omdb_api_base: str = Field(default="http://www.omdbapi.com", alias="OMDB_API_BASE")
    metadata_timeout_sec: float = Field(default=8.0, alias="METADATA_TIMEOUT_SEC")

    # Tracker list
    tracker_github_url: Optional[str] = Field(default=None, alias="TRACKER_GITHUB_URL")
    tracker_cache_ttl: int = Field(default=3600, alias="TRACKER_CACHE_TTL")
    tracker_cache_max_urls: int = Field(default=32, alias="TRACKER_CACHE_MAX_URLS")
    tracker_timeout_sec: float = Field(default=10.0, alias="TRACKER_TIMEOUT_SEC")

    # Result shaping defaults (overridable per add-on URL)
    max_results: int = Field(default=20, alias="MAX_RESULTS")
    filter_by_seeders: int = Field(default=0, alias="FILTER_BY_SEEDERS")
    sort_by: str = Field(default="publishDate", alias="SORT_BY")


settings = Settings()
