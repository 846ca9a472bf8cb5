"""Configuration management for tubefeed."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="YT_", extra="ignore")

    # Security keys
    app_secret_key: str
    token_enc_key: str

    # Google OAuth (used to refresh per-user access tokens)
    google_client_id: str
    google_client_secret: str

    # YouTube Data API key, used when a user has no usable access token
    youtube_api_key: str = Field(default="")
    youtube_http_timeout_seconds: float = 15.0

    # Database
    database_url: str = "sqlite+aiosqlite:///./dev.db"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Fetch-state cache
    fetch_cache_backend: str = Field(default="memory", pattern="^(memory|redis)$")
    fetch_cache_ttl_seconds: int = 300  # 5 minutes

    # Feed aggregation
    page_size: int = 12
    source_page_size: int = 20
    max_fill_rounds: int = 3
    source_timeout_seconds: float = 20.0

    # Incremental refresh
    refresh_page_size: int = 50  # max allowed by playlistItems.list
    refresh_max_pages: int = 20

    # CORS
    frontend_origin: str = "http://localhost:5173"

    # Environment
    env: str = Field(default="dev", pattern="^(dev|prod)$")
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR)$")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
