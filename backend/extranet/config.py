"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Remote catalog service
    backend_base_url: str = "http://localhost:8080"
    backend_timeout_ms: int = 10000

    # Locale defaults carried in wizard addresses
    default_lang: str = "es"
    default_currency: str = "USD"

    # Object storage
    storage_base_url: str = "http://localhost:9000/storage"
    storage_upload_prefix: str = "catalogs/services"

    # Place search
    places_base_url: str = "https://places.googleapis.com/v1"
    places_api_key: str = ""
    places_search_radius_m: int = 10000
    places_debounce_ms: int = 500
    default_center_lat: float = -12.0464
    default_center_lng: float = -77.0428

    # Image step limits
    image_max_bytes: int = 7 * 1024 * 1024
    image_min_width_px: int = 1280
    image_validation_timeout_ms: int = 10000
    image_min_count: int = 3
    image_max_count: int = 5

    # Pricing
    default_commission_percent: float = 0.0

    # Cut-off (minutes)
    default_cutoff_minutes: int = 30

    # Display policy for schedule summaries
    display_timezone: str = "America/Lima"

    # Step cache (optional Redis mirror)
    redis_url: str | None = None
    step_cache_ttl_seconds: int = 7 * 24 * 3600

    # Commit guard (milliseconds)
    commit_timeout_ms: int = 15000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
