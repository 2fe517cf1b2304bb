"""Settings for the Inkwell search service."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    redis_url: str = _env_field("redis://localhost:6379/0", "REDIS_URL")

    # Upstream content API; unset means the in-process memory source is used
    content_api_base_url: Optional[str] = _env_field(None, "CONTENT_API_BASE_URL")
    content_api_timeout_seconds: float = _env_field(5.0, "CONTENT_API_TIMEOUT_SECONDS")

    search_cache_backend: str = _env_field("memory", "SEARCH_CACHE_BACKEND")
    search_cache_ttl_seconds: float = _env_field(300.0, "SEARCH_CACHE_TTL_SECONDS")
    search_cache_max_entries: int = _env_field(1000, "SEARCH_CACHE_MAX_ENTRIES")
    search_default_limit: int = _env_field(20, "SEARCH_DEFAULT_LIMIT")
    search_max_limit: int = _env_field(100, "SEARCH_MAX_LIMIT")
    search_bulk_page_size: int = _env_field(50, "SEARCH_BULK_PAGE_SIZE")
    search_debounce_ms: int = _env_field(300, "SEARCH_DEBOUNCE_MS")
    search_recent_history: int = _env_field(5, "SEARCH_RECENT_HISTORY")

    feed_top_n: int = _env_field(6, "FEED_TOP_N")

    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    obs_enabled: bool = _env_field(True, "OBS_ENABLED")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(1.0, "LOG_SAMPLING_RATE_INFO")
    service_name: str = _env_field("inkwell-search", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("search_cache_backend", mode="before")
    def _normalise_backend(cls, value):  # type: ignore[override]
        if value in (None, ""):
            return "memory"
        return str(value).strip().lower()

    @field_validator("content_api_base_url", mode="before")
    def _blank_url(cls, value):  # type: ignore[override]
        if isinstance(value, str) and not value.strip():
            return None
        return value


def _normalise_level(level: str) -> str:
    return level.upper()


settings = Settings()
settings.obs_log_level = _normalise_level(settings.obs_log_level)

