"""Application configuration using Pydantic settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central application configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Critical Inline"
    environment: str = "development"
    debug: bool = True

    api_v1_prefix: str = "/v1"
    cors_allowed_origins: List[str] = ["*"]

    redis_url: str = "redis://localhost:6379/0"

    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    api_token: Optional[str] = None
    api_token_header: str = "Authorization"

    # Transform defaults, overridable per build.
    default_defer_strategy: str = "media_print"
    default_match_strategy: str = "tokens"
    default_on_error: str = "abort"
    max_workers: int = 4
    html_parser: str = "html.parser"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
