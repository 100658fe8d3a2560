"""Configuration for the download card service.

Settings come from environment variables (and an optional .env file) and are
cached by get_settings(). They cover the Redis connection, the two Metadata
Store keys and their timeout, and the lifetime and origins of issued links.
"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "download-card"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Public origin of this service, used to build issued links
    BASE_URL: str = "http://localhost:8080"

    # Metadata store (two JSON blobs in Redis)
    REDIS_URL: str = "redis://redis:6379/0"
    ITEMS_KEY: str = "items.json"
    CARDS_KEY: str = "cards.json"
    STORE_TIMEOUT_SECONDS: float = 10.0

    # Link issuance
    LINK_KEY_PREFIX: str = "dllink"
    LINK_TOKEN_LENGTH: int = 21
    LINK_TTL_SECONDS: int = 300
    LINK_ISSUE_TIMEOUT_SECONDS: float = 10.0
    STORAGE_BASE_URL: str = "http://localhost:8081/files"

    # Download form
    STATIC_DIR: str = "static"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
