"""Application configuration using Pydantic Settings."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Calculate project root: config.py is in productbird/, so go up one level
_CONFIG_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _CONFIG_DIR.parent

# Hard limit of the Productbird bulk endpoint
MAX_BULK_ITEMS = 250


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = Field(default="Productbird Magic Descriptions", description="Application name")
    app_env: str = Field(default="development", description="Application environment")
    log_level: str = Field(default="INFO", description="Root log level", alias="LOG_LEVEL")

    # Security
    secret_key: str = Field(
        default="change-me-in-production",
        description="Secret key for JWT tokens",
        alias="SECRET_KEY",
    )
    algorithm: str = Field(default="HS256", description="JWT algorithm", alias="ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=30,
        description="Access token expiration in minutes",
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./productbird.db",
        description="Database connection URL (SQLite or PostgreSQL)",
        alias="DATABASE_URL",
    )

    # Productbird API
    productbird_api_key: str | None = Field(
        default=None,
        description="Bearer API key for the Productbird service",
        alias="PRODUCTBIRD_API_KEY",
    )
    productbird_api_base_url: str | None = Field(
        default=None,
        description="Explicit API base URL. If unset, chosen from SITE_URL (local vs production)",
        alias="PRODUCTBIRD_API_BASE_URL",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        description="Deadline for each outbound API request",
        alias="HTTP_TIMEOUT_SECONDS",
    )
    max_batch_size: int = Field(
        default=MAX_BULK_ITEMS,
        ge=1,
        le=MAX_BULK_ITEMS,
        description="Maximum number of products per bulk generation request",
        alias="MAX_BATCH_SIZE",
    )

    # Store / site
    site_url: str = Field(
        default="http://localhost:8000",
        description="URL of the store this service belongs to",
        alias="SITE_URL",
    )
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Publicly reachable base URL used to build webhook callback URLs",
        alias="PUBLIC_BASE_URL",
    )
    store_name: str = Field(default="Store", description="Store name sent with payloads", alias="STORE_NAME")
    store_language: str = Field(default="en", description="Two-letter store language", alias="STORE_LANGUAGE")
    default_tone: str | None = Field(default=None, description="Default writing tone", alias="DEFAULT_TONE")
    default_formality: str | None = Field(
        default=None,
        description="Default formality (e.g. formal, informal)",
        alias="DEFAULT_FORMALITY",
    )

    # Webhooks
    webhook_secret: str | None = Field(
        default=None,
        description="Shared secret used to sign webhook callbacks",
        alias="WEBHOOK_SECRET",
    )
    webhook_max_age_seconds: int | None = Field(
        default=None,
        description="Reject webhooks whose timestamp is older than this. Disabled when unset",
        alias="WEBHOOK_MAX_AGE_SECONDS",
    )

    # Poller
    poller_interval_seconds: int = Field(
        default=3600,
        description="Seconds between background poll sweeps",
        alias="POLLER_INTERVAL_SECONDS",
    )
    poller_page_size: int = Field(
        default=100,
        description="Records fetched per page during a poll sweep",
        alias="POLLER_PAGE_SIZE",
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v: str | None) -> str:
        """Validate and normalize database URL."""
        if v is None or v == "":
            raise ValueError("DATABASE_URL is required")
        return v.strip()

    @field_validator("app_env", mode="before")
    @classmethod
    def normalize_app_env(cls, v: str) -> str:
        """Normalize app environment to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("store_language", mode="before")
    @classmethod
    def normalize_store_language(cls, v: str) -> str:
        """Keep only the two-letter language part of a locale such as en_US."""
        if isinstance(v, str):
            return v.strip()[:2].lower()
        return v

    @field_validator("productbird_api_key", "webhook_secret", mode="before")
    @classmethod
    def strip_secret(cls, v: str | None) -> str | None:
        """Strip whitespace from secrets and treat blanks as unset."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @property
    def is_local_site(self) -> bool:
        """Whether the store runs on a localhost-style domain."""
        return any(marker in self.site_url for marker in ("localhost", "127.0.0.1", ".local"))


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings: Application settings instance

    Example:
        ```python
        from productbird.config import get_settings

        settings = get_settings()
        print(settings.database_url)
        ```
    """
    return Settings()


# Global settings instance
settings = get_settings()
