"""Configuration management for Quire."""

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = "postgresql://localhost:5432/quire"
    db_host: str | None = None
    db_port: int | None = None
    db_user: str | None = None
    db_password: str | None = None
    db_name: str | None = None
    db_schema: str = "public"
    db_pool_min_size: int = 2
    db_pool_max_size: int = 20
    db_command_timeout: float = 30.0

    # API
    host: str = "0.0.0.0"
    port: int = Field(
        default=19200,
        validation_alias=AliasChoices("port", "quire_port"),
        description="API port (checks PORT, then QUIRE_PORT, defaults to 19200)",
    )
    debug: bool = False

    # Cache
    cache_ttl_seconds: float = 60.0
    cache_max_entries: int = 10_000
    listing_page_size: int = 10
    listing_max_page_size: int = 100

    # Bulk loader
    loader_email: str | None = None
    loader_password: str | None = None
    content_dir: str = "content"

    # Logging
    log_level: str = "INFO"

    @field_validator("cache_ttl_seconds")
    @classmethod
    def validate_cache_ttl(cls, v: float) -> float:
        """Listings are allowed to lag by the TTL, so it must be positive."""
        if v <= 0:
            raise ValueError(f"Invalid CACHE_TTL_SECONDS: {v}. Must be positive.")
        return v

    @field_validator("cache_max_entries")
    @classmethod
    def validate_cache_max_entries(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Invalid CACHE_MAX_ENTRIES: {v}. Must be positive.")
        return v

    @field_validator("db_schema")
    @classmethod
    def validate_db_schema(cls, v: str) -> str:
        """Schema names are interpolated into SQL, so keep them plain."""
        if not v or not v.replace("_", "").isalnum():
            raise ValueError(
                f"Invalid DB_SCHEMA: '{v}'. Only letters, digits and underscores."
            )
        return v

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Parse database URL if individual components not provided
        if not any(
            [self.db_host, self.db_port, self.db_user, self.db_password, self.db_name]
        ):
            from urllib.parse import urlparse

            parsed = urlparse(self.database_url)
            self.db_host = self.db_host or parsed.hostname
            self.db_port = self.db_port or parsed.port
            self.db_user = self.db_user or parsed.username
            self.db_password = self.db_password or parsed.password
            self.db_name = self.db_name or parsed.path.lstrip("/")


# Lazy settings initialization
_settings = None


def get_settings() -> Settings:
    """Get the settings instance, creating it if needed."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


# This will be accessed as a property
class SettingsProxy:
    """Proxy to provide attribute access to settings."""

    def __getattr__(self, name):
        return getattr(get_settings(), name)

    def __setattr__(self, name, value):
        setattr(get_settings(), name, value)


settings = SettingsProxy()
