"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Gateway settings loaded from environment variables.

    All settings can be configured via:
    1. Environment variables (e.g., S3_BUCKET_NAME=media)
    2. .env file in the project root

    The instance is frozen: it is read once at startup and handed to the
    gateway and the auth gate explicitly, never mutated afterwards.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # API settings
    api_title: str = "S3 File Gateway"
    api_version: str = "0.1.0"
    api_prefix: str = "/api"
    debug: bool = False

    # Basic auth (single shared credential pair)
    auth_user: str = "admin"
    auth_password: str | None = None

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Backend store (S3-compatible)
    s3_endpoint: str = "http://localhost:9000"
    s3_bucket_name: str = "files"
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_region: str = "auto"
    s3_public_domain: str | None = None  # CDN/custom domain serving objects directly

    # Timeouts (seconds)
    backend_timeout: float = 30.0
    backend_read_timeout: float = 300.0  # long enough for large media streams

    @field_validator("s3_endpoint")
    @classmethod
    def strip_endpoint_slash(cls, value: str) -> str:
        """Drop a trailing slash so URLs can be joined with '/'."""
        return value.strip().rstrip("/")

    @field_validator("s3_public_domain")
    @classmethod
    def strip_public_domain(cls, value: str | None) -> str | None:
        # An empty S3_PUBLIC_DOMAIN means "not configured"
        if value is None:
            return None
        return value.strip().rstrip("/") or None

    @field_validator("api_prefix")
    @classmethod
    def normalize_api_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value

    @property
    def bucket_url(self) -> str:
        """Path-style URL of the configured bucket."""
        return f"{self.s3_endpoint}/{self.s3_bucket_name}"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded on first use."""
    return Settings()
