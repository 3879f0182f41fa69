"""Configuration management for Watchtrack."""

from pydantic import PositiveFloat, PositiveInt, SecretStr, field_validator
from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from urllib.parse import urlparse


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Tracking backend (progress store + default catalog)
    backend_base_url: str = "http://localhost:3000"

    # Session issued by the auth service, sent as the Cookie header
    session_cookie: SecretStr | None = None
    user_id: str | None = None

    # Catalog settings
    catalog_backend: Literal["backend", "tmdb"] = "backend"
    tmdb_api_key: str | None = None
    catalog_cache_ttl: PositiveInt = 1800  # seconds
    catalog_rate_limit: PositiveInt = 20  # catalog requests per second

    # Title views not touched for this long are forgotten
    view_idle_ttl: PositiveInt = 3600  # seconds
    max_open_views: PositiveInt = 1024

    # Network settings
    request_timeout: PositiveFloat = 15.0  # seconds, applied to every request
    write_retries: int = 3  # transport retries for idempotent progress writes
    # Proxy configuration in the format http://host:port or socks5://host:port
    proxy: str | None = None

    # Refetch server truth after a failed write instead of waiting for the
    # next successful mutation
    reconcile_on_failure: bool = True

    @field_validator("backend_base_url")
    @classmethod
    def validate_backend_base_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Backend base URL must be an http(s) URL with a host")
        return v.rstrip("/")

    @field_validator("write_retries")
    @classmethod
    def validate_write_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("write_retries cannot be negative")
        return v

    @field_validator("proxy")
    @classmethod
    def validate_proxy(cls, v: str | None) -> str | None:
        if v is None:
            return v

        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https", "socks4", "socks5", "socks5h"):
            raise ValueError(
                "Proxy must be a valid URL with scheme http/https/socks4/socks5/socks5h"
            )
        if not parsed.netloc:
            raise ValueError("Proxy must have a host and port")
        return v

    # App settings
    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="WATCHTRACK_"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
