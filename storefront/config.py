"""
Configuration and settings for the storefront service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STOREFRONT_",
        extra="ignore",
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket_prefix: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Change feed (Redis)
    redis_url: Optional[str] = Field(default=None)
    redis_changes_key: str = Field(default="storefront:changes")
    change_feed_max_events: int = Field(default=1000)

    # Auth
    admin_emails: List[str] = Field(default_factory=list)
    admin_api_token: Optional[str] = Field(default=None)
    session_ttl_seconds: int = Field(default=7 * 24 * 3600)

    # Screenshot / icon compression
    image_max_bytes: int = Field(default=1024 * 1024)
    image_max_dimension: int = Field(default=1280)
    image_quality: int = Field(default=60)

    # Release scanning
    blocked_release_hashes: List[str] = Field(default_factory=list)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
