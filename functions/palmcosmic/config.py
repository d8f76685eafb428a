"""
Configuration and settings for the PalmCosmic backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from models import api_config


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    cors_allow_origins: list[str] = Field(default=["*"])

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    # S3-compatible object storage
    s3_endpoint: Optional[str] = Field(default=None, alias="S3_ENDPOINT")
    s3_region: Optional[str] = Field(default=None, alias="S3_REGION")
    s3_bucket: Optional[str] = Field(default=None, alias="S3_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )
    storage_public_base_url: Optional[str] = Field(
        default=None, alias="STORAGE_PUBLIC_BASE_URL"
    )

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_text_model: str = Field(
        default="gemini-2.5-flash", alias="GEMINI_TEXT_MODEL"
    )
    gemini_image_model: str = Field(
        default="imagen-3.0-generate-002", alias="GEMINI_IMAGE_MODEL"
    )

    # Transactional email (Resend)
    resend_api_key: Optional[str] = Field(default=None, alias="RESEND_API_KEY")
    email_from: str = Field(
        default="PalmCosmic <no-reply@palmcosmic.app>", alias="EMAIL_FROM"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="PALMCOSMIC_USE_IN_MEMORY_BACKENDS"
    )

    # Queue and change feed (Redis)
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    redis_queue_key: str = Field(
        default="palmcosmic:analysis-jobs", alias="REDIS_QUEUE_KEY"
    )
    redis_channel_prefix: str = Field(
        default="palmcosmic:changes", alias="REDIS_CHANNEL_PREFIX"
    )

    # Application limits
    chat_context_window: int = Field(default=10)
    max_upload_bytes: int = Field(default=5 * 1024 * 1024)
    reading_name_max_length: int = Field(default=50)
    stale_job_timeout_seconds: float = Field(default=900)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


def apply_model_settings(settings: Settings) -> None:
    """Points the shared Gemini defaults at the configured key and models."""
    if settings.gemini_api_key:
        api_config.DEFAULT_API_KEY = settings.gemini_api_key
    api_config.DEFAULT_TEXT_MODEL = settings.gemini_text_model
    api_config.DEFAULT_IMAGE_MODEL = settings.gemini_image_model
