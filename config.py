"""
Configuration settings for the nanshe learning client.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are read with the ``NANSHE_`` prefix (e.g. ``NANSHE_API_BASE_URL``).
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NANSHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Backend API
    # ========================================
    api_base_url: str = Field(
        default="http://127.0.0.1:8000/api/v2",
        description="Base URL of the learning platform REST API (including version prefix)",
    )
    api_token: str | None = Field(
        default=None,
        description="Bearer token sent with every request (issued by the auth collaborator)",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Per-request timeout for backend calls",
    )
    activity_end_path: str = Field(
        default="/progress/activity/end",
        description="Endpoint receiving the best-effort activity end beacon",
    )

    # ========================================
    # Normalization defaults
    # ========================================
    default_xp_target: int = Field(
        default=6000,
        description="XP target used when a capsule payload carries none",
    )
    journal_summary_length: int = Field(
        default=280,
        description="Characters of content kept as a derived journal summary",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
