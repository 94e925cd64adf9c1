"""Engine settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="discussion-sync", description="Application name")

    # Remote comment service
    comments_api_base_url: str = Field(
        default="http://localhost:3001/api",
        description="Base URL of the remote comment service",
    )
    comments_api_timeout_seconds: float = Field(
        default=30.0, description="Request timeout for remote calls"
    )
    comments_page_size: int = Field(
        default=20, ge=1, le=100, description="Comments fetched per page"
    )

    # Content rules
    comment_min_length: int = Field(default=1, ge=1, description="Min content length")
    comment_max_length: int = Field(
        default=500, ge=1, description="Max content length (after sanitization)"
    )

    # Optimistic updates
    optimistic_rollback_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Seconds before an unconfirmed operation is rolled back",
    )

    # Threading
    max_reply_depth: int = Field(
        default=5, ge=0, description="Deepest reply level kept in the comment tree"
    )

    # Rate limiting (fixed window, per actor and action)
    comment_rate_limit_max: int = Field(default=10, ge=1)
    comment_rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    reply_rate_limit_max: int = Field(default=20, ge=1)
    reply_rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    like_rate_limit_max: int = Field(default=50, ge=1)
    like_rate_limit_window_seconds: float = Field(default=60.0, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=False, description="Include caller info"
    )
    log_to_file: bool = Field(default=False, description="Also write JSON log files")
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
