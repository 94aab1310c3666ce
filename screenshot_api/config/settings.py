"""
Application Settings
===================

Main application settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Optional, List, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


def _parse_list(v: Union[str, List]) -> List:
    """Parse a list from a JSON array or comma-separated string."""
    if isinstance(v, str):
        v = v.strip()
        if v.startswith("[") and v.endswith("]"):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="Screenshot API", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")
    allowed_hosts: List[str] = Field(default=["*"], description="Allowed hosts for CORS")

    # Storage Configuration
    storage_path: Path = Field(default=Path("./storage"), description="Storage directory path")
    public_base_url: str = Field(
        default="http://localhost:3000/static",
        description="Base URL under which stored screenshots are served",
    )

    # Queue Configuration
    queue_concurrency: int = Field(default=5, gt=0, description="Concurrent active jobs")
    queue_max_attempts: int = Field(default=3, gt=0, description="Attempts per job")
    queue_retry_base: float = Field(
        default=2.0, gt=0, description="Retry delay base in seconds (delay = base ** attempt)"
    )
    queue_retry_delays: Optional[List[float]] = Field(
        default=None, description="Fixed retry delay schedule in seconds, overrides the base"
    )

    # Job Retention Configuration
    job_retention_seconds: float = Field(
        default=3600, gt=0, description="Age after which finished jobs are removed"
    )
    job_cleanup_interval: float = Field(
        default=600, gt=0, description="Interval between finished job sweeps in seconds"
    )

    # Callback Configuration
    callback_max_retries: int = Field(default=3, gt=0, description="Webhook delivery attempts")
    callback_retry_delays: List[float] = Field(
        default=[60, 300, 900], description="Webhook retry delays in seconds"
    )
    callback_timeout: float = Field(default=10.0, gt=0, description="Webhook timeout in seconds")
    callback_user_agent: str = Field(
        default="Screenshot-API/1.0", description="User-Agent header for webhooks"
    )

    # Rate Limiting Configuration
    rate_limit_max_requests: int = Field(default=10, gt=0, description="Requests per window")
    rate_limit_window_seconds: float = Field(
        default=60, gt=0, description="Rate limit window in seconds"
    )
    rate_limit_cleanup_interval: float = Field(
        default=300, gt=0, description="Interval between expired record sweeps in seconds"
    )

    # Screenshot Configuration
    playwright_headless: bool = Field(default=True, description="Run browser in headless mode")
    navigation_timeout: int = Field(
        default=30000, description="Page navigation timeout in milliseconds"
    )
    wait_after_load: int = Field(
        default=1000, description="Wait after page load for dynamic content in milliseconds"
    )
    default_viewport_width: int = Field(default=1920, description="Default viewport width")
    default_viewport_height: int = Field(default=1080, description="Default viewport height")
    default_format: str = Field(default="png", description="Default image format")
    default_quality: int = Field(default=80, ge=1, le=100, description="Default image quality")
    default_full_page: bool = Field(default=True, description="Capture full page by default")

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("default_format")
    @classmethod
    def validate_default_format(cls, v: str) -> str:
        allowed = {"png", "jpeg", "webp"}
        if v.lower() not in allowed:
            raise ValueError(f"Default format must be one of: {allowed}")
        return v.lower()

    @field_validator("allowed_hosts", "callback_retry_delays", "queue_retry_delays", mode="before")
    @classmethod
    def parse_lists(cls, v: Union[str, List, None]) -> Optional[List]:
        """Parse list values from string or list."""
        if v is None:
            return v
        return _parse_list(v)

    @field_validator("storage_path")
    @classmethod
    def create_directories(cls, v: Path) -> Path:
        """Ensure directories exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="SCREENSHOT_API_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
