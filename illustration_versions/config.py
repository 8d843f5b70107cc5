"""
Configuration management for the illustration version graph service.
"""

from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Every field can be overridden by the upper-cased environment variable of
    the same name (``DATABASE_URL``, ``LOG_LEVEL``...) or by a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Application
    app_name: str = Field(default="Illustration Version Graph")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Database
    database_url: str = Field(default="sqlite:///./illustration_versions.db")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")

    # Version graph
    version_number_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts at assigning a version number before a conflict is surfaced",
    )
    history_page_size: int = Field(
        default=100,
        ge=1,
        description="Default page size of generation history queries",
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
