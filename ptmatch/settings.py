"""
Application settings for the ptmatch service.

- Defaults are intended for development use.
- For testing, override via pyproject.toml [tool.pytest.ini_options].
- For production, set environment variables to override fields.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ptmatch service configuration."""

    # MongoDB Configuration
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string for the resource store",
    )
    mongodb_database: str = Field(
        default="ptmatch",
        description="Database holding configuration resources and jobs",
    )
    mongodb_server_selection_timeout_ms: int = Field(
        default=5000,
        description="How long to wait for a MongoDB server before failing",
    )

    # Record Matcher Configuration
    record_matcher_timeout: float = Field(
        default=30.0,
        description="Timeout for record match request submission in seconds",
    )
    record_matcher_content_type: str = Field(
        default="application/json",
        description="Content-Type header used when PUTting request messages",
    )

    # Links API
    links_default_limit: int = Field(
        default=10,
        description="Number of links returned when no valid limit is given",
    )

    log_level: str = Field(default="INFO", description="Root logging level")

    model_config = SettingsConfigDict(
        env_prefix="PTMATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
