"""
Configuration for SQLPlay.

All configuration is done via environment variables with the SQLPLAY_ prefix.

Invariants:
    - All settings have sensible defaults for local development
    - environment only affects persisted image names, never engine behavior

How to change safely:
    - Add new settings with defaults that keep existing images readable
    - Never change how environment maps to storage names (see persistence.images)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

import json_log_formatter
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """SQLPlay configuration."""

    # Storage
    environment: str = Field(default="development", description="development or production")
    data_dir: Path = Field(default=Path(".sqlplay"), description="Directory for durable images")

    # Playground runs
    default_dialect: str = Field(default="sqlite")
    toolkit_seed: int | None = Field(
        default=None, description="Seed for the toolkit random generators (None = random)"
    )
    run_timeout_seconds: float = Field(
        default=30.0, description="Abort a run after N seconds (0 = no limit)"
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="text or json")

    # HTTP shell
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8090)
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
    )

    model_config = SettingsConfigDict(env_prefix="SQLPLAY_")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("dev", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings.

    Args:
        settings: SQLPlay settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
