"""Application settings, read from the environment."""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="POCUS_", env_file=".env", extra="ignore"
    )

    # App
    app_name: str = "POCUS AI"
    log_level: str = "INFO"
    default_language: str = "ko"

    # Storage
    storage_dir: Optional[str] = None  # None keeps everything in memory
    storage_prefix: str = "pocus_ai_"

    # Bootstrap administrator (pre-shared)
    admin_username: str = "pocus-admin"
    admin_password: str = "change-me-admin"
    admin_email: str = "admin@pocus-ai.com"

    # Model boundary
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("POCUS_GEMINI_API_KEY", "GEMINI_API_KEY", "API_KEY"),
    )
    gemini_model: str = "gemini-3-pro-preview"
    openai_model: str = "gpt-4o"
    temperature: float = 0.2


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the running app."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
