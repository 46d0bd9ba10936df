"""Application settings powered by Pydantic BaseSettings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.features.fetch.config import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT


DEFAULT_LISTING_URL = "https://www.khanacademy.org/api/internal/scratchpads/top"
DEFAULT_TOPIC_ID = "xffde7c31"


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    listing_url: str = Field(
        default=DEFAULT_LISTING_URL, validation_alias="HARVEST_LISTING_URL"
    )
    topic_id: str = Field(default=DEFAULT_TOPIC_ID, validation_alias="HARVEST_TOPIC_ID")
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT, validation_alias="HARVEST_USER_AGENT"
    )
    timeout_seconds: int = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        ge=1,
        le=300,
        validation_alias="HARVEST_TIMEOUT_SECONDS",
    )


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
