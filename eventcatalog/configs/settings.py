"""Centralized settings management for the event catalog pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings powered by pydantic-settings.

    Loads configuration from environment variables and a .env file located
    at the repository root.
    """

    # -------------------------------------------------------------------------
    # ENVIRONMENT
    # -------------------------------------------------------------------------
    ENV: str = "development"
    DEBUG: bool = True

    # -------------------------------------------------------------------------
    # DATABASE
    # -------------------------------------------------------------------------
    DATABASE_URL: str = Field("sqlite:///./event_catalog.db", min_length=1)

    # Calendar-day bucketing for venues without an explicit timezone
    LOCAL_TIMEZONE: str = "America/Chicago"

    # -------------------------------------------------------------------------
    # SOURCE API KEYS
    # -------------------------------------------------------------------------
    TICKETMASTER_API_KEY: SecretStr | None = None

    # -------------------------------------------------------------------------
    # ENRICHMENT SERVICES
    # -------------------------------------------------------------------------
    OPENAI_API_KEY: SecretStr | None = None
    ANTHROPIC_API_KEY: SecretStr | None = None
    GOOGLE_API_KEY: SecretStr | None = None
    SPOTIFY_CLIENT_ID: str | None = None
    SPOTIFY_CLIENT_SECRET: SecretStr | None = None

    LLM_PROVIDER: str = "openai"
    CLASSIFIER_MODEL: str = "gpt-4o-mini"
    ARBITRATION_MODEL: str = "gpt-4o"

    # -------------------------------------------------------------------------
    # BATCH JOBS
    # -------------------------------------------------------------------------
    CRON_SECRET: SecretStr | None = None

    MATCH_BATCH_SIZE: int = 100
    ENRICH_BATCH_SIZE: int = 50
    ENRICH_MAX_RETRIES: int = 3
    TICKET_CACHE_MONTHS_AHEAD: int = 6

    # Rate-limit pauses (seconds)
    DELAY_BETWEEN_EVENTS: float = 0.5
    DELAY_BETWEEN_REQUESTS: float = 0.1

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    # BASE_DIR points to the eventcatalog package
    BASE_DIR: Path = Path(__file__).resolve().parents[1]

    VENUES_CONFIG_PATH: Path = BASE_DIR / "configs" / "venues.yaml"
    PROMPTS_DIR: Path = BASE_DIR / "agents" / "prompts"

    # -------------------------------------------------------------------------
    # CONFIGURATION
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        # Allow extra fields in .env but ignore them in the model
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
