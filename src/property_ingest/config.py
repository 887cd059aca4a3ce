"""Application configuration using Pydantic BaseSettings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from property_ingest.constants import (
    DEFAULT_APIFY_BASE_URL,
    DEFAULT_FIRECRAWL_BASE_URL,
    DEFAULT_GENERATION_MODEL,
    DEFAULT_HTML_FETCH_TIMEOUT_SECONDS,
    DEFAULT_PROVIDER_POLL_INTERVAL_SECONDS,
    DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    DEFAULT_SCRAPERAPI_BASE_URL,
    GENERATION_TEMPERATURE,
    IMAGE_ANALYSIS_TEMPERATURE,
    REFINEMENT_TEMPERATURE,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every credential is optional: the cleaning, extraction and configuration
    stages run without any of them, and each network client checks for its
    own token when it is first used.
    """

    model_config = SettingsConfigDict(
        # .env.local is read last so it overrides .env
        env_file=[".env", ".env.local"],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: Literal["local", "railway", "prod", "test"] = Field(
        default="local", description="Current environment"
    )
    log_level: str = Field(default="INFO", description="Python logging level")

    # Structured-data provider (Apify actors)
    apify_api_token: str | None = Field(
        default=None, description="Apify API token for actor runs"
    )
    apify_base_url: str = Field(
        default=DEFAULT_APIFY_BASE_URL, description="Apify REST API base URL"
    )

    # Generic HTML scraping API
    scraperapi_key: str | None = Field(
        default=None, description="ScraperAPI key for generic HTML fetches"
    )
    scraperapi_base_url: str = Field(
        default=DEFAULT_SCRAPERAPI_BASE_URL, description="ScraperAPI endpoint"
    )
    scraper_provider: Literal["scraperapi", "firecrawl"] = Field(
        default="scraperapi", description="Service used for generic HTML fetches"
    )
    firecrawl_api_key: str | None = Field(
        default=None, description="Firecrawl API key, when scraper_provider is firecrawl"
    )
    firecrawl_base_url: str = Field(
        default=DEFAULT_FIRECRAWL_BASE_URL, description="Firecrawl REST API base URL"
    )

    # AI generation (PydanticAI model strings, e.g. 'openai:gpt-4o-mini')
    default_model: str = Field(
        default=DEFAULT_GENERATION_MODEL,
        description="Model used for the generation calls",
    )
    generation_temperature: float = Field(
        default=GENERATION_TEMPERATURE,
        ge=0.0,
        le=2.0,
        description="Temperature for Call 1 (base configuration)",
    )
    refinement_temperature: float = Field(
        default=REFINEMENT_TEMPERATURE,
        ge=0.0,
        le=2.0,
        description="Temperature for Call 2 (title and highlights)",
    )
    hero_image_analysis_enabled: bool = Field(
        default=True,
        description="Run Call 3 (photo scoring) to pick the hero image",
    )
    image_analysis_model: str | None = Field(
        default=None,
        description="Vision-capable model for Call 3; defaults to default_model",
    )
    image_analysis_temperature: float = Field(
        default=IMAGE_ANALYSIS_TEMPERATURE,
        ge=0.0,
        le=2.0,
        description="Temperature for Call 3 (hero image selection)",
    )

    # Supabase Configuration
    supabase_url: str | None = Field(default=None, description="Supabase project URL")
    supabase_service_key: str | None = Field(
        default=None, description="Supabase service role key"
    )

    # Sentry Configuration
    sentry_dsn: str | None = Field(
        default=None, description="Sentry DSN for error tracking (optional)"
    )
    sentry_traces_sample_rate: float = Field(
        default=1.0, description="Sentry traces sample rate (0.0 to 1.0)"
    )

    # Logfire Configuration
    logfire_token: str | None = Field(
        default=None, description="Pydantic Logfire token for observability"
    )

    # ==========================================================================
    # Timeout Configuration
    # ==========================================================================
    # Defaults are sourced from property_ingest/constants.py.

    provider_timeout_seconds: float = Field(
        default=DEFAULT_PROVIDER_TIMEOUT_SECONDS,
        gt=0,
        description="Hard wall-clock budget for a structured provider run (seconds)",
    )
    provider_poll_interval_seconds: float = Field(
        default=DEFAULT_PROVIDER_POLL_INTERVAL_SECONDS,
        gt=0,
        description="Constant interval between provider run status polls (seconds)",
    )
    html_fetch_timeout_seconds: float = Field(
        default=DEFAULT_HTML_FETCH_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for a generic HTML fetch (seconds)",
    )

    @field_validator("scraper_provider", mode="before")
    @classmethod
    def _lowercase_provider(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
