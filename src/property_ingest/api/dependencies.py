"""FastAPI dependency providers, overridable in tests."""

from property_ingest.config import get_settings
from property_ingest.services.config_generator import (
    ConfigGenerator,
    get_config_generator,
)
from property_ingest.services.ingestion_pipeline import IngestionPipeline


def get_generator() -> ConfigGenerator:
    return get_config_generator()


def get_pipeline() -> IngestionPipeline:
    """New pipeline per request; imports share no mutable state."""
    return IngestionPipeline(generator=get_generator())


def persistence_enabled() -> bool:
    settings = get_settings()
    return bool(settings.supabase_url and settings.supabase_service_key)
