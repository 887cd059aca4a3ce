"""Supabase client initialization."""

from supabase import Client, create_client

from property_ingest.config import get_settings


def get_supabase_client() -> Client:
    """Get Supabase client instance.

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_SERVICE_KEY is not configured
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be configured")
    return create_client(settings.supabase_url, settings.supabase_service_key)
