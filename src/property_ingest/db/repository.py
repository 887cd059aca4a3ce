"""Raw scrape results and site configuration repository."""

from typing import Any

import logfire

from property_ingest.db.client import get_supabase_client
from property_ingest.models.page_config_models import PageConfig
from property_ingest.models.scrape_models import RawScrapeResult
from property_ingest.services.page_config import serialize_for_storage, to_current

SCRAPE_RESULTS_TABLE = "scrape_results"
SITES_TABLE = "sites"


def save_raw_scrape_result(raw: RawScrapeResult, preview_id: str | None = None) -> str:
    """
    Insert a captured upstream response.

    Rows are never updated: a retried import inserts a new row.

    Args:
        raw: Captured result
        preview_id: Temporary preview the import belongs to, if any

    Returns:
        scrape_results row id
    """
    supabase = get_supabase_client()
    data = {
        "preview_id": preview_id,
        "provider": raw.provider,
        "source_url": raw.source_url,
        "payload": raw.payload,
        "captured_at": raw.captured_at.isoformat(),
        "duration_ms": raw.duration_ms,
    }
    result = supabase.table(SCRAPE_RESULTS_TABLE).insert(data).execute()
    if not result.data:
        raise ValueError("Failed to save scrape result")
    logfire.info(
        "Raw scrape result saved",
        provider=raw.provider,
        source_url=raw.source_url,
        preview_id=preview_id,
    )
    return result.data[0]["id"]


def get_raw_scrape_result(result_id: str) -> RawScrapeResult | None:
    """Load a stored raw result, e.g. to re-clean it."""
    supabase = get_supabase_client()
    result = (
        supabase.table(SCRAPE_RESULTS_TABLE)
        .select("provider, source_url, payload, captured_at, duration_ms")
        .eq("id", result_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        return None
    return RawScrapeResult.model_validate(result.data[0])


def get_site_configuration(site_id: str) -> PageConfig:
    """
    Read a site's configuration as v2.

    Missing sites and unreadable blobs come back as the default configuration.
    """
    supabase = get_supabase_client()
    result = (
        supabase.table(SITES_TABLE)
        .select("configuration")
        .eq("id", site_id)
        .limit(1)
        .execute()
    )
    stored: Any = result.data[0].get("configuration") if result.data else None
    if stored is None:
        logfire.info("No stored configuration, using default", site_id=site_id)
    return to_current(stored)


def save_site_configuration(site_id: str, config: PageConfig) -> None:
    """Write a configuration as v2 without diagnostics. Last write wins."""
    supabase = get_supabase_client()
    payload = serialize_for_storage(config)
    result = (
        supabase.table(SITES_TABLE)
        .update({"configuration": payload})
        .eq("id", site_id)
        .execute()
    )
    if not result.data:
        raise ValueError(f"Site not found: {site_id}")
    logfire.info(
        "Site configuration saved",
        site_id=site_id,
        section_count=len(config.section_settings),
    )
