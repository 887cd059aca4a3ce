"""Registry of structured-data providers and URL routing.

Adding a provider means adding one ``ProviderHandle`` to ``PROVIDER_REGISTRY``;
the router, clients and pipeline pick it up from there.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from property_ingest.constants import REALTOR_ACTOR_ID, ZILLOW_ACTOR_ID
from property_ingest.services.cleaners import clean_realtor_json, clean_zillow_json


def start_urls_input(url: str) -> dict[str, Any]:
    """Actor input for scrapers that take a list of start URLs."""
    return {"startUrls": [{"url": url}]}


@dataclass(frozen=True)
class ProviderHandle:
    """One structured-data provider: which hosts it serves and how to run it."""

    id: str
    display_name: str
    actor_id: str
    url_hosts: tuple[str, ...]
    build_actor_input: Callable[[str], dict[str, Any]]
    cleaner: Callable[[Any], Any]

    def matches(self, url: str) -> bool:
        """Exact, case-insensitive hostname match."""
        host = hostname_of(url)
        return host is not None and host in self.url_hosts


PROVIDER_REGISTRY: tuple[ProviderHandle, ...] = (
    ProviderHandle(
        id="zillow",
        display_name="Zillow Detail Scraper",
        actor_id=ZILLOW_ACTOR_ID,
        url_hosts=("zillow.com", "www.zillow.com"),
        build_actor_input=start_urls_input,
        cleaner=clean_zillow_json,
    ),
    ProviderHandle(
        id="realtor",
        display_name="Realtor.com Scraper",
        actor_id=REALTOR_ACTOR_ID,
        url_hosts=("realtor.com", "www.realtor.com"),
        build_actor_input=start_urls_input,
        cleaner=clean_realtor_json,
    ),
)


def hostname_of(url: str) -> str | None:
    """Lowercased hostname, or None when the URL has none."""
    try:
        host = urlparse(url.strip()).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def route(
    url: str, registry: Sequence[ProviderHandle] = PROVIDER_REGISTRY
) -> ProviderHandle | None:
    """
    Pick the structured-data provider for a URL.

    Returns the first registry entry whose hosts contain the URL's hostname,
    or None, meaning the caller falls back to generic HTML scraping.
    """
    for provider in registry:
        if provider.matches(url):
            return provider
    return None


def get_provider(
    provider_id: str, registry: Sequence[ProviderHandle] = PROVIDER_REGISTRY
) -> ProviderHandle | None:
    """Look up a provider by id, e.g. to re-clean a stored raw result."""
    for provider in registry:
        if provider.id == provider_id:
            return provider
    return None
