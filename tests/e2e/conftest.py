"""Fixtures for end-to-end tests: pipelines over canned upstream responses."""

import pytest

from property_ingest.models.scrape_models import RawScrapeResult
from property_ingest.services.ingestion_pipeline import IngestionPipeline


class CannedStructuredClient:
    def __init__(self, payload=None, error: Exception | None = None):
        self.payload = payload if payload is not None else []
        self.error = error

    async def run(self, provider, url):
        if self.error is not None:
            raise self.error
        return RawScrapeResult(
            provider=f"structured:{provider.id}", source_url=url, payload=self.payload
        )

    async def resume(self, provider, url, run_id, dataset_id):
        return await self.run(provider, url)


class CannedHtmlFetcher:
    def __init__(self, html: str = "", error: Exception | None = None):
        self.html = html
        self.error = error

    async def fetch(self, url):
        if self.error is not None:
            raise self.error
        return RawScrapeResult(provider="html", source_url=url, payload=self.html)


@pytest.fixture
def make_pipeline():
    """Build an IngestionPipeline whose upstream calls return canned data.

    Keyword args: generator, payload (provider dataset), html, structured_error,
    html_error.
    """

    def factory(
        generator=None,
        payload=None,
        html: str = "",
        structured_error: Exception | None = None,
        html_error: Exception | None = None,
    ) -> IngestionPipeline:
        return IngestionPipeline(
            generator=generator,
            structured_client=CannedStructuredClient(payload, structured_error),
            html_fetcher=CannedHtmlFetcher(html, html_error),
        )

    return factory
