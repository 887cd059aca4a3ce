"""Integration tests for the ingestion pipeline with fake upstream clients."""

import pytest
from pydantic_ai.models.function import FunctionModel

from property_ingest.exceptions import (
    GenerationFailedError,
    ProviderTimeoutError,
    SourceUnavailableError,
)
from property_ingest.models.generation_models import GenerationStage
from property_ingest.models.scrape_models import RawScrapeResult
from property_ingest.services.ingestion_pipeline import (
    IngestionPipeline,
    build_source_material,
    clean_raw_result,
)

ZILLOW_URL = "https://www.zillow.com/homedetails/123-main-st/12345_zpid/"
HTML_URL = "https://example.com/listing/123-main-st"


class FakeStructuredClient:
    """Returns a fixed dataset and records calls."""

    def __init__(self, payload=None, error: Exception | None = None):
        self.payload = payload if payload is not None else []
        self.error = error
        self.runs: list[str] = []
        self.resumes: list[tuple[str, str, str | None]] = []

    def _result(self, provider, url):
        return RawScrapeResult(
            provider=f"structured:{provider.id}", source_url=url, payload=self.payload
        )

    async def run(self, provider, url):
        self.runs.append(url)
        if self.error is not None:
            raise self.error
        return self._result(provider, url)

    async def resume(self, provider, url, run_id, dataset_id):
        self.resumes.append((url, run_id, dataset_id))
        return self._result(provider, url)


class FakeHtmlFetcher:
    def __init__(self, html: str = ""):
        self.html = html
        self.fetched: list[str] = []

    async def fetch(self, url):
        self.fetched.append(url)
        return RawScrapeResult(provider="html", source_url=url, payload=self.html)


def _failing_model() -> FunctionModel:
    def fail(messages, info):
        raise RuntimeError("refinement model down")

    return FunctionModel(fail)


class TestStructuredPath:
    """Provider URLs go through the structured client and its cleaner."""

    @pytest.mark.asyncio
    async def test_full_import(self, generator, zillow_record):
        client = FakeStructuredClient(payload=[zillow_record])
        fetcher = FakeHtmlFetcher()
        pipeline = IngestionPipeline(
            generator=generator, structured_client=client, html_fetcher=fetcher
        )

        result = await pipeline.run(ZILLOW_URL)

        assert client.runs == [ZILLOW_URL]
        assert fetcher.fetched == []
        assert result.stage == GenerationStage.CALL2_DONE
        assert result.refined is True
        assert result.base_config.listing.title == "Craftsman Charm Steps from the Park"
        assert "call1" in result.base_config.diagnostics
        assert "call2" in result.base_config.diagnostics
        assert result.page_config.site_content["hero-0"]["headline"] == (
            "Craftsman Charm Steps from the Park"
        )
        assert result.base_config.hero_image_index == 1
        assert result.page_config.site_content["hero-0"]["propertyImage"] == (
            "https://photos.example.com/b_1536.jpg"
        )
        assert result.page_config.metadata["call3_model"] == "test"

    @pytest.mark.asyncio
    async def test_raw_kept_and_cleaned_separately(self, generator, zillow_record):
        """The raw payload is untouched; the cleaned view drops noise."""
        pipeline = IngestionPipeline(
            generator=generator,
            structured_client=FakeStructuredClient(payload=[zillow_record]),
            html_fetcher=FakeHtmlFetcher(),
        )

        result = await pipeline.run(ZILLOW_URL)

        assert result.raw.payload[0]["zpid"] == 12345
        assert "zpid" not in result.cleaned.payload[0]
        assert result.cleaned.captured_at == result.raw.captured_at
        assert "Price: $450,000" in result.source.text
        assert "Zpid" not in result.source.text

    @pytest.mark.asyncio
    async def test_empty_dataset_is_extraction_incomplete(self, generator):
        """No usable data is reported, not raised, and no AI call runs."""
        pipeline = IngestionPipeline(
            generator=generator,
            structured_client=FakeStructuredClient(payload=[]),
            html_fetcher=FakeHtmlFetcher(),
        )

        result = await pipeline.run(ZILLOW_URL)

        assert result.extraction_incomplete is True
        assert result.stage == GenerationStage.NOT_STARTED
        assert result.page_config is None
        assert result.base_config is None

    @pytest.mark.asyncio
    async def test_timeout_propagates(self, generator):
        error = ProviderTimeoutError("timed out", run_id="run-1")
        pipeline = IngestionPipeline(
            generator=generator,
            structured_client=FakeStructuredClient(error=error),
            html_fetcher=FakeHtmlFetcher(),
        )

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await pipeline.run(ZILLOW_URL)

        assert exc_info.value.run_id == "run-1"

    @pytest.mark.asyncio
    async def test_resume(self, generator, zillow_record):
        client = FakeStructuredClient(payload=[zillow_record])
        pipeline = IngestionPipeline(
            generator=generator, structured_client=client, html_fetcher=FakeHtmlFetcher()
        )

        result = await pipeline.resume(ZILLOW_URL, "run-1", "ds-1")

        assert client.resumes == [(ZILLOW_URL, "run-1", "ds-1")]
        assert client.runs == []
        assert result.page_config is not None

    @pytest.mark.asyncio
    async def test_resume_requires_provider_url(self, generator):
        pipeline = IngestionPipeline(
            generator=generator,
            structured_client=FakeStructuredClient(),
            html_fetcher=FakeHtmlFetcher(),
        )

        with pytest.raises(SourceUnavailableError):
            await pipeline.resume(HTML_URL, "run-1")


class TestHtmlPath:
    """Other URLs are fetched as HTML, cleaned and extracted."""

    @pytest.mark.asyncio
    async def test_html_import(self, generator, listing_html):
        fetcher = FakeHtmlFetcher(listing_html)
        pipeline = IngestionPipeline(
            generator=generator,
            structured_client=FakeStructuredClient(),
            html_fetcher=fetcher,
        )

        result = await pipeline.run(HTML_URL)

        assert fetcher.fetched == [HTML_URL]
        assert result.record.price == 1250000
        assert "STRUCTURED DATA (JSON):" in result.source.text
        assert "EXTRACTED FACTS:" in result.source.text
        assert "PAGE TEXT:" in result.source.text
        assert "refinance" not in result.source.text
        assert result.page_config is not None

    @pytest.mark.asyncio
    async def test_no_generator_uses_heuristic_layout(self, listing_html):
        pipeline = IngestionPipeline(
            generator=None,
            structured_client=FakeStructuredClient(),
            html_fetcher=FakeHtmlFetcher(listing_html),
        )

        result = await pipeline.run(HTML_URL)

        assert result.stage == GenerationStage.NOT_STARTED
        assert result.base_config is None
        hero = result.page_config.site_content["hero-0"]
        assert hero["headline"] == "Charming Craftsman Bungalow"
        assert hero["price"] == "$1,250,000"

    @pytest.mark.asyncio
    async def test_page_without_facts(self, generator):
        pipeline = IngestionPipeline(
            generator=generator,
            structured_client=FakeStructuredClient(),
            html_fetcher=FakeHtmlFetcher("<html><body><div>Hi</div></body></html>"),
        )

        result = await pipeline.run(HTML_URL)

        assert result.extraction_incomplete is True
        assert result.page_config is None


class TestGenerationFailures:
    """Stage failures are isolated."""

    @pytest.mark.asyncio
    async def test_call2_failure_keeps_call1(self, generator, zillow_record):
        """A failed refinement leaves the Call 1 title and highlights in place."""
        pipeline = IngestionPipeline(
            generator=generator,
            structured_client=FakeStructuredClient(payload=[zillow_record]),
            html_fetcher=FakeHtmlFetcher(),
        )

        with generator.refinement_agent.override(model=_failing_model()):
            result = await pipeline.run(ZILLOW_URL)

        assert result.stage == GenerationStage.CALL2_FAILED
        assert "refinement model down" in result.refinement_error
        assert result.base_config.listing.title == "3 Bed Craftsman in Springfield"
        assert [h.title for h in result.base_config.listing.highlights] == ["Big Yard"]
        assert "call2" not in result.base_config.diagnostics
        assert result.page_config is not None

    @pytest.mark.asyncio
    async def test_call3_failure_keeps_first_photo(self, generator, zillow_record):
        """A failed image analysis keeps the refined listing and the first photo."""
        pipeline = IngestionPipeline(
            generator=generator,
            structured_client=FakeStructuredClient(payload=[zillow_record]),
            html_fetcher=FakeHtmlFetcher(),
        )

        with generator.image_agent.override(model=_failing_model()):
            result = await pipeline.run(ZILLOW_URL)

        assert result.stage == GenerationStage.CALL2_DONE
        assert result.refinement_error is None
        assert result.image_analysis_error.startswith("call3 failed")
        assert result.base_config.hero_image_index is None
        assert "call3" not in result.base_config.diagnostics
        assert result.page_config.site_content["hero-0"]["propertyImage"] == (
            "https://photos.example.com/a_1536.jpg"
        )

    @pytest.mark.asyncio
    async def test_call1_failure_propagates(self, generator, zillow_record):
        pipeline = IngestionPipeline(
            generator=generator,
            structured_client=FakeStructuredClient(payload=[zillow_record]),
            html_fetcher=FakeHtmlFetcher(),
        )

        with generator.listing_agent.override(model=_failing_model()):
            with pytest.raises(GenerationFailedError):
                await pipeline.run(ZILLOW_URL)


class TestRawResultSink:
    @pytest.mark.asyncio
    async def test_sync_sink_called_once(self, zillow_record):
        captured = []
        pipeline = IngestionPipeline(
            generator=None,
            structured_client=FakeStructuredClient(payload=[zillow_record]),
            html_fetcher=FakeHtmlFetcher(),
            raw_result_sink=captured.append,
        )

        result = await pipeline.run(ZILLOW_URL)

        assert captured == [result.raw]

    @pytest.mark.asyncio
    async def test_async_sink_awaited(self, zillow_record):
        captured = []

        async def sink(raw):
            captured.append(raw)

        pipeline = IngestionPipeline(
            generator=None,
            structured_client=FakeStructuredClient(payload=[zillow_record]),
            html_fetcher=FakeHtmlFetcher(),
            raw_result_sink=sink,
        )

        await pipeline.run(ZILLOW_URL)

        assert len(captured) == 1


class TestRecleaning:
    """Stored raw results can be cleaned again without a network call."""

    def test_clean_raw_result_is_repeatable(self, zillow_record):
        raw = RawScrapeResult(
            provider="structured:zillow", source_url=ZILLOW_URL, payload=[zillow_record]
        )

        assert clean_raw_result(raw) == clean_raw_result(raw)

    def test_unknown_provider_only_normalized(self):
        raw = RawScrapeResult(
            provider="structured:redfin",
            source_url="https://www.redfin.com/1",
            payload=[{"zpid": 1, "empty": ""}],
        )

        assert clean_raw_result(raw).payload == [{"zpid": 1}]

    def test_provider_source_material(self, zillow_record):
        raw = RawScrapeResult(
            provider="structured:zillow", source_url=ZILLOW_URL, payload=[zillow_record]
        )
        source, record = build_source_material(raw, clean_raw_result(raw))

        assert record is None
        assert source.provider == "structured:zillow"
        assert source.has_usable_content


class TestSiteProcessors:
    """Listing-site pages are narrowed and their galleries read before extraction."""

    REDFIN_URL = "https://www.redfin.com/CA/Oakland/9-Bay-St/home/1"
    REDFIN_HTML = """<html><body>
<h1>9 Bay St</h1><div class="price">$900,000</div>
<img src="https://example.com/street.jpg">
<div class="photo-carousel">
  <img src="https://ssl.cdn-redfin.com/photo/1.jpg" width="800" height="600">
  <img src="https://ssl.cdn-redfin.com/photo/2.jpg" width="800" height="600">
</div>
</body></html>"""

    def test_gallery_images_lead(self):
        raw = RawScrapeResult(provider="html", source_url=self.REDFIN_URL, payload=self.REDFIN_HTML)

        _, record = build_source_material(raw, clean_raw_result(raw))

        assert record.images[:2] == [
            "https://ssl.cdn-redfin.com/photo/1.jpg",
            "https://ssl.cdn-redfin.com/photo/2.jpg",
        ]

    def test_realtor_sidebar_not_cleaned_into_payload(self):
        raw = RawScrapeResult(
            provider="html",
            source_url="https://www.realtor.com/realestateandhomes-detail/12-Oak-Ave",
            payload=(
                "<html><body><main><h1>12 Oak Ave</h1><p>Three bedroom home</p>"
                '<div data-testid="ldp-sidebar">Contact agent Jane</div></main>'
                "<footer>Site footer</footer></body></html>"
            ),
        )

        cleaned = clean_raw_result(raw)

        assert "12 Oak Ave" in cleaned.payload
        assert "Contact agent" not in cleaned.payload
        assert "Site footer" not in cleaned.payload

    @pytest.mark.asyncio
    async def test_html_import_uses_gallery(self):
        pipeline = IngestionPipeline(
            generator=None,
            structured_client=FakeStructuredClient(),
            html_fetcher=FakeHtmlFetcher(self.REDFIN_HTML),
        )

        result = await pipeline.run(self.REDFIN_URL)

        assert result.record.images[0] == "https://ssl.cdn-redfin.com/photo/1.jpg"
