"""Ingestion pipeline: one listing URL in, one page configuration out.

Flow for a single import:

1. Route the URL to a structured-data provider, or fall back to HTML.
2. Fetch once and keep the immutable RawScrapeResult.
3. Clean: provider JSON through its cleaner, or HTML through the site
   processor for its host (if any), structured-data pre-extraction, the HTML
   cleaner and the heuristic extractor. Site gallery photos lead the images.
4. Render the cleaned data as text for Call 1.
5. Call 1 (base configuration), then Call 2 (title and highlights) and
   Call 3 (hero photo) in parallel. A failed Call 2 keeps the Call 1 values;
   a failed Call 3 keeps the first photo as hero.
6. Lay the result out as a v2 page configuration.

Extraction that finds nothing usable is reported on the result, not raised.
"""

import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import logfire
from pydantic import BaseModel, Field

from property_ingest.exceptions import GenerationFailedError, SourceUnavailableError
from property_ingest.models.generation_models import (
    BaseConfig,
    GenerationStage,
    SourceMaterial,
)
from property_ingest.models.page_config_models import PageConfig
from property_ingest.models.property_models import ParsedPropertyRecord
from property_ingest.models.scrape_models import CleanedPayload, RawScrapeResult
from property_ingest.services.config_generator import (
    ConfigGenerator,
    GenerationSession,
    to_page_configuration,
)
from property_ingest.services.html_cleaner import clean_html
from property_ingest.services.html_processors import gallery_images_for, preprocess_html
from property_ingest.services.json_normalizer import normalize
from property_ingest.services.page_config import page_config_from_record
from property_ingest.services.property_extractor import (
    extract_property_data,
    with_gallery_images,
)
from property_ingest.services.provider_client import (
    ApifyClient,
    HtmlFetcher,
    StructuredProviderClient,
    get_html_fetcher,
)
from property_ingest.services.provider_router import (
    PROVIDER_REGISTRY,
    ProviderHandle,
    get_provider,
    route,
)
from property_ingest.services.structured_data import (
    StructuredPageData,
    extract_structured_data,
)
from property_ingest.services.text_formatter import (
    format_property_record,
    format_provider_json_as_text,
    format_structured_page_data,
    html_to_structured_text,
)

logger = logging.getLogger(__name__)

RawResultSink = Callable[[RawScrapeResult], Awaitable[Any] | Any]


class IngestionResult(BaseModel):
    """Everything one import produced, including partial results."""

    source_url: str
    raw: RawScrapeResult
    cleaned: CleanedPayload
    source: SourceMaterial
    record: ParsedPropertyRecord | None = Field(
        default=None, description="Heuristic extraction (HTML path only)"
    )
    base_config: BaseConfig | None = None
    page_config: PageConfig | None = None
    stage: GenerationStage = GenerationStage.NOT_STARTED
    extraction_incomplete: bool = False
    refinement_error: str | None = None
    image_analysis_error: str | None = None

    @property
    def refined(self) -> bool:
        return self.stage == GenerationStage.CALL2_DONE


def clean_raw_result(
    raw: RawScrapeResult, registry: Sequence[ProviderHandle] = PROVIDER_REGISTRY
) -> CleanedPayload:
    """
    Derive the cleaned view of a raw result.

    Pure and repeatable, so a stored raw result can be re-cleaned after the
    cleaners change.
    """
    if raw.is_html:
        raw_html = raw.payload if isinstance(raw.payload, str) else ""
        payload: Any = clean_html(preprocess_html(raw_html, raw.source_url))
    else:
        provider = get_provider(raw.provider_id or "", registry)
        if provider is None:
            logger.warning(f"No cleaner registered for {raw.provider}, normalizing only")
            payload = normalize(raw.payload)
        else:
            payload = provider.cleaner(raw.payload)
    return CleanedPayload(
        provider=raw.provider,
        source_url=raw.source_url,
        payload=payload,
        captured_at=raw.captured_at,
        duration_ms=raw.duration_ms,
    )


def build_source_material(
    raw: RawScrapeResult, cleaned: CleanedPayload
) -> tuple[SourceMaterial, ParsedPropertyRecord | None]:
    """Render the cleaned payload as Call 1 input text."""
    if not raw.is_html:
        text = format_provider_json_as_text(cleaned.payload)
        source = SourceMaterial(source_url=raw.source_url, provider=raw.provider, text=text)
        return source, None

    raw_html = raw.payload if isinstance(raw.payload, str) else ""
    structured = extract_structured_data(raw_html)
    cleaned_html = cleaned.payload if isinstance(cleaned.payload, str) else ""
    record = extract_property_data(cleaned_html, raw.source_url)
    gallery = gallery_images_for(raw_html, raw.source_url)
    if gallery:
        record = with_gallery_images(record, gallery, raw.source_url)
    text = _compose_html_text(cleaned_html, record, structured)
    source = SourceMaterial(
        source_url=raw.source_url, provider=raw.provider, text=text, record=record
    )
    return source, record


def _compose_html_text(
    cleaned_html: str, record: ParsedPropertyRecord, structured: StructuredPageData
) -> str:
    parts = []
    structured_text = format_structured_page_data(structured)
    if structured_text:
        parts.append("STRUCTURED DATA (JSON):\n" + structured_text)
    if record.has_usable_data():
        parts.append("EXTRACTED FACTS:\n" + format_property_record(record))
    page_text = html_to_structured_text(cleaned_html)
    if page_text:
        parts.append("PAGE TEXT:\n" + page_text)
    return "\n\n".join(parts)


class IngestionPipeline:
    """Runs one import end to end with injectable clients."""

    def __init__(
        self,
        generator: ConfigGenerator | None = None,
        structured_client: StructuredProviderClient | None = None,
        html_fetcher: HtmlFetcher | None = None,
        registry: Sequence[ProviderHandle] = PROVIDER_REGISTRY,
        raw_result_sink: RawResultSink | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            generator: AI generator; when None, generation is skipped and the
                       heuristic layout is used for HTML sources
            structured_client: Provider runner (ApifyClient by default)
            html_fetcher: HTML fetcher (the one selected by settings.scraper_provider by default)
            registry: Provider registry used for routing and cleaning
            raw_result_sink: Called once with every captured raw result
        """
        self.generator = generator
        self.structured_client = structured_client or ApifyClient()
        self.html_fetcher = html_fetcher or get_html_fetcher()
        self.registry = registry
        self.raw_result_sink = raw_result_sink

    async def fetch(self, url: str) -> RawScrapeResult:
        """Fetch once from the routed provider, or as HTML when none matches."""
        provider = route(url, self.registry)
        logfire.info(
            "Import routed",
            url=url,
            provider=provider.id if provider else "html",
        )
        if provider is not None:
            raw = await self.structured_client.run(provider, url)
        else:
            raw = await self.html_fetcher.fetch(url)
        await self._capture(raw)
        return raw

    async def resume(
        self, url: str, run_id: str, dataset_id: str | None = None
    ) -> IngestionResult:
        """Finish an import whose provider run timed out, without resubmitting it."""
        provider = route(url, self.registry)
        if provider is None:
            raise SourceUnavailableError(f"No structured-data provider serves {url}")
        raw = await self.structured_client.resume(provider, url, run_id, dataset_id)
        await self._capture(raw)
        return await self.generate(self.prepare(raw))

    async def _capture(self, raw: RawScrapeResult) -> None:
        if self.raw_result_sink is None:
            return
        outcome = self.raw_result_sink(raw)
        if inspect.isawaitable(outcome):
            await outcome

    def prepare(self, raw: RawScrapeResult) -> IngestionResult:
        """Clean and render a raw result; no network access."""
        cleaned = clean_raw_result(raw, self.registry)
        source, record = build_source_material(raw, cleaned)
        return IngestionResult(
            source_url=raw.source_url,
            raw=raw,
            cleaned=cleaned,
            source=source,
            record=record,
            extraction_incomplete=not source.has_usable_content,
        )

    async def generate(self, prepared: IngestionResult) -> IngestionResult:
        """
        Run the generation calls on prepared material.

        Call 1 errors propagate. Call 2 and Call 3 errors are logged and
        recorded on the result: the Call 1 title and highlights are kept, and
        the first photo stays the hero.
        """
        if prepared.extraction_incomplete:
            logfire.warning("Extraction incomplete, skipping generation", url=prepared.source_url)
            return prepared

        if self.generator is None:
            if prepared.record is not None and prepared.record.has_usable_data():
                page_config = page_config_from_record(prepared.record)
                return prepared.model_copy(update={"page_config": page_config})
            return prepared

        session = GenerationSession(self.generator, prepared.source)
        await session.run_call1()
        refinement_error = None
        try:
            await session.run_call2_and_call3()
        except GenerationFailedError as e:
            refinement_error = e.detail
            logfire.warning(
                "Refinement failed, keeping first-pass title and highlights",
                url=prepared.source_url,
                error=e.detail,
            )

        image_error = session.image_analysis_error
        base_config = session.result
        return prepared.model_copy(
            update={
                "base_config": base_config,
                "page_config": to_page_configuration(base_config),
                "stage": session.stage,
                "refinement_error": refinement_error,
                "image_analysis_error": str(image_error) if image_error else None,
            }
        )

    async def run(self, url: str) -> IngestionResult:
        """Fetch, clean, extract and generate for one listing URL."""
        start_time = time.time()
        raw = await self.fetch(url)
        result = await self.generate(self.prepare(raw))
        elapsed = time.time() - start_time
        logfire.info(
            "Import completed",
            url=url,
            provider=raw.provider,
            stage=result.stage.value,
            extraction_incomplete=result.extraction_incomplete,
            section_count=len(result.page_config.section_settings) if result.page_config else 0,
            duration_ms=elapsed * 1000,
        )
        return result
