"""AI configuration generator using PydanticAI.

Call 1 turns listing text into a ``BaseConfig`` at a low temperature.
Call 2 rewrites only the title and highlights at a higher temperature and
reads nothing but the Call 1 output. Call 3 scores the listing photos and
picks the hero image; it runs beside Call 2 and its failure only costs the
choice (the first photo stays the hero). Each call can be re-run on its own;
none retries automatically.
"""

import asyncio
import logging
import re
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import logfire
from pydantic_ai import Agent, ImageUrl
from pydantic_ai.models import Model

from property_ingest.config import Settings, get_settings
from property_ingest.constants import (
    HIGHLIGHT_COUNT,
    IMAGE_SCORE_MAX,
    MAX_ANALYZED_IMAGES,
    MAX_SOURCE_TEXT_CHARS,
    MAX_TITLE_LENGTH_CHARS,
)
from property_ingest.exceptions import (
    GenerationFailedError,
    GenerationPreconditionError,
)
from property_ingest.models.generation_models import (
    BaseConfig,
    GeneratedListing,
    GenerationRunMetadata,
    GenerationStage,
    HeroImageAnalysis,
    SourceMaterial,
    TitleHighlights,
)
from property_ingest.models.page_config_models import PageConfig
from property_ingest.services.page_config import page_config_from_listing
from property_ingest.services.text_formatter import format_listing_for_refinement

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
LISTING_PROMPT_PATH = _PROMPTS_DIR / "listing_instructions.md"
REFINEMENT_PROMPT_PATH = _PROMPTS_DIR / "refinement_instructions.md"
HERO_IMAGE_PROMPT_PATH = _PROMPTS_DIR / "hero_image_instructions.md"

CALL1_KEY = "call1"
CALL2_KEY = "call2"
CALL3_KEY = "call3"

ImageAnalysisOutcome = tuple[HeroImageAnalysis, GenerationRunMetadata]


def load_prompt(path: Path, **variables: Any) -> str:
    """Load a markdown prompt, drop its front matter and fill ``{{ name }}`` slots."""
    if not path.exists():
        raise FileNotFoundError(f"Prompt not found: {path}")
    template = path.read_text(encoding="utf-8")
    if template.startswith("---"):
        template = template.split("---", 2)[-1]
    for name, value in variables.items():
        template = re.sub(r"{{\s*" + name + r"\s*}}", str(value), template)
    return template.strip()


def build_listing_prompt(source: SourceMaterial) -> str:
    """User prompt for Call 1; oversized source text is truncated."""
    text = source.text
    if len(text) > MAX_SOURCE_TEXT_CHARS:
        logger.warning(
            f"Source text truncated from {len(text)} to {MAX_SOURCE_TEXT_CHARS} chars"
        )
        text = text[:MAX_SOURCE_TEXT_CHARS]
    kind = "HTML page text" if source.provider == "html" else "provider data"
    return f"SOURCE URL: {source.source_url}\nSOURCE TYPE: {kind}\n\nLISTING DATA:\n\n{text}"


def apply_refinement(
    base_config: BaseConfig,
    refinement: TitleHighlights,
    metadata: GenerationRunMetadata | None = None,
) -> BaseConfig:
    """Copy of ``base_config`` with only title and highlights replaced."""
    listing = base_config.listing.model_copy(
        update={
            "title": refinement.title.strip(),
            "highlights": [h.model_copy() for h in refinement.highlights],
        }
    )
    diagnostics = dict(base_config.diagnostics)
    if metadata is not None:
        diagnostics[CALL2_KEY] = metadata
    return base_config.model_copy(update={"listing": listing, "diagnostics": diagnostics})


def build_image_prompt(photos: Sequence[str]) -> list[Any]:
    """User prompt for Call 3: a short instruction followed by the photos in order."""
    return [
        f"Score these {len(photos)} listing photos and pick the hero image.",
        *(ImageUrl(url=url) for url in photos),
    ]


def apply_image_analysis(
    base_config: BaseConfig,
    analysis: HeroImageAnalysis,
    metadata: GenerationRunMetadata | None = None,
) -> BaseConfig:
    """
    Copy of ``base_config`` with the hero photo chosen by Call 3.

    An index outside the analyzed photos is ignored: the first photo stays
    the hero and only the diagnostics are recorded.
    """
    photo_count = min(len(base_config.listing.photos), MAX_ANALYZED_IMAGES)
    hero_image_index: int | None = analysis.best_image_index
    if hero_image_index >= photo_count:
        logfire.warning(
            "Image analysis chose a photo outside the listing, keeping the first",
            best_image_index=hero_image_index,
            photo_count=photo_count,
        )
        hero_image_index = None
    diagnostics = dict(base_config.diagnostics)
    if metadata is not None:
        diagnostics[CALL3_KEY] = metadata
    return base_config.model_copy(
        update={"hero_image_index": hero_image_index, "diagnostics": diagnostics}
    )


def to_page_configuration(base_config: BaseConfig) -> PageConfig:
    """
    Lay out a generated listing as a v2 page configuration.

    Diagnostics go to ``_metadata`` and are dropped by serialize_for_storage.
    """
    metadata = {
        f"{key}_{field}": value
        for key, run in base_config.diagnostics.items()
        for field, value in run.model_dump().items()
    }
    return page_config_from_listing(
        base_config.listing,
        metadata=metadata or None,
        hero_image_index=base_config.hero_image_index,
    )


def _model_name(model: Model | str) -> str:
    return model if isinstance(model, str) else model.model_name


class ConfigGenerator:
    """Runs the three generation calls."""

    def __init__(
        self,
        model: Model | str | None = None,
        settings: Settings | None = None,
        refinement_model: Model | str | None = None,
        image_model: Model | str | None = None,
    ):
        """
        Initialize the three agents.

        Args:
            model: PydanticAI model or model string
                   (e.g., 'openai:gpt-4o-mini'); defaults to settings.default_model
            settings: Overrides the cached application settings
            refinement_model: Model for Call 2; defaults to ``model``
            image_model: Vision-capable model for Call 3; defaults to
                         settings.image_analysis_model, then ``model``
        """
        self.settings = settings or get_settings()
        self.model = model or self.settings.default_model
        self.refinement_model = refinement_model or self.model
        self.image_model = image_model or self.settings.image_analysis_model or self.model
        self.model_name = _model_name(self.model)
        self.image_model_name = _model_name(self.image_model)

        self.listing_agent = Agent(
            self.model,
            output_type=GeneratedListing,
            system_prompt=load_prompt(LISTING_PROMPT_PATH),
            defer_model_check=True,
        )
        self.refinement_agent = Agent(
            self.refinement_model,
            output_type=TitleHighlights,
            system_prompt=load_prompt(
                REFINEMENT_PROMPT_PATH,
                highlight_count=HIGHLIGHT_COUNT,
                max_title_length=MAX_TITLE_LENGTH_CHARS,
            ),
            defer_model_check=True,
        )
        self.image_agent = Agent(
            self.image_model,
            output_type=HeroImageAnalysis,
            system_prompt=load_prompt(HERO_IMAGE_PROMPT_PATH, score_max=IMAGE_SCORE_MAX),
            defer_model_check=True,
        )
        logger.info(f"ConfigGenerator initialized with model: {self.model_name}")

    async def _run(
        self,
        agent: Agent,
        prompt: str | Sequence[Any],
        temperature: float,
        call: str,
        model_name: str | None = None,
    ) -> tuple[Any, GenerationRunMetadata]:
        model_name = model_name or self.model_name
        start_time = time.time()
        try:
            result = await agent.run(prompt, model_settings={"temperature": temperature})
        except Exception as e:
            elapsed = time.time() - start_time
            logfire.error(
                "Generation call failed",
                call=call,
                model=model_name,
                error=str(e),
                duration_ms=elapsed * 1000,
            )
            raise GenerationFailedError(f"{call} failed: {e}") from e

        elapsed = time.time() - start_time
        usage = result.usage()
        metadata = GenerationRunMetadata(
            prompt_tokens=usage.input_tokens or 0,
            completion_tokens=usage.output_tokens or 0,
            total_tokens=usage.total_tokens or 0,
            duration_ms=elapsed * 1000,
            temperature=temperature,
            model=model_name,
        )
        logfire.info(
            "Generation call completed",
            call=call,
            model=model_name,
            temperature=temperature,
            total_tokens=metadata.total_tokens,
            duration_ms=metadata.duration_ms,
        )
        return result.output, metadata

    async def generate(self, source: SourceMaterial) -> BaseConfig:
        """
        Call 1: build the base configuration from source material.

        Raises:
            GenerationPreconditionError: If the source has nothing to generate from
            GenerationFailedError: If the model call or output validation fails
        """
        if not source.text.strip():
            raise GenerationPreconditionError(
                f"No source text to generate from for {source.source_url}"
            )
        listing, metadata = await self._run(
            self.listing_agent,
            build_listing_prompt(source),
            self.settings.generation_temperature,
            CALL1_KEY,
        )
        return BaseConfig(
            source_url=source.source_url,
            listing=listing,
            diagnostics={CALL1_KEY: metadata},
        )

    async def refine(
        self, base_config: BaseConfig | None
    ) -> tuple[TitleHighlights, GenerationRunMetadata]:
        """
        Call 2: new title and highlights from the Call 1 output only.

        Raises:
            GenerationPreconditionError: If there is no Call 1 output
            GenerationFailedError: If the model call or output validation fails
        """
        if base_config is None:
            raise GenerationPreconditionError(
                "Refinement needs a base configuration; run generation first"
            )
        prompt = "PROPERTY DATA:\n\n" + format_listing_for_refinement(base_config.listing)
        return await self._run(
            self.refinement_agent,
            prompt,
            self.settings.refinement_temperature,
            CALL2_KEY,
        )

    async def analyze_images(
        self, base_config: BaseConfig | None
    ) -> ImageAnalysisOutcome | None:
        """
        Call 3: score the first photos of the Call 1 output and pick the hero.

        Returns None without calling the model when analysis is disabled or
        the listing has no photos.

        Raises:
            GenerationPreconditionError: If there is no Call 1 output
            GenerationFailedError: If the model call or output validation fails
        """
        if base_config is None:
            raise GenerationPreconditionError(
                "Image analysis needs a base configuration; run generation first"
            )
        if not self.settings.hero_image_analysis_enabled:
            return None
        photos = base_config.listing.photos[:MAX_ANALYZED_IMAGES]
        if not photos:
            logfire.info("Image analysis skipped, no photos", source_url=base_config.source_url)
            return None
        return await self._run(
            self.image_agent,
            build_image_prompt(photos),
            self.settings.image_analysis_temperature,
            CALL3_KEY,
            model_name=self.image_model_name,
        )


class GenerationSession:
    """
    Per-import generation state.

    Tracks which call has run and keeps the latest base configuration, so a
    failed stage can be re-run without repeating the one before it. Call 3
    sits outside the stage machine: it only reads the Call 1 output and its
    result is laid over whichever configuration ``result`` returns.
    """

    def __init__(self, generator: ConfigGenerator, source: SourceMaterial | None = None):
        self.generator = generator
        self.source = source
        self.stage = GenerationStage.NOT_STARTED
        self.base_config: BaseConfig | None = None
        self.refined_config: BaseConfig | None = None
        self.image_analysis: ImageAnalysisOutcome | None = None
        self.last_error: Exception | None = None
        self.image_analysis_error: Exception | None = None

    @property
    def result(self) -> BaseConfig | None:
        """Refined configuration when Call 2 succeeded, else the Call 1 output.

        Carries the Call 3 hero choice when image analysis succeeded.
        """
        config = self.refined_config or self.base_config
        if config is None or self.image_analysis is None:
            return config
        return apply_image_analysis(config, *self.image_analysis)

    def _ensure_idle(self) -> None:
        if self.stage in (GenerationStage.CALL1_PENDING, GenerationStage.CALL2_PENDING):
            raise GenerationPreconditionError(f"A generation call is already running ({self.stage.value})")

    async def run_call1(self) -> BaseConfig:
        """Run (or re-run) Call 1. A re-run discards any earlier refinement and image analysis."""
        self._ensure_idle()
        if self.source is None:
            raise GenerationPreconditionError("No source material for generation")

        self.stage = GenerationStage.CALL1_PENDING
        try:
            base_config = await self.generator.generate(self.source)
        except Exception as e:
            self.stage = GenerationStage.CALL1_FAILED
            self.last_error = e
            raise
        self.base_config = base_config
        self.refined_config = None
        self.image_analysis = None
        self.image_analysis_error = None
        self.last_error = None
        self.stage = GenerationStage.CALL1_DONE
        return base_config

    async def run_call2(self) -> BaseConfig:
        """Run (or re-run) Call 2 against the stored Call 1 output."""
        self._ensure_idle()
        if self.base_config is None:
            raise GenerationPreconditionError(
                "Refinement needs a base configuration; run generation first"
            )

        self.stage = GenerationStage.CALL2_PENDING
        try:
            refinement, metadata = await self.generator.refine(self.base_config)
        except Exception as e:
            self.stage = GenerationStage.CALL2_FAILED
            self.last_error = e
            raise
        self.refined_config = apply_refinement(self.base_config, refinement, metadata)
        self.last_error = None
        self.stage = GenerationStage.CALL2_DONE
        return self.refined_config

    async def run_call3(self) -> HeroImageAnalysis | None:
        """Run (or re-run) Call 3 against the stored Call 1 output."""
        base_config = self.base_config
        if base_config is None:
            raise GenerationPreconditionError(
                "Image analysis needs a base configuration; run generation first"
            )

        try:
            outcome = await self.generator.analyze_images(base_config)
        except Exception as e:
            self.image_analysis_error = e
            raise
        if base_config is not self.base_config:
            # Call 1 was re-run while the photos were being scored
            return None
        self.image_analysis = outcome
        self.image_analysis_error = None
        return outcome[0] if outcome else None

    async def run_call2_and_call3(self) -> BaseConfig:
        """
        Run Call 2 and Call 3 in parallel on the stored Call 1 output.

        A failed Call 3 is logged and kept in ``image_analysis_error``; the
        first photo stays the hero. A failed Call 2 is raised after both
        calls have settled.
        """
        refined, analyzed = await asyncio.gather(
            self.run_call2(), self.run_call3(), return_exceptions=True
        )
        if isinstance(analyzed, GenerationFailedError):
            logfire.warning(
                "Image analysis failed, keeping the first photo as hero",
                source_url=self.base_config.source_url if self.base_config else None,
                error=analyzed.detail,
            )
        elif isinstance(analyzed, BaseException):
            raise analyzed
        if isinstance(refined, BaseException):
            raise refined
        return self.result

    async def run(self) -> BaseConfig:
        """Run whatever is still missing: Call 1 if needed, then Calls 2 and 3."""
        if self.base_config is None:
            await self.run_call1()
        return await self.run_call2_and_call3()


# Factory function for dependency injection
def get_config_generator(model: Model | str | None = None) -> ConfigGenerator:
    """Get config generator instance."""
    return ConfigGenerator(model=model)
