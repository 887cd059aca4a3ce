"""Request and response bodies for the HTTP API."""

from typing import Any

from pydantic import BaseModel, Field

from property_ingest.models.generation_models import (
    BaseConfig,
    GenerationRunMetadata,
    HeroImageAnalysis,
    Highlight,
)


class ImportRequest(BaseModel):
    url: str = Field(..., min_length=1, description="Listing URL to import")
    preview_id: str | None = Field(
        default=None, description="Temporary preview the raw result is stored under"
    )


class ImportResponse(BaseModel):
    """Outcome of one import.

    ``configuration`` is the stored v2 form (no diagnostics); it is None when
    extraction found nothing usable.
    """

    source_url: str
    provider: str
    stage: str
    extraction_incomplete: bool = False
    refinement_error: str | None = None
    image_analysis_error: str | None = None
    base_config: BaseConfig | None = None
    configuration: dict[str, Any] | None = None
    diagnostics: dict[str, Any] | None = None


class RefineRequest(BaseModel):
    base_config: BaseConfig | None = Field(
        default=None, description="Call 1 output to refine"
    )


class RefineResponse(BaseModel):
    title: str
    highlights: list[Highlight]
    base_config: BaseConfig
    configuration: dict[str, Any]
    run: GenerationRunMetadata


class HeroImageRequest(BaseModel):
    base_config: BaseConfig | None = Field(
        default=None, description="Call 1 (or refined) output whose photos are scored"
    )


class HeroImageResponse(BaseModel):
    """Outcome of re-running Call 3.

    ``analysis`` and ``run`` are None when analysis is disabled or the
    listing has no photos; the configuration then keeps the first photo.
    """

    analysis: HeroImageAnalysis | None = None
    base_config: BaseConfig
    configuration: dict[str, Any]
    run: GenerationRunMetadata | None = None
