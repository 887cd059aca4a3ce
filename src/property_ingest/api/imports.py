"""Listing import endpoints.

Handlers only translate HTTP to pipeline calls. IngestionError subclasses
propagate to the exception handler registered in main.py.
"""

import logging
from functools import partial

from fastapi import APIRouter, Depends

from property_ingest.api.dependencies import (
    get_generator,
    get_pipeline,
    persistence_enabled,
)
from property_ingest.db.repository import save_raw_scrape_result
from property_ingest.models.api_models import (
    HeroImageRequest,
    HeroImageResponse,
    ImportRequest,
    ImportResponse,
    RefineRequest,
    RefineResponse,
)
from property_ingest.services.config_generator import (
    ConfigGenerator,
    apply_image_analysis,
    apply_refinement,
    to_page_configuration,
)
from property_ingest.services.ingestion_pipeline import IngestionPipeline
from property_ingest.services.page_config import serialize_for_storage

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=ImportResponse)
async def create_import(
    body: ImportRequest,
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """Import a listing URL and return its generated page configuration."""
    if persistence_enabled():
        pipeline.raw_result_sink = partial(save_raw_scrape_result, preview_id=body.preview_id)

    result = await pipeline.run(body.url.strip())
    page_config = result.page_config
    return ImportResponse(
        source_url=result.source_url,
        provider=result.raw.provider,
        stage=result.stage.value,
        extraction_incomplete=result.extraction_incomplete,
        refinement_error=result.refinement_error,
        image_analysis_error=result.image_analysis_error,
        base_config=result.base_config,
        configuration=serialize_for_storage(page_config) if page_config else None,
        diagnostics=page_config.metadata if page_config else None,
    )


@router.post("/refine", response_model=RefineResponse)
async def refine_import(
    body: RefineRequest,
    generator: ConfigGenerator = Depends(get_generator),
):
    """Re-run only the title and highlights call on an existing base configuration."""
    refinement, run = await generator.refine(body.base_config)
    refined = apply_refinement(body.base_config, refinement, run)
    logger.info(f"Refined import for {refined.source_url}")
    return RefineResponse(
        title=refinement.title,
        highlights=refinement.highlights,
        base_config=refined,
        configuration=serialize_for_storage(to_page_configuration(refined)),
        run=run,
    )


@router.post("/hero-image", response_model=HeroImageResponse)
async def analyze_hero_image(
    body: HeroImageRequest,
    generator: ConfigGenerator = Depends(get_generator),
):
    """Re-run only the photo scoring call and lay out the chosen hero."""
    outcome = await generator.analyze_images(body.base_config)
    if outcome is None:
        analysis, run, updated = None, None, body.base_config
    else:
        analysis, run = outcome
        updated = apply_image_analysis(body.base_config, analysis, run)
    return HeroImageResponse(
        analysis=analysis,
        base_config=updated,
        configuration=serialize_for_storage(to_page_configuration(updated)),
        run=run,
    )
