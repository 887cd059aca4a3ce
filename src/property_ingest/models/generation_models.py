"""Models for the AI generation calls and their diagnostics."""

from enum import Enum

from pydantic import BaseModel, Field

from property_ingest.constants import (
    HIGHLIGHT_COUNT,
    IMAGE_SCORE_MAX,
    MAX_TITLE_LENGTH_CHARS,
)
from property_ingest.models.property_models import ParsedPropertyRecord


class GenerationRunMetadata(BaseModel):
    """Token usage and timing for one AI call. Diagnostic only."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    duration_ms: float = 0.0
    temperature: float
    model: str | None = None


class Highlight(BaseModel):
    """Short callout shown prominently on the page."""

    title: str = Field(..., description="Short label, e.g. 'Ocean View'")
    value: str = Field(..., description="Supporting value, e.g. '180° panorama'")
    icon: str = Field(
        default="star", description="Icon name from the site icon set, e.g. 'bed'"
    )


class ListingFeature(BaseModel):
    label: str
    value: str = ""
    icon: str | None = None


class ListingAgent(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    agency: str | None = None
    photo: str | None = None


class ThemeHints(BaseModel):
    """Optional theme suggestions; anything left None keeps the default."""

    primary_color: str | None = Field(default=None, description="Hex color")
    secondary_color: str | None = Field(default=None, description="Hex color")
    font_family: str | None = None


class GeneratedListing(BaseModel):
    """Structured output of Call 1: the listing content for a page."""

    title: str = Field(..., description="First-pass page title")
    subtitle: str | None = Field(default=None, description="One-line tagline")
    description: str | None = Field(default=None, description="Listing description")
    address: str | None = None
    price: int | None = Field(default=None, ge=0)
    currency: str = Field(default="USD", description="ISO 4217 code")
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)
    living_area_sqft: int | None = Field(default=None, ge=0)
    lot_size: str | None = Field(default=None, description="Lot size with unit")
    property_type: str | None = None
    year_built: int | None = None
    photos: list[str] = Field(default_factory=list, description="Absolute image URLs")
    features: list[ListingFeature] = Field(default_factory=list)
    highlights: list[Highlight] = Field(default_factory=list)
    agent: ListingAgent | None = None
    theme: ThemeHints | None = None


class TitleHighlights(BaseModel):
    """Structured output of Call 2."""

    title: str = Field(
        ...,
        max_length=MAX_TITLE_LENGTH_CHARS,
        description=f"Lifestyle-focused title, at most {MAX_TITLE_LENGTH_CHARS} characters",
    )
    highlights: list[Highlight] = Field(
        ...,
        min_length=1,
        max_length=HIGHLIGHT_COUNT,
        description=f"Exactly {HIGHLIGHT_COUNT} highlights when the data allows it",
    )


class ImageScore(BaseModel):
    """Score of one listing photo as a hero banner candidate."""

    index: int = Field(..., ge=0, description="0-based position in the photos sent")
    description: str = Field(default="", description="What the photo shows, 10-20 words")
    score: float = Field(..., ge=0, le=IMAGE_SCORE_MAX, description="Average of the four criteria")
    composition: int = Field(default=0, ge=0, le=IMAGE_SCORE_MAX)
    lighting: int = Field(default=0, ge=0, le=IMAGE_SCORE_MAX)
    wow_factor: int = Field(default=0, ge=0, le=IMAGE_SCORE_MAX)
    quality: int = Field(default=0, ge=0, le=IMAGE_SCORE_MAX)


class HeroImageAnalysis(BaseModel):
    """Structured output of Call 3: per-photo scores and the chosen hero."""

    best_image_index: int = Field(..., ge=0, description="Index of the best hero photo")
    reasoning: str = Field(default="", description="Why that photo suits the hero")
    images: list[ImageScore] = Field(default_factory=list)


class BaseConfig(BaseModel):
    """Call 1 result plus segregated diagnostics.

    ``diagnostics`` is never part of the canonical configuration: it is
    removed when the page configuration is serialized for storage.
    """

    source_url: str | None = None
    listing: GeneratedListing
    hero_image_index: int | None = Field(
        default=None, ge=0, description="Photo chosen by image analysis; None means the first"
    )
    diagnostics: dict[str, GenerationRunMetadata] = Field(default_factory=dict)


class GenerationStage(str, Enum):
    """Per-import state of the two-call generator."""

    NOT_STARTED = "not_started"
    CALL1_PENDING = "call1_pending"
    CALL1_DONE = "call1_done"
    CALL1_FAILED = "call1_failed"
    CALL2_PENDING = "call2_pending"
    CALL2_DONE = "call2_done"
    CALL2_FAILED = "call2_failed"


class SourceMaterial(BaseModel):
    """Everything Call 1 may read for one import.

    ``text`` is the only thing sent to the model. ``record`` keeps the
    heuristic extraction (HTML path only) for the no-AI fallback layout.
    """

    source_url: str
    provider: str = Field(..., description="'html' or 'structured:<providerId>'")
    text: str = ""
    record: ParsedPropertyRecord | None = None

    @property
    def has_usable_content(self) -> bool:
        """False is the extraction-incomplete condition: nothing to generate from."""
        if self.text.strip():
            return True
        return self.record is not None and self.record.has_usable_data()
