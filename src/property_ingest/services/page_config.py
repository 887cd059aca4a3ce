"""Page configuration version adapter, edit helpers and default layouts.

Stored configurations come in two shapes:

- v1 (legacy): ``{theme, sections: [{id, type, variant, colorScheme, data}], loader, meta}``
- v2 (current): ``{_version: 2, siteSettings, sectionSettings, siteContent}``

Readers accept either and always get a ``PageConfig`` back; writers always
emit v2. ``siteContent`` is keyed by section id so a v1 -> v2 -> v1 trip
returns every section's data unchanged.
"""

import copy
import logging
from typing import Any, TypeVar

import logfire
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from property_ingest.models.generation_models import GeneratedListing
from property_ingest.models.page_config_models import (
    LegacyPageConfig,
    LegacySection,
    LoaderConfig,
    PageConfig,
    SectionSettings,
    SiteSettings,
    ThemeConfig,
)
from property_ingest.models.property_models import ParsedPropertyRecord

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

GALLERY_FALLBACK_MAX_IMAGES = 9
CURRENCY_SYMBOLS = {"USD": "$", "CAD": "$", "AUD": "$", "EUR": "€", "GBP": "£"}


def default_page_config() -> PageConfig:
    """Empty v2 configuration with the default theme and loader."""
    return PageConfig()


def is_current_config(raw: Any) -> bool:
    return isinstance(raw, dict) and (
        raw.get("_version") == 2 or isinstance(raw.get("sectionSettings"), list)
    )


def is_legacy_config(raw: Any) -> bool:
    return isinstance(raw, dict) and isinstance(raw.get("sections"), list)


def _unique_id(section_id: str, seen: set[str]) -> str:
    if section_id not in seen:
        return section_id
    suffix = 2
    while f"{section_id}-{suffix}" in seen:
        suffix += 1
    return f"{section_id}-{suffix}"


def _dict_or_empty(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _validate_lenient(model: type[ModelT], data: dict[str, Any], label: str) -> ModelT | None:
    """
    Validate one part of a stored configuration.

    Fields that fail validation are dropped and validation is retried once,
    so a single bad value costs only that value. Returns None when the part
    is still invalid (e.g. a required field is the bad one).
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        bad_fields = {str(error["loc"][0]) for error in e.errors() if error["loc"]}
        logfire.warning(
            "Dropping invalid page configuration fields",
            part=label,
            fields=sorted(bad_fields),
        )
    try:
        return model.model_validate(
            {k: v for k, v in data.items() if k not in bad_fields and to_camel(k) not in bad_fields}
        )
    except ValidationError:
        return None


def _site_settings(theme: Any, loader: Any, meta: Any) -> SiteSettings:
    return SiteSettings(
        theme=_validate_lenient(ThemeConfig, _dict_or_empty(theme), "theme") or ThemeConfig(),
        loader=_validate_lenient(LoaderConfig, _dict_or_empty(loader), "loader")
        or LoaderConfig(),
        meta=meta if isinstance(meta, dict) else None,
    )


def _migrate_legacy(raw: dict[str, Any]) -> PageConfig:
    section_settings: list[SectionSettings] = []
    site_content: dict[str, dict[str, Any]] = {}
    seen: set[str] = set()

    for index, section in enumerate(raw["sections"]):
        if not isinstance(section, dict) or not section.get("type"):
            logger.warning(f"Skipping malformed legacy section at index {index}")
            continue
        section_id = _unique_id(str(section.get("id") or f"{section['type']}-{index}"), seen)
        layout = {k: v for k, v in section.items() if k != "data"}
        layout["id"] = section_id
        settings = _validate_lenient(SectionSettings, layout, f"sections[{index}]")
        if settings is None:
            logger.warning(f"Skipping invalid legacy section at index {index}")
            continue
        seen.add(section_id)
        section_settings.append(settings)
        site_content[section_id] = copy.deepcopy(_dict_or_empty(section.get("data")))

    return PageConfig(
        site_settings=_site_settings(raw.get("theme"), raw.get("loader"), raw.get("meta")),
        section_settings=section_settings,
        site_content=site_content,
    )


def _validate_current(raw: dict[str, Any]) -> PageConfig:
    settings = _dict_or_empty(raw.get("siteSettings"))
    content = _dict_or_empty(raw.get("siteContent"))
    section_settings: list[SectionSettings] = []
    site_content: dict[str, dict[str, Any]] = {}
    seen: set[str] = set()

    sections = raw.get("sectionSettings")
    for index, section in enumerate(sections if isinstance(sections, list) else []):
        if not isinstance(section, dict) or not section.get("id") or not section.get("type"):
            logger.warning(f"Skipping malformed section settings at index {index}")
            continue
        section_id = _unique_id(str(section["id"]), seen)
        validated = _validate_lenient(
            SectionSettings, {**section, "id": section_id}, f"sectionSettings[{index}]"
        )
        if validated is None:
            logger.warning(f"Skipping invalid section settings at index {index}")
            continue
        seen.add(section_id)
        section_settings.append(validated)
        data = content.get(str(section["id"]))
        if isinstance(data, dict):
            site_content[section_id] = copy.deepcopy(data)

    metadata = raw.get("_metadata")
    return PageConfig(
        site_settings=_site_settings(
            settings.get("theme"), settings.get("loader"), settings.get("meta")
        ),
        section_settings=section_settings,
        site_content=site_content,
        metadata=metadata if isinstance(metadata, dict) else None,
    )


def to_current(raw: Any) -> PageConfig:
    """
    Read a stored configuration of either version as v2.

    Never raises. Invalid values inside a recognized shape are dropped part
    by part (a field, a section, the theme), keeping the rest of the page.
    None and unknown shapes come back as the empty default configuration,
    with a warning logged.
    """
    if isinstance(raw, PageConfig):
        return raw.model_copy(deep=True)
    if isinstance(raw, LegacyPageConfig):
        raw = raw.model_dump(by_alias=True)

    if is_current_config(raw):
        return _validate_current(raw)
    if is_legacy_config(raw):
        config = _migrate_legacy(raw)
        logfire.info(
            "Legacy page configuration migrated",
            section_count=len(config.section_settings),
        )
        return config

    if raw is not None:
        logfire.warning(
            "Unknown page configuration format, using default",
            value_type=type(raw).__name__,
        )
    return default_page_config()


def to_legacy_view(config: PageConfig | Any) -> LegacyPageConfig:
    """
    Render a configuration in the v1 shape for older editor components.

    A section without content gets ``data = {}`` and is still listed.
    """
    current = config if isinstance(config, PageConfig) else to_current(config)
    sections = []
    for settings in current.section_settings:
        layout = settings.model_dump(by_alias=True, exclude_unset=True)
        sections.append(
            LegacySection.model_validate(
                {**layout, "data": copy.deepcopy(current.site_content.get(settings.id, {}))}
            )
        )
    return LegacyPageConfig(
        theme=current.site_settings.theme.model_copy(deep=True),
        loader=current.site_settings.loader.model_copy(deep=True),
        sections=sections,
        meta=copy.deepcopy(current.site_settings.meta),
    )


def _sections_json(sections: list[Any]) -> list[dict[str, Any]]:
    # Explicit nulls a section was stored with (variant, colorScheme) are kept
    return [
        section.model_dump(mode="json", by_alias=True, exclude_unset=True)
        for section in sections
    ]


def serialize_for_storage(config: PageConfig) -> dict[str, Any]:
    """v2 JSON for the database, with generation diagnostics removed."""
    data = config.model_dump(
        mode="json",
        by_alias=True,
        exclude={"metadata", "section_settings"},
        exclude_none=True,
    )
    data["sectionSettings"] = _sections_json(config.section_settings)
    return data


def serialize_legacy_view(view: LegacyPageConfig) -> dict[str, Any]:
    """v1 JSON for older editor components."""
    data = view.model_dump(mode="json", by_alias=True, exclude={"sections"}, exclude_none=True)
    data["sections"] = _sections_json(view.sections)
    return data


# =============================================================================
# Edit helpers: each returns a new configuration and leaves its input intact
# =============================================================================


def update_section_content(
    config: PageConfig, section_id: str, updates: dict[str, Any]
) -> PageConfig:
    """Merge ``updates`` into one section's content."""
    updated = config.model_copy(deep=True)
    current = updated.site_content.get(section_id, {})
    updated.site_content[section_id] = {**current, **copy.deepcopy(updates)}
    return updated


def update_site_settings(config: PageConfig, **updates: Any) -> PageConfig:
    """
    Replace site-level settings.

    ``theme`` and ``loader`` updates are merged into the existing values;
    ``meta`` replaces the current meta.
    """
    updated = config.model_copy(deep=True)
    settings = updated.site_settings
    if "theme" in updates:
        merged = {**settings.theme.model_dump(by_alias=True), **_dict_or_empty(updates["theme"])}
        settings.theme = ThemeConfig.model_validate(merged)
    if "loader" in updates:
        merged = {**settings.loader.model_dump(by_alias=True), **_dict_or_empty(updates["loader"])}
        settings.loader = LoaderConfig.model_validate(merged)
    if "meta" in updates:
        settings.meta = copy.deepcopy(updates["meta"])
    return updated


def update_section_settings(
    config: PageConfig, section_id: str, updates: dict[str, Any]
) -> PageConfig:
    """Change one section's layout fields; its id cannot be changed here."""
    updated = config.model_copy(deep=True)
    for index, section in enumerate(updated.section_settings):
        if section.id == section_id:
            merged = {**section.model_dump(by_alias=True), **updates, "id": section_id}
            updated.section_settings[index] = SectionSettings.model_validate(merged)
            break
    return updated


def add_section(
    config: PageConfig,
    section: SectionSettings,
    content: dict[str, Any] | None = None,
    at_index: int | None = None,
) -> PageConfig:
    """Insert a section (appended when ``at_index`` is None).

    A colliding id is suffixed so ids stay unique.
    """
    updated = config.model_copy(deep=True)
    section_id = _unique_id(section.id, set(updated.section_ids()))
    new_section = section.model_copy(update={"id": section_id})
    if at_index is None:
        updated.section_settings.append(new_section)
    else:
        updated.section_settings.insert(at_index, new_section)
    updated.site_content[section_id] = copy.deepcopy(content or {})
    return updated


def remove_section(config: PageConfig, section_id: str) -> PageConfig:
    updated = config.model_copy(deep=True)
    updated.section_settings = [s for s in updated.section_settings if s.id != section_id]
    updated.site_content.pop(section_id, None)
    return updated


def reorder_sections(config: PageConfig, from_index: int, to_index: int) -> PageConfig:
    """Move the section at ``from_index`` to ``to_index``."""
    updated = config.model_copy(deep=True)
    sections = updated.section_settings
    if not (0 <= from_index < len(sections)) or not (0 <= to_index < len(sections)):
        return updated
    sections.insert(to_index, sections.pop(from_index))
    return updated


# =============================================================================
# Default layouts
# =============================================================================


class _SectionBuilder:
    """Collects sections with ``{type}-{n}`` ids numbered across the page."""

    def __init__(self) -> None:
        self.settings: list[SectionSettings] = []
        self.content: dict[str, dict[str, Any]] = {}

    def add(self, section_type: str, variant: str | None, data: dict[str, Any]) -> None:
        section_id = f"{section_type}-{len(self.settings)}"
        layout = {"id": section_id, "type": section_type}
        if variant is not None:
            layout["variant"] = variant
        self.settings.append(SectionSettings.model_validate(layout))
        self.content[section_id] = data


def format_price(price: int | None, currency: str = "USD") -> str:
    """'$1,250,000' for known symbols, '1,250,000 CHF' otherwise."""
    if price is None:
        return ""
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{price:,}"
    return f"{price:,} {currency.upper()}"


def page_config_from_record(record: ParsedPropertyRecord) -> PageConfig:
    """
    Lay out a heuristic record without any AI call.

    Used when generation is unavailable; only sections with matching data
    are emitted.
    """
    builder = _SectionBuilder()

    if record.images or record.title:
        builder.add(
            "hero",
            "full",
            {
                "headline": record.title or "Property Listing",
                "subheadline": record.address or "",
                "price": format_price(record.price),
                "address": record.address or "",
                "propertyImage": record.images[0] if record.images else None,
            },
        )

    details = []
    if record.bedrooms:
        details.append({"icon": "bed", "label": "Bedrooms", "value": str(record.bedrooms)})
    if record.bathrooms:
        details.append(
            {"icon": "bath", "label": "Bathrooms", "value": f"{record.bathrooms:g}"}
        )
    if record.square_footage:
        details.append(
            {"icon": "ruler", "label": "Square Feet", "value": f"{record.square_footage:,}"}
        )
    if details:
        builder.add("features", "grid", {"title": "Property Details", "features": details})

    if len(record.images) > 1:
        builder.add(
            "gallery",
            "grid",
            {
                "title": "Property Images",
                "images": [
                    {"src": src, "alt": "Property image"}
                    for src in record.images[1 : 1 + GALLERY_FALLBACK_MAX_IMAGES]
                ],
                "layout": "grid",
            },
        )

    if record.features:
        builder.add(
            "features",
            "list",
            {
                "title": "Features & Amenities",
                "features": [{"label": feature} for feature in record.features],
            },
        )

    meta = {"title": record.title, "description": record.description}
    return PageConfig(
        site_settings=SiteSettings(meta={k: v for k, v in meta.items() if v} or None),
        section_settings=builder.settings,
        site_content=builder.content,
    )


def hero_image(listing: GeneratedListing, hero_image_index: int | None = None) -> str:
    """The chosen photo when its index is valid, else the first photo, else ""."""
    if hero_image_index is not None and 0 <= hero_image_index < len(listing.photos):
        return listing.photos[hero_image_index]
    return listing.photos[0] if listing.photos else ""


def page_config_from_listing(
    listing: GeneratedListing,
    metadata: dict[str, Any] | None = None,
    hero_image_index: int | None = None,
) -> PageConfig:
    """Lay out a generated listing as hero, highlights, features, gallery, agent and contact."""
    builder = _SectionBuilder()
    price = format_price(listing.price, listing.currency)

    builder.add(
        "hero",
        "full",
        {
            "headline": listing.title,
            "subtitle": listing.subtitle or "",
            "propertyImage": hero_image(listing, hero_image_index),
            "price": price,
            "address": listing.address or "",
            "beds": listing.bedrooms,
            "baths": listing.bathrooms,
            "livingArea": listing.living_area_sqft,
            "lotSize": listing.lot_size,
        },
    )

    if listing.highlights:
        builder.add(
            "highlights",
            None,
            {
                "title": "Highlights",
                "highlights": [h.model_dump() for h in listing.highlights],
            },
        )

    features = [f.model_dump(exclude_none=True) for f in listing.features]
    if not features:
        if listing.bedrooms:
            features.append({"label": "Bedrooms", "value": str(listing.bedrooms), "icon": "bed"})
        if listing.bathrooms:
            features.append(
                {"label": "Bathrooms", "value": f"{listing.bathrooms:g}", "icon": "bathtub"}
            )
        if listing.living_area_sqft:
            features.append(
                {
                    "label": "Living Area",
                    "value": f"{listing.living_area_sqft:,} sqft",
                    "icon": "ruler",
                }
            )
        if listing.lot_size:
            features.append({"label": "Lot Size", "value": listing.lot_size, "icon": "tree"})
    if features:
        builder.add("features", "grid", {"title": "Property Details", "features": features})

    if listing.photos:
        builder.add(
            "gallery",
            "grid",
            {
                "title": "Gallery",
                "images": [{"src": url, "alt": listing.title} for url in listing.photos],
                "layout": "grid",
            },
        )

    if listing.agent is not None:
        builder.add("agent", None, listing.agent.model_dump(exclude_none=True))

    agent = listing.agent
    builder.add(
        "contact",
        None,
        {
            "title": "Contact",
            "subtitle": "Get in touch",
            "showForm": True,
            "address": listing.address or "",
            "phone": (agent.phone if agent else None) or "",
            "email": (agent.email if agent else None) or "",
        },
    )

    theme = ThemeConfig()
    if listing.theme is not None:
        hints = listing.theme.model_dump(exclude_none=True)
        theme = theme.model_copy(update=hints)

    meta = {"title": listing.title, "description": listing.subtitle or listing.description}
    return PageConfig(
        site_settings=SiteSettings(
            theme=theme, meta={k: v for k, v in meta.items() if v} or None
        ),
        section_settings=builder.settings,
        site_content=builder.content,
        metadata=metadata,
    )
