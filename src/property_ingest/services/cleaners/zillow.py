"""Zillow detail-scraper output cleaner."""

from typing import Any
from urllib.parse import parse_qs, urlparse

from property_ingest.constants import (
    IMAGE_FORMAT_KEYS,
    ZILLOW_DENIED_FIELDS,
    ZILLOW_NESTED_DENIED_FIELDS,
    ZILLOW_ROOM_DENIED_FIELDS,
)
from property_ingest.services.cleaners.base import ProviderCleaner


def parse_map_center(url: Any) -> tuple[float, float] | None:
    """
    Read ``center=<lat>,<lng>`` from a static map tile URL.

    Returns None when the parameter is missing or not two numbers.
    """
    if not isinstance(url, str) or not url:
        return None
    centers = parse_qs(urlparse(url).query).get("center")
    if not centers:
        return None
    parts = centers[0].split(",")
    if len(parts) < 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None


def reduce_static_map(static_map: Any) -> Any:
    """Replace a static map block with ``{latitude, longitude}``.

    Already-reduced blocks (no ``sources``) keep only their coordinates.
    """
    if not isinstance(static_map, dict):
        return static_map
    sources = static_map.get("sources")
    if isinstance(sources, list):
        first = sources[0] if sources else None
        center = parse_map_center(first.get("url")) if isinstance(first, dict) else None
        latitude, longitude = center if center else (None, None)
        return {"latitude": latitude, "longitude": longitude}
    return {
        key: static_map[key] for key in ("latitude", "longitude") if key in static_map
    }


def _declared_width(variant: dict[str, Any]) -> float:
    width = variant.get("width")
    if isinstance(width, bool) or not isinstance(width, (int, float)):
        return 0
    return width


def is_image_format_map(value: Any) -> bool:
    """A dict with at least one image format key holding a list of variant dicts."""
    if not isinstance(value, dict):
        return False
    return any(
        isinstance(value.get(fmt), list)
        and value[fmt]
        and all(isinstance(v, dict) for v in value[fmt])
        for fmt in IMAGE_FORMAT_KEYS
    )


def keep_widest_variants(format_map: dict[str, Any]) -> dict[str, Any]:
    """Collapse every format's variant list to its widest entry (first wins ties)."""
    reduced: dict[str, Any] = {}
    for fmt, variants in format_map.items():
        if (
            fmt in IMAGE_FORMAT_KEYS
            and isinstance(variants, list)
            and variants
            and all(isinstance(v, dict) for v in variants)
        ):
            widest = variants[0]
            for variant in variants[1:]:
                if _declared_width(variant) > _declared_width(widest):
                    widest = variant
            reduced[fmt] = [widest]
        else:
            reduced[fmt] = variants
    return reduced


class ZillowCleaner(ProviderCleaner):
    """Strips Zillow's tracking, ad and UI-state fields and shrinks media blocks."""

    provider_id = "zillow"
    denied_fields = ZILLOW_DENIED_FIELDS
    scoped_denied_fields = {
        **{(parent,): names for parent, names in ZILLOW_NESTED_DENIED_FIELDS.items()},
        ("resoFacts", "rooms"): ZILLOW_ROOM_DENIED_FIELDS,
    }

    def reduce_record(self, record: dict[str, Any]) -> dict[str, Any]:
        return self._reduce(record)

    def _reduce(self, value: Any) -> Any:
        if isinstance(value, list):
            return [self._reduce(item) for item in value]
        if not isinstance(value, dict):
            return value
        if is_image_format_map(value):
            value = keep_widest_variants(value)
        reduced: dict[str, Any] = {}
        for key, child in value.items():
            if key == "staticMap":
                reduced[key] = reduce_static_map(child)
            else:
                reduced[key] = self._reduce(child)
        return reduced


clean_zillow_json = ZillowCleaner()
