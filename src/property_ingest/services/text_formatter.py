"""Plain-text renderings of listing data for the generation prompts."""

import json
import re
from typing import Any

from bs4 import BeautifulSoup, Tag

from property_ingest.models.generation_models import GeneratedListing
from property_ingest.models.property_models import ParsedPropertyRecord
from property_ingest.services.json_normalizer import is_empty_value
from property_ingest.services.structured_data import StructuredPageData

# Keys that never help the model describe a property
SKIPPED_TOP_LEVEL_KEYS = frozenset(
    ("__typename", "url", "loadedUrl", "requestId", "requestQueueId")
)
MONEY_KEY_MARKERS = ("price", "fee", "tax")
INDENT = "  "

_CAMEL_BOUNDARY_RE = re.compile(r"(?<!^)(?=[A-Z])")


def humanize_field_name(key: str) -> str:
    """'livingAreaValue' / 'living_area' -> 'Living Area Value' / 'Living Area'."""
    words = _CAMEL_BOUNDARY_RE.sub(" ", key).replace("_", " ").split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def _format_scalar(value: Any, key: str) -> str | None:
    if is_empty_value(value):
        return None
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        if any(marker in key.lower() for marker in MONEY_KEY_MARKERS):
            return f"${value:,}"
        return f"{value:,}"
    if isinstance(value, str):
        return value
    return None


def _format_mapping(data: dict[str, Any], depth: int, lines: list[str]) -> None:
    indent = INDENT * depth
    for key, value in data.items():
        if is_empty_value(value):
            continue
        name = humanize_field_name(key)
        if isinstance(value, dict):
            lines.append(f"{indent}{name}:")
            _format_mapping(value, depth + 1, lines)
        elif isinstance(value, list):
            _format_sequence(name, key, value, depth, lines)
        else:
            formatted = _format_scalar(value, key)
            if formatted:
                lines.append(f"{indent}{name}: {formatted}")


def _format_sequence(
    name: str, key: str, items: list[Any], depth: int, lines: list[str]
) -> None:
    indent = INDENT * depth
    lines.append(f"{indent}{name}: ({len(items)} items)")
    for index, item in enumerate(items, start=1):
        if isinstance(item, dict):
            lines.append(f"{indent}{INDENT}{index}.")
            _format_mapping(item, depth + 2, lines)
        else:
            formatted = _format_scalar(item, key)
            if formatted:
                lines.append(f"{indent}{INDENT}- {formatted}")


def format_provider_json_as_text(provider_json: Any) -> str:
    """
    Render cleaned provider JSON as indented, human-readable text.

    Multiple records are separated with a '--- Property N ---' marker.
    """
    if is_empty_value(provider_json):
        return ""
    records = provider_json if isinstance(provider_json, list) else [provider_json]
    lines: list[str] = []
    for index, record in enumerate(records):
        if index > 0:
            lines.extend(["", f"--- Property {index + 1} ---", ""])
        if not isinstance(record, dict):
            formatted = _format_scalar(record, "")
            if formatted:
                lines.append(formatted)
            continue
        top_level = {
            k: v for k, v in record.items() if k not in SKIPPED_TOP_LEVEL_KEYS
        }
        _format_mapping(top_level, 0, lines)
    return "\n".join(lines).strip()


def html_to_structured_text(html: str) -> str:
    """
    Convert cleaned HTML into markdown-like text for an LLM.

    Headings become '#' lines, list items become bullets or numbers, and
    short fragments (under four characters) are dropped.
    """
    if not html or not html.strip():
        return ""
    soup = BeautifulSoup(html, "html.parser")
    lines: list[str] = []
    for child in soup.children:
        if isinstance(child, Tag):
            _process_element(child, lines)
        elif str(child).strip() and len(str(child).strip()) > 3:
            lines.append(str(child).strip())

    text = "\n".join(lines)
    text = re.sub(r"[ \t]+$", "", text, flags=re.MULTILINE)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _element_text(element: Tag) -> str:
    return " ".join(element.get_text(" ").split())


def _process_element(element: Tag, lines: list[str]) -> None:
    name = (element.name or "").lower()
    if name in ("script", "style"):
        return

    if re.fullmatch(r"h[1-6]", name):
        text = _element_text(element)
        if text:
            lines.extend(["", "#" * int(name[1]) + " " + text, ""])
        return

    if name == "p":
        text = _element_text(element)
        if len(text) > 10:
            lines.extend([text, ""])
        return

    if name in ("ul", "ol"):
        items = element.find_all("li", recursive=False)
        for index, item in enumerate(items, start=1):
            text = _element_text(item)
            if text:
                prefix = "• " if name == "ul" else f"{index}. "
                lines.append(prefix + text)
        lines.append("")
        return

    children = [child for child in element.children if isinstance(child, Tag)]
    if children:
        for child in children:
            _process_element(child, lines)
        return

    text = _element_text(element)
    if len(text) > 3 and not (lines and text in lines[-1]):
        lines.append(text)


def format_property_record(record: ParsedPropertyRecord) -> str:
    """Render the heuristic record as 'Field: value' lines, skipping empties."""
    data = record.model_dump(exclude_none=True)
    location = data.pop("location", {})
    if location:
        data["location"] = location
    lines: list[str] = []
    _format_mapping(data, 0, lines)
    return "\n".join(lines)


def format_structured_page_data(structured: StructuredPageData) -> str:
    """Compact JSON dump of the machine-readable parts of a page."""
    if structured.is_empty():
        return ""
    data = structured.model_dump(exclude_none=True, exclude_defaults=True)
    return json.dumps(data, ensure_ascii=False, default=str)


def format_listing_for_refinement(listing: GeneratedListing) -> str:
    """
    Render a Call 1 listing as the only input Call 2 sees.

    Only the facts a title or highlight could draw on are included.
    """
    lines: list[str] = []
    if listing.title:
        lines.append(f"Current Title: {listing.title}")
    if listing.address:
        lines.append(f"Address: {listing.address}")

    specs: list[str] = []
    if listing.bedrooms:
        specs.append(f"{listing.bedrooms} bed{'s' if listing.bedrooms != 1 else ''}")
    if listing.bathrooms:
        baths = f"{listing.bathrooms:g}"
        specs.append(f"{baths} bath{'s' if listing.bathrooms != 1 else ''}")
    if specs:
        lines.append(f"Property: {', '.join(specs)} - {listing.property_type or 'OTHER'}")

    if listing.price:
        lines.append(f"Price: {listing.price:,} {listing.currency}")
    if listing.year_built:
        lines.append(f"Year Built: {listing.year_built}")
    if listing.living_area_sqft:
        lines.append(f"Living Area: {listing.living_area_sqft:,} sqft")
    if listing.lot_size:
        lines.append(f"Lot Size: {listing.lot_size}")

    if listing.description:
        lines.extend(["", "Description:", listing.description])

    if listing.features:
        lines.extend(["", "Features & Amenities:"])
        for feature in listing.features:
            suffix = f": {feature.value}" if feature.value else ""
            lines.append(f"- {feature.label}{suffix}")

    if listing.highlights:
        lines.extend(["", "Current Highlights (for improvement):"])
        for index, highlight in enumerate(listing.highlights, start=1):
            lines.append(f"{index}. {highlight.title}: {highlight.value}")

    return "\n".join(lines)
