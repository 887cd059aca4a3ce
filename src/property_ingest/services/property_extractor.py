"""Heuristic property-data extraction from cleaned listing HTML.

Each field is filled by a prioritized cascade of CSS selectors: the first
element with non-empty text wins, and its text is then parsed with a
field-specific regex. Nothing is inferred: a field stays None unless a
matched fragment of the page produced it.
"""

import re
from collections.abc import Sequence
from urllib.parse import urljoin

import logfire
from bs4 import BeautifulSoup, Tag

from property_ingest.constants import (
    IMAGE_EXCLUDE_MARKERS,
    MAX_EXTRACTED_FEATURES,
    MAX_EXTRACTED_IMAGES,
    MAX_FEATURE_TEXT_CHARS,
    MIN_DESCRIPTION_TEXT_CHARS,
)
from property_ingest.models.property_models import ParsedPropertyRecord, PropertyLocation


TITLE_SELECTORS = ("h1", '[class*="title"]', '[class*="heading"]', "title")
PRICE_SELECTORS = ('[class*="price"]', '[id*="price"]')
ADDRESS_SELECTORS = (
    '[class*="address"]',
    '[id*="address"]',
    '[itemprop="address"]',
    '[class*="location"]',
)
BEDROOM_SELECTORS = ('[class*="bed"]', '[class*="bedroom"]')
BATHROOM_SELECTORS = ('[class*="bath"]', '[class*="bathroom"]')
AREA_SELECTORS = ('[class*="sqft"]', '[class*="square"]', '[class*="area"]')
DESCRIPTION_SELECTORS = (
    '[class*="description"]',
    '[id*="description"]',
    '[itemprop="description"]',
    '[class*="details"]',
    "article p",
)
FEATURE_SELECTOR = '[class*="feature"], [class*="amenity"], [class*="amenities"]'
PROPERTY_TYPE_SELECTORS = (
    '[itemprop="additionalType"]',
    '[class*="property-type"]',
    '[class*="propertyType"]',
    '[class*="home-type"]',
    '[class*="homeType"]',
)
YEAR_BUILT_SELECTORS = (
    '[itemprop="yearBuilt"]',
    '[class*="year-built"]',
    '[class*="yearBuilt"]',
    '[class*="built"]',
)
LOT_SELECTORS = ('[class*="lot"]', '[id*="lot"]')

PRICE_WITH_CURRENCY_RE = re.compile(r"[$€£]\s*(\d[\d,]*)")
BARE_NUMBER_RE = re.compile(r"(\d[\d,]*)")
BEDROOM_RE = re.compile(r"(\d+)\s*(?:bedroom|bed|br)", re.IGNORECASE)
BATHROOM_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:bathroom|bath|ba)", re.IGNORECASE)
AREA_RE = re.compile(r"(\d[\d,]*)\s*(?:sq\.?\s*ft|sqft|m²|sq\.?\s*m)", re.IGNORECASE)
YEAR_RE = re.compile(r"\b(1[6-9]\d{2}|20\d{2})\b")
LOT_RE = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(?:acres?|ac\b|sq\.?\s*ft|sqft)", re.IGNORECASE)
US_ADDRESS_TAIL_RE = re.compile(
    r",\s*([^,]+?),\s*([A-Z]{2})\s+(\d{5}(?:-\d{4})?)\s*$"
)

# Free text is only accepted as a property type when it is label-sized
MAX_PROPERTY_TYPE_CHARS = 50


def _normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


def _text(element: Tag) -> str:
    return _normalize_whitespace(element.get_text(" "))


def first_text(soup: BeautifulSoup, selectors: Sequence[str]) -> str | None:
    """Text of the first element, across selectors in order, that has any."""
    for selector in selectors:
        for element in soup.select(selector):
            text = _text(element)
            if text:
                return text
    return None


def _to_int(number: str) -> int | None:
    try:
        return int(number.replace(",", ""))
    except ValueError:
        return None


def parse_price(text: str | None) -> int | None:
    """Price from text, preferring a currency-prefixed number."""
    if not text:
        return None
    match = PRICE_WITH_CURRENCY_RE.search(text) or BARE_NUMBER_RE.search(text)
    return _to_int(match.group(1)) if match else None


def parse_bedrooms(text: str | None) -> int | None:
    match = BEDROOM_RE.search(text or "")
    return int(match.group(1)) if match else None


def parse_bathrooms(text: str | None) -> float | None:
    match = BATHROOM_RE.search(text or "")
    return float(match.group(1)) if match else None


def parse_square_footage(text: str | None) -> int | None:
    match = AREA_RE.search(text or "")
    return _to_int(match.group(1)) if match else None


def parse_location(soup: BeautifulSoup, address: str | None) -> PropertyLocation:
    """Location from schema.org microdata, else from a US-style address tail."""

    def itemprop(name: str) -> str | None:
        element = soup.select_one(f'[itemprop="{name}"]')
        if element is None:
            return None
        value = element.get("content") or _text(element)
        return str(value).strip() or None

    location = PropertyLocation(
        city=itemprop("addressLocality"),
        state=itemprop("addressRegion"),
        zip_code=itemprop("postalCode"),
        country=itemprop("addressCountry"),
    )
    if location.is_empty() and address:
        match = US_ADDRESS_TAIL_RE.search(address)
        if match:
            location = PropertyLocation(
                city=match.group(1).strip(),
                state=match.group(2),
                zip_code=match.group(3),
            )
    return location


def _extract_price(soup: BeautifulSoup) -> int | None:
    price = parse_price(first_text(soup, PRICE_SELECTORS))
    if price is not None:
        return price
    element = soup.select_one("[data-price]")
    if element is not None:
        return parse_price(str(element.get("data-price") or ""))
    return None


def _extract_year_built(soup: BeautifulSoup) -> int | None:
    for selector in YEAR_BUILT_SELECTORS:
        for element in soup.select(selector):
            match = YEAR_RE.search(_text(element))
            if match:
                return int(match.group(1))
    return None


def _extract_lot_size(soup: BeautifulSoup) -> float | None:
    text = first_text(soup, LOT_SELECTORS)
    match = LOT_RE.search(text or "")
    if not match:
        return None
    try:
        return float(match.group(1).replace(",", ""))
    except ValueError:
        return None


def _extract_property_type(soup: BeautifulSoup) -> str | None:
    for selector in PROPERTY_TYPE_SELECTORS:
        for element in soup.select(selector):
            value = element.get("content") or _text(element)
            value = str(value).strip()
            if value and len(value) <= MAX_PROPERTY_TYPE_CHARS:
                return value
    return None


def _extract_description(soup: BeautifulSoup) -> str | None:
    for selector in DESCRIPTION_SELECTORS:
        for element in soup.select(selector):
            text = _text(element)
            if len(text) > MIN_DESCRIPTION_TEXT_CHARS:
                return text
    return None


def resolve_image_url(src: str | None, source_url: str) -> str | None:
    """
    Absolute URL for an image source, or None when it should be skipped.

    Data URIs, placeholder/logo/icon images and URLs that cannot be
    resolved against the page are skipped.
    """
    src = str(src or "").strip()
    lowered = src.lower()
    if not src or lowered.startswith("data:"):
        return None
    if any(marker in lowered for marker in IMAGE_EXCLUDE_MARKERS):
        return None
    try:
        return urljoin(source_url, src)
    except ValueError:
        logfire.warning("Skipping unresolvable image URL", src=src[:200])
        return None


def extract_images(soup: BeautifulSoup, source_url: str) -> list[str]:
    """
    Absolute image URLs in DOM order.

    Placeholder, logo and icon images are skipped, duplicates dropped and
    the list capped at MAX_EXTRACTED_IMAGES.
    """
    images: list[str] = []
    seen: set[str] = set()
    for img in soup.find_all("img"):
        absolute = resolve_image_url(
            img.get("src") or img.get("data-src") or img.get("data-lazy"), source_url
        )
        if absolute is None or absolute in seen:
            continue
        seen.add(absolute)
        images.append(absolute)
        if len(images) >= MAX_EXTRACTED_IMAGES:
            break
    return images


def with_gallery_images(
    record: ParsedPropertyRecord, gallery: Sequence[str], source_url: str
) -> ParsedPropertyRecord:
    """Copy of ``record`` with gallery photos first, then the page images, capped."""
    resolved = (resolve_image_url(src, source_url) for src in gallery)
    merged = dict.fromkeys([url for url in resolved if url] + record.images)
    return record.model_copy(update={"images": list(merged)[:MAX_EXTRACTED_IMAGES]})


def extract_features(soup: BeautifulSoup) -> list[str]:
    """Short feature/amenity strings, deduplicated, capped at MAX_EXTRACTED_FEATURES."""
    features: list[str] = []
    for element in soup.select(FEATURE_SELECTOR):
        text = _text(element)
        if not text or len(text) >= MAX_FEATURE_TEXT_CHARS or text in features:
            continue
        features.append(text)
        if len(features) >= MAX_EXTRACTED_FEATURES:
            break
    return features


def extract_property_data(cleaned_html: str, source_url: str) -> ParsedPropertyRecord:
    """
    Extract a best-effort property record from cleaned HTML.

    Never raises: unmatched fields stay None and collections stay empty, so
    a page with no recognizable facts yields an empty record. Callers check
    ``record.has_usable_data()`` for that case.
    """
    if not cleaned_html or not cleaned_html.strip():
        return ParsedPropertyRecord()

    soup = BeautifulSoup(cleaned_html, "html.parser")
    address = first_text(soup, ADDRESS_SELECTORS)

    record = ParsedPropertyRecord(
        title=first_text(soup, TITLE_SELECTORS),
        address=address,
        price=_extract_price(soup),
        property_type=_extract_property_type(soup),
        bedrooms=parse_bedrooms(first_text(soup, BEDROOM_SELECTORS)),
        bathrooms=parse_bathrooms(first_text(soup, BATHROOM_SELECTORS)),
        square_footage=parse_square_footage(first_text(soup, AREA_SELECTORS)),
        lot_size=_extract_lot_size(soup),
        year_built=_extract_year_built(soup),
        description=_extract_description(soup),
        images=extract_images(soup, source_url),
        features=extract_features(soup),
        location=parse_location(soup, address),
    )

    logfire.info(
        "Property data extracted",
        source_url=source_url,
        has_title=record.title is not None,
        has_price=record.price is not None,
        image_count=len(record.images),
        feature_count=len(record.features),
        usable=record.has_usable_data(),
    )
    return record
